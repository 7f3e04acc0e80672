"""Work out which URLs to submit for a piece of content, then submit them.

Planning runs inside the request (it needs the database to resolve slugs);
submission runs afterwards as a FastAPI background task with its own
database and HTTP clients, so the caller gets an answer immediately.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import httpx
from supabase import AsyncClient

from app.config import Settings
from app.services.content import (
    UPSC_SECTION,
    WEB3_SECTION,
    fetch_article,
    fetch_categories,
    fetch_published_articles,
    fetch_published_web_stories,
    fetch_recent_videos,
    fetch_section,
    fetch_section_articles,
    fetch_video,
    fetch_web_story,
    last_successful_automation,
    log_automation,
)
from app.services.search_engines import (
    ping_bing,
    ping_google,
    submit_to_google_indexing,
    submit_to_indexnow,
)
from app.services.sitemap import as_utc
from app.services.supabase import SupabaseError, create_db
from app.services.urls import (
    amp_story_url,
    article_url,
    category_url,
    sitemap_url,
    subcategory_url,
    web_stories_hub_url,
)

logger = logging.getLogger(__name__)

BATCH_LIMIT = 100

STATIC_PAGES = ("", "/news", "/about", "/contact", "/subscription", "/editorial-guidelines")
EXAM_PAGES = ("/government-exams", "/admit-cards", "/jobs/previous-year-papers")


@dataclass
class IndexingPlan:
    """URLs to submit for one indexing request and how to report it."""

    urls: List[str]
    action_type: str
    service_name: str
    # Section (or main) sitemap pinged once the URLs are submitted
    sitemap: str
    mode: str = "single"
    main_url: Optional[str] = None
    target_id: Optional[str] = None
    notification_type: str = "URL_UPDATED"
    stats: dict = field(default_factory=dict)

    @property
    def is_single(self) -> bool:
        return self.mode == "single" and self.target_id is not None


def dedupe(urls: Iterable[str]) -> List[str]:
    """Drop repeated URLs, keeping the first occurrence."""
    seen = set()
    unique = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            unique.append(url)
    return unique


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

async def plan_page_indexing(
    db: AsyncClient,
    settings: Settings,
    page_type: str,
    article_id: Optional[str] = None,
    category_slug: Optional[str] = None,
    action: str = "update",
) -> IndexingPlan:
    """Article, category or home page plus the main and news sitemaps."""
    base = settings.base_url
    urls: List[str] = []
    main_url: Optional[str] = None

    if page_type == "article" and article_id:
        article = await fetch_article(db, article_id, published_only=False)
        if article is not None:
            main_url = article_url(base, article.slug)
            urls.append(main_url)
            if article.category and article.category.slug:
                urls.append(category_url(base, article.category.slug))
    elif page_type == "category" and category_slug:
        main_url = category_url(base, category_slug)
        urls.append(main_url)
    else:
        main_url = base
        urls.append(f"{base}/news")

    plan = IndexingPlan(
        urls=[],
        action_type="instant_indexing",
        service_name="google_indexing_api",
        sitemap=sitemap_url(base, "main"),
        main_url=main_url,
        target_id=article_id if page_type == "article" else None,
        notification_type="URL_DELETED" if action == "delete" else "URL_UPDATED",
    )
    if not urls:
        return plan
    plan.urls = dedupe(urls + [sitemap_url(base, "main"), sitemap_url(base, "news")])
    return plan


async def plan_web_story_indexing(
    db: AsyncClient, settings: Settings, mode: str, story_id: Optional[str] = None
) -> IndexingPlan:
    base = settings.base_url
    single = mode == "single" and bool(story_id)
    plan = IndexingPlan(
        urls=[],
        action_type="webstory_instant_indexing" if single else "webstory_batch_indexing",
        service_name="multi_search_engine",
        sitemap=sitemap_url(base, "webstories"),
        mode="single" if single else "batch",
        target_id=story_id if single else None,
    )

    if single:
        story = await fetch_web_story(db, story_id)
        stories = [story] if story else []
    else:
        stories = await fetch_published_web_stories(db, limit=BATCH_LIMIT)
    if not stories:
        return plan

    story_urls = [amp_story_url(base, s.category, s.slug) for s in stories]
    plan.main_url = story_urls[0]
    plan.stats = {"stories": len(stories)}
    plan.urls = dedupe([web_stories_hub_url(base), *story_urls, plan.sitemap])
    return plan


async def _plan_section_indexing(
    db: AsyncClient,
    settings: Settings,
    section: str,
    prefix: str,
    sitemap_kind: str,
    mode: str,
    article_id: Optional[str],
) -> IndexingPlan:
    """Shared plan for the UPSC and Web3 sub-sites.

    Raises:
        SectionNotFoundError: when the section's parent category is missing.
    """
    base = settings.base_url
    single = mode == "single" and bool(article_id)
    plan = IndexingPlan(
        urls=[],
        action_type=f"{prefix}_instant_indexing" if single else f"{prefix}_batch_indexing",
        service_name="multi_search_engine",
        sitemap=sitemap_url(base, sitemap_kind),
        mode="single" if single else "batch",
        target_id=article_id if single else None,
    )

    _, subcategories = await fetch_section(db, section)
    hub = f"{base}/{section}"
    urls: List[str] = []

    if single:
        article = await fetch_article(db, article_id)
        section_ids = {c.id for c in subcategories}
        if article is not None and article.category_id not in section_ids:
            logger.warning(
                "Article is not in the section, nothing to index",
                extra={"article_id": article_id, "section": section},
            )
            article = None
        if article is not None:
            category_slug = article.category.slug if article.category else "uncategorized"
            urls.append(subcategory_url(base, section, category_slug) + f"/{article.slug}")
            urls.append(subcategory_url(base, section, category_slug))
    else:
        articles = await fetch_section_articles(
            db, [c.id for c in subcategories], limit=BATCH_LIMIT, order_by="published_at"
        )
        for article in articles:
            category_slug = article.category.slug if article.category else "uncategorized"
            urls.append(subcategory_url(base, section, category_slug) + f"/{article.slug}")

    if not urls:
        return plan
    plan.main_url = urls[0]
    plan.urls = dedupe([hub, *urls, plan.sitemap])
    return plan


async def plan_upsc_indexing(
    db: AsyncClient, settings: Settings, mode: str, article_id: Optional[str] = None
) -> IndexingPlan:
    return await _plan_section_indexing(db, settings, UPSC_SECTION, "upsc", "upsc", mode, article_id)


async def plan_web3_indexing(
    db: AsyncClient, settings: Settings, mode: str, article_id: Optional[str] = None
) -> IndexingPlan:
    return await _plan_section_indexing(db, settings, WEB3_SECTION, "web3", "web3", mode, article_id)


async def plan_video_indexing(
    db: AsyncClient, settings: Settings, mode: str, video_id: Optional[str] = None
) -> IndexingPlan:
    """Homepage, the videos sitemap and one ``/?category=`` page per video category."""
    base = settings.base_url
    single = mode == "single" and bool(video_id)
    plan = IndexingPlan(
        urls=[],
        action_type="video_instant_indexing" if single else "video_batch_indexing",
        service_name="multi_search_engine",
        sitemap=sitemap_url(base, "videos"),
        mode="single" if single else "batch",
        target_id=video_id if single else None,
    )

    if single:
        video = await fetch_video(db, video_id)
        videos = [video] if video else []
    else:
        videos = await fetch_recent_videos(db, limit=BATCH_LIMIT)
    if not videos:
        return plan

    plan.main_url = f"{base}/"
    plan.stats = {"videos": len(videos)}
    category_pages = [
        f"{base}/?category={v.category}" for v in videos if v.category and v.category != "all"
    ]
    plan.urls = dedupe([plan.main_url, plan.sitemap, *category_pages])
    return plan


async def plan_all_pages_indexing(db: AsyncClient, settings: Settings) -> IndexingPlan:
    """Every public page the site knows about."""
    base = settings.base_url
    articles = await fetch_published_articles(db)
    categories = await fetch_categories(db)
    slugs_by_id = {c.id: c.slug for c in categories}

    urls = [f"{base}{path}" for path in STATIC_PAGES]
    urls.extend(article_url(base, a.slug) for a in articles)
    for category in categories:
        if category.parent_id:
            parent_slug = slugs_by_id.get(category.parent_id)
            if parent_slug:
                urls.append(subcategory_url(base, parent_slug, category.slug))
        else:
            urls.append(category_url(base, category.slug))
    urls.extend(f"{base}{path}" for path in EXAM_PAGES)
    urls.extend([sitemap_url(base, "main"), sitemap_url(base, "news")])

    return IndexingPlan(
        urls=dedupe(urls),
        action_type="bulk_indexing",
        service_name="all",
        sitemap=sitemap_url(base, "main"),
        mode="batch",
        main_url=base,
        stats={"articles": len(articles), "categories": len(categories)},
    )


async def recently_indexed(
    db: AsyncClient, plan: IndexingPlan, window_minutes: int, now: Optional[datetime] = None
) -> bool:
    """Whether *plan*'s single target already has a successful log inside the window."""
    if not plan.is_single or window_minutes <= 0:
        return False
    last = await last_successful_automation(db, plan.action_type, plan.target_id)
    if last is None:
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(last) >= now - timedelta(minutes=window_minutes)


# ---------------------------------------------------------------------------
# Background jobs
# ---------------------------------------------------------------------------

async def _log_result(db: AsyncClient, plan: IndexingPlan, status: str) -> None:
    try:
        await log_automation(
            db, plan.action_type, plan.service_name, status, article_id=plan.target_id
        )
    except SupabaseError as exc:
        logger.error("Could not record indexing result: %s", exc)


async def run_page_indexing(plan: IndexingPlan, settings: Settings) -> dict:
    """Google Indexing API for the main URL, IndexNow for the rest, then sitemap pings."""
    results = {"google_indexing": False, "indexnow": False, "sitemap_ping": False}
    db = await create_db(settings)
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        if plan.main_url:
            results["google_indexing"] = await submit_to_google_indexing(
                client, db, plan.main_url, settings, plan.notification_type
            )
        results["indexnow"] = await submit_to_indexnow(client, plan.urls, settings)
        results["sitemap_ping"] = await ping_google(client, plan.sitemap)
        await ping_bing(client, plan.sitemap)

        await _log_result(db, plan, "success" if results["google_indexing"] else "failed")

    logger.info("Page indexing complete", extra={"main_url": plan.main_url, **results})
    return results


async def run_section_indexing(plan: IndexingPlan, settings: Settings) -> dict:
    """IndexNow, then Google and Bing pings of the section sitemap and the sitemap index."""
    results = {"indexnow": False, "google_sitemap": False, "bing_sitemap": False, "sitemap_index": False}
    index = sitemap_url(settings.base_url, "index")
    db = await create_db(settings)
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        results["indexnow"] = await submit_to_indexnow(client, plan.urls, settings)
        results["google_sitemap"] = await ping_google(client, plan.sitemap)
        results["bing_sitemap"] = await ping_bing(client, plan.sitemap)
        google_index = await ping_google(client, index)
        bing_index = await ping_bing(client, index)
        results["sitemap_index"] = google_index and bing_index

        ok = results["indexnow"] or results["google_sitemap"]
        await _log_result(db, plan, "success" if ok else "partial")

    logger.info(
        "Section indexing complete",
        extra={"action_type": plan.action_type, "urls": len(plan.urls), **results},
    )
    return results


async def run_bulk_indexing(plan: IndexingPlan, settings: Settings) -> dict:
    """Sitemap pings first, then every URL through IndexNow in batches."""
    results = {"google_ping": False, "bing_ping": False, "indexnow": False}
    db = await create_db(settings)
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        results["google_ping"] = await ping_google(client, plan.sitemap)
        results["bing_ping"] = await ping_bing(client, plan.sitemap)
        results["indexnow"] = await submit_to_indexnow(client, plan.urls, settings)

        ok = results["indexnow"] or results["google_ping"]
        await _log_result(db, plan, "success" if ok else "partial")

    logger.info("Bulk indexing complete", extra={"total": len(plan.urls), **results})
    return results
