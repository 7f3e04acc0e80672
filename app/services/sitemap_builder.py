"""Assembles every sitemap the site publishes from platform records.

Each sitemap type has a pure ``*_urls`` function that turns records into
:class:`~app.services.sitemap.SitemapUrl` entries and an async
``generate_*`` function that loads those records and renders the XML.
:data:`GENERATORS` maps the sitemap kind to its generator.
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from supabase import AsyncClient

from app.config import Settings
from app.models.content import (
    Article,
    Category,
    CodeSnippet,
    HomepageVideo,
    LearningPath,
    PrivateJob,
    WebStory,
)
from app.services import content
from app.services.sitemap import (
    ImageInfo,
    NewsInfo,
    SitemapUrl,
    VideoInfo,
    as_utc,
    format_date,
    format_datetime,
    render_sitemap_index,
    render_urlset,
)
from app.services.supabase import SupabaseError
from app.services.urls import (
    SITEMAP_PATHS,
    article_url,
    category_url,
    job_url,
    subcategory_url,
    upsc_url,
    web3_url,
    web_stories_hub_url,
    web_story_url,
)

logger = logging.getLogger(__name__)

# (path, changefreq, priority)
STATIC_PAGES: Tuple[Tuple[str, str, str], ...] = (
    ("/", "daily", "1.0"),
    ("/about", "monthly", "0.7"),
    ("/contact", "monthly", "0.7"),
    ("/subscription", "weekly", "0.7"),
    ("/privacy", "monthly", "0.7"),
    ("/terms", "monthly", "0.7"),
    ("/cookies", "monthly", "0.7"),
    ("/disclaimer", "monthly", "0.7"),
    ("/editorial-guidelines", "monthly", "0.7"),
    ("/rss", "daily", "0.5"),
    ("/private-jobs", "daily", "0.8"),
)

TOOL_PAGES: Tuple[Tuple[str, str, str], ...] = (
    ("/tools", "weekly", "1.0"),
    ("/tools/pdf-tools", "weekly", "0.9"),
    ("/tools/image-tools", "weekly", "0.9"),
    ("/tools/video-tools", "weekly", "0.9"),
    ("/tools/pdf-to-word", "monthly", "0.8"),
    ("/tools/word-to-pdf", "monthly", "0.8"),
    ("/tools/pdf-to-excel", "monthly", "0.8"),
    ("/tools/excel-to-pdf", "monthly", "0.8"),
    ("/tools/pdf-to-jpg", "monthly", "0.8"),
    ("/tools/jpg-to-pdf", "monthly", "0.8"),
    ("/tools/pdf-to-ppt", "monthly", "0.8"),
    ("/tools/ppt-to-pdf", "monthly", "0.8"),
    ("/tools/merge-pdf", "monthly", "0.8"),
    ("/tools/split-pdf", "monthly", "0.8"),
    ("/tools/compress-pdf", "monthly", "0.8"),
    ("/tools/pdf-watermark", "monthly", "0.8"),
    ("/tools/image-compressor", "monthly", "0.8"),
    ("/tools/image-resizer", "monthly", "0.8"),
    ("/tools/image-cropper", "monthly", "0.8"),
    ("/tools/jpg-to-png", "monthly", "0.8"),
    ("/tools/png-to-jpg", "monthly", "0.8"),
    ("/tools/convert-to-webp", "monthly", "0.8"),
    ("/tools/youtube-shorts-downloader", "monthly", "0.8"),
    ("/tools/instagram-video-downloader", "monthly", "0.8"),
)

# Sitemaps listed in the sitemap index, in order
INDEXED_SITEMAPS = ("main", "web3", "upsc", "tools", "webstories", "videos", "news")

# Google News only accepts articles from the last two days, at most 1000 per sitemap
NEWS_WINDOW = timedelta(days=2)
NEWS_MAX_URLS = 1000

_YOUTUBE_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&?/]+)"),
    re.compile(r"youtube\.com/shorts/([^&?/]+)"),
)


def extract_youtube_id(url: Optional[str]) -> Optional[str]:
    """Return the YouTube video id embedded in *url*, or *None*."""
    if not url:
        return None
    for pattern in _YOUTUBE_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


# ---------------------------------------------------------------------------
# Pure entry builders
# ---------------------------------------------------------------------------

def main_sitemap_urls(
    base_url: str,
    today: date,
    articles: Sequence[Article],
    categories: Sequence[Category],
    stories: Sequence[WebStory],
    jobs: Sequence[PrivateJob],
) -> List[SitemapUrl]:
    today_str = today.isoformat()
    urls = [
        SitemapUrl(f"{base_url}{path}", today_str, freq, prio) for path, freq, prio in STATIC_PAGES
    ]

    parents = {c.id: c for c in categories if not c.parent_id}
    for category in parents.values():
        urls.append(SitemapUrl(category_url(base_url, category.slug), today_str, "weekly", "0.8"))
    for child in categories:
        if not child.parent_id:
            continue
        parent = parents.get(child.parent_id)
        if parent is None:
            continue
        urls.append(
            SitemapUrl(subcategory_url(base_url, parent.slug, child.slug), today_str, "weekly", "0.7")
        )

    for article in articles:
        urls.append(
            SitemapUrl(
                article_url(base_url, article.slug),
                format_date(article.updated_at, today),
                "daily",
                "0.8",
            )
        )

    urls.append(SitemapUrl(web_stories_hub_url(base_url), today_str, "daily", "0.8"))
    for story in stories:
        urls.append(
            SitemapUrl(
                web_story_url(base_url, story.category, story.slug),
                format_date(story.updated_at, today),
                "weekly",
                "0.8",
            )
        )

    for job in jobs:
        urls.append(
            SitemapUrl(job_url(base_url, job.slug), format_date(job.updated_at, today), "weekly", "0.8")
        )
    return urls


def tools_sitemap_urls(base_url: str, today: date) -> List[SitemapUrl]:
    return [
        SitemapUrl(f"{base_url}{path}", today.isoformat(), freq, prio)
        for path, freq, prio in TOOL_PAGES
    ]


def sitemap_index_entries(base_url: str, today: date) -> List[Tuple[str, str]]:
    return [(f"{base_url}{SITEMAP_PATHS[kind]}", today.isoformat()) for kind in INDEXED_SITEMAPS]


def upsc_sitemap_urls(
    base_url: str,
    now: datetime,
    categories: Sequence[Category],
    articles: Sequence[Article],
) -> List[SitemapUrl]:
    urls = [
        SitemapUrl(upsc_url(base_url), changefreq="daily", priority="1.0"),
        SitemapUrl(upsc_url(base_url, "about"), changefreq="monthly", priority="0.7"),
    ]
    for category in categories:
        urls.append(
            SitemapUrl(
                upsc_url(base_url, category.slug),
                format_datetime(category.updated_at or now),
                "daily",
                "0.9",
            )
        )

    by_id = {c.id: c for c in categories}
    for article in articles:
        category = by_id.get(article.category_id or "")
        if category is None:
            continue
        urls.append(
            SitemapUrl(
                upsc_url(base_url, category.slug, article.slug),
                format_datetime(article.updated_at or now),
                "weekly",
                "0.8",
            )
        )
    return urls


def web3_sitemap_urls(
    base_url: str,
    today: date,
    categories: Sequence[Category],
    articles: Sequence[Article],
    learning_paths: Sequence[LearningPath],
    snippets: Sequence[CodeSnippet],
) -> List[SitemapUrl]:
    today_str = today.isoformat()
    urls = [
        SitemapUrl(web3_url(base_url), today_str, "daily", "1.0"),
        SitemapUrl(web3_url(base_url, "dashboard"), today_str, "weekly", "0.8"),
        SitemapUrl(web3_url(base_url, "about"), today_str, "monthly", "0.7"),
    ]
    for category in categories:
        urls.append(
            SitemapUrl(
                web3_url(base_url, category.slug),
                format_date(category.updated_at, today),
                "weekly",
                "0.9",
            )
        )
    for article in articles:
        category_slug = article.category.slug if article.category else "uncategorized"
        urls.append(
            SitemapUrl(
                web3_url(base_url, category_slug, article.slug),
                format_date(article.updated_at, today),
                "monthly",
                "0.8",
            )
        )
    urls.append(SitemapUrl(web3_url(base_url, "playground"), today_str, "weekly", "0.7"))
    for path in learning_paths:
        urls.append(
            SitemapUrl(
                web3_url(base_url, "learning-path", path.slug),
                format_date(path.updated_at, today),
                "monthly",
                "0.8",
            )
        )
    for snippet in snippets:
        urls.append(
            SitemapUrl(
                web3_url(base_url, "snippet", snippet.slug),
                format_date(snippet.updated_at, today),
                "weekly",
                "0.6",
            )
        )
    return urls


def web_story_sitemap_urls(
    base_url: str,
    now: datetime,
    stories: Sequence[WebStory],
    publication_name: str,
    language: str,
) -> List[SitemapUrl]:
    urls = []
    for story in stories:
        published = format_datetime(story.published_at or now)
        images = tuple(
            ImageInfo(slide.image, title=slide.text or story.title)
            for slide in story.slides or []
            if slide and slide.image
        )
        urls.append(
            SitemapUrl(
                web_story_url(base_url, story.category, story.slug),
                published,
                "weekly",
                "0.8",
                news=NewsInfo(publication_name, language, published, story.title),
                images=images,
            )
        )
    return urls


def video_sitemap_urls(
    base_url: str,
    now: datetime,
    videos: Sequence[HomepageVideo],
    publication_name: str,
) -> List[SitemapUrl]:
    """A single homepage entry carrying every embedded YouTube video."""
    entries = []
    for video in videos:
        video_id = extract_youtube_id(video.youtube_url)
        if not video_id:
            logger.warning("Could not extract YouTube id from %s", video.youtube_url)
            continue
        tag = video.category if video.category and video.category != "all" else None
        entries.append(
            VideoInfo(
                thumbnail_loc=f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
                title=video.title,
                description=video.description or video.title,
                content_loc=video.youtube_url or "",
                player_loc=f"https://www.youtube.com/embed/{video_id}",
                publication_date=format_datetime(video.created_at or now),
                uploader=publication_name,
                uploader_info=base_url,
                tag=tag,
            )
        )
    return [
        SitemapUrl(
            f"{base_url}/",
            now.date().isoformat(),
            "daily",
            "1.0",
            videos=tuple(entries),
        )
    ]


def news_sitemap_urls(
    base_url: str,
    now: datetime,
    articles: Sequence[Article],
    publication_name: str,
    language: str,
) -> List[SitemapUrl]:
    cutoff = now - NEWS_WINDOW
    urls = []
    for article in articles:
        published_at = article.published_at or article.created_at
        if published_at is None or as_utc(published_at) < cutoff:
            continue
        published = format_datetime(published_at)
        if article.tags:
            keywords = ", ".join(article.tags)
        elif article.category and article.category.name:
            keywords = article.category.name
        else:
            keywords = "news"
        urls.append(
            SitemapUrl(
                article_url(base_url, article.slug),
                published,
                "hourly",
                "0.9",
                news=NewsInfo(publication_name, language, published, article.title, keywords),
                images=(
                    ImageInfo(
                        article.image_url or f"{base_url}/default-article-image.jpg",
                        title=article.title,
                        caption=article.excerpt or article.title,
                    ),
                ),
            )
        )
        if len(urls) >= NEWS_MAX_URLS:
            break
    return urls


# ---------------------------------------------------------------------------
# Async generators
# ---------------------------------------------------------------------------

async def _best_effort(label: str, loader: Awaitable[list]) -> list:
    """Await *loader*, logging and returning an empty list on failure."""
    try:
        return await loader
    except SupabaseError as exc:
        logger.error("%s query failed: %s", label, exc)
        return []


async def generate_main(db: AsyncClient, settings: Settings, now: datetime) -> str:
    # Articles are mandatory; the remaining tables degrade to empty sections
    articles = await content.fetch_published_articles(db)
    categories = await _best_effort("Categories", content.fetch_categories(db))
    stories = await _best_effort("Web stories", content.fetch_published_web_stories(db))
    jobs = await _best_effort("Jobs", content.fetch_published_jobs(db))
    urls = main_sitemap_urls(settings.base_url, now.date(), articles, categories, stories, jobs)
    return render_urlset(urls)


async def generate_index(db: Optional[AsyncClient], settings: Settings, now: datetime) -> str:
    return render_sitemap_index(sitemap_index_entries(settings.base_url, now.date()))


async def generate_tools(db: Optional[AsyncClient], settings: Settings, now: datetime) -> str:
    urls = tools_sitemap_urls(settings.base_url, now.date())
    logger.info("Tools sitemap generated with %d URLs", len(urls))
    return render_urlset(urls)


async def generate_upsc(db: AsyncClient, settings: Settings, now: datetime) -> str:
    _, categories = await content.fetch_section(db, content.UPSC_SECTION)
    articles = await content.fetch_section_articles(db, [c.id for c in categories])
    return render_urlset(upsc_sitemap_urls(settings.base_url, now, categories, articles))


async def generate_web3(db: AsyncClient, settings: Settings, now: datetime) -> str:
    _, categories = await content.fetch_section(db, content.WEB3_SECTION)
    articles = await content.fetch_section_articles(db, [c.id for c in categories])
    learning_paths = await _best_effort("Learning paths", content.fetch_learning_paths(db))
    snippets = await _best_effort("Code snippets", content.fetch_code_snippets(db))

    today = now.date()
    logger.info(
        "Generating Web3 sitemap",
        extra={
            "articles": len(articles),
            "categories": len(categories),
            "learning_paths": len(learning_paths),
            "snippets": len(snippets),
        },
    )
    comments = (
        f"Web3 for India Sitemap - Generated {today.isoformat()}",
        f"Includes {len(articles)} articles, {len(categories)} categories, "
        f"{len(learning_paths)} learning paths, {len(snippets)} snippets",
    )
    urls = web3_sitemap_urls(settings.base_url, today, categories, articles, learning_paths, snippets)
    return render_urlset(urls, comments)


async def generate_web_stories(db: AsyncClient, settings: Settings, now: datetime) -> str:
    stories = await content.fetch_published_web_stories(db)
    urls = web_story_sitemap_urls(
        settings.base_url, now, stories, settings.publication_name, settings.publication_language
    )
    return render_urlset(urls)


async def generate_videos(db: AsyncClient, settings: Settings, now: datetime) -> str:
    videos = await content.fetch_active_videos(db)
    logger.info("Found %d active videos", len(videos))
    return render_urlset(video_sitemap_urls(settings.base_url, now, videos, settings.publication_name))


async def generate_news(db: AsyncClient, settings: Settings, now: datetime) -> str:
    articles = await content.fetch_recent_articles(db, now - NEWS_WINDOW, NEWS_MAX_URLS)
    urls = news_sitemap_urls(
        settings.base_url, now, articles, settings.publication_name, settings.publication_language
    )
    return render_urlset(urls)


Generator = Callable[[Optional[AsyncClient], Settings, datetime], Awaitable[str]]

GENERATORS: Dict[str, Generator] = {
    "main": generate_main,
    "index": generate_index,
    "tools": generate_tools,
    "upsc": generate_upsc,
    "web3": generate_web3,
    "webstories": generate_web_stories,
    "videos": generate_videos,
    "news": generate_news,
}

# Built from constants only, so served without a database connection
STATIC_SITEMAPS = ("index", "tools")


async def generate_sitemap(
    kind: str, db: Optional[AsyncClient], settings: Settings, now: Optional[datetime] = None
) -> str:
    """Render the sitemap of *kind* (a key of :data:`GENERATORS`).

    *db* may be ``None`` for the kinds in :data:`STATIC_SITEMAPS`.
    """
    return await GENERATORS[kind](db, settings, now or datetime.now(timezone.utc))
