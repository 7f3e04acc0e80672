"""SEO health scan over every published article, with automatic fixes for metadata gaps."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, NamedTuple, Optional

import httpx
from supabase import AsyncClient

from app.config import Settings
from app.models.content import Article
from app.services.content import (
    clear_stale_seo_issues,
    fetch_articles_for_seo,
    insert_autofix_verification,
    insert_seo_issue,
    update_article,
)
from app.services.fetcher import FetchedPage, fetch_page
from app.services.normalizer import (
    extract_canonical,
    has_noindex,
    remove_tags,
    same_url,
    strip_tags,
    truncate,
)
from app.services.search_engines import submit_to_google_indexing
from app.services.sitemap import as_utc
from app.services.supabase import SupabaseError
from app.services.urls import article_url

logger = logging.getLogger(__name__)

SOFT_404_BYTES = 500
MIN_CONTENT_CHARS = 500
META_TITLE_MAX = 60
META_DESCRIPTION_MAX = 160
STALE_AFTER_DAYS = 7
FRESH_WITHIN_DAYS = 1
OPEN_ISSUE_TTL = timedelta(hours=24)

FIX_ACTIONS = {
    "missing_canonical": "Set canonical URL to current page URL",
    "duplicate_canonical": "Set canonical URL to current page URL",
    "missing_meta_title": "Generated meta title from article title",
    "missing_meta_description": "Generated meta description from article content",
}


class SeoIssue(NamedTuple):
    url: str
    issue_type: str
    severity: str
    notes: str
    article_id: Optional[str] = None
    auto_fixed: bool = False


@dataclass
class ArticleReport:
    """Issues found for one article and the column updates that fix some of them."""

    issues: List[SeoIssue] = field(default_factory=list)
    fixes: Dict[str, str] = field(default_factory=dict)
    request_indexing: bool = False


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def check_live_page(url: str, page: FetchedPage, article_id: Optional[str] = None) -> List[SeoIssue]:
    """Issues visible only in the page as served: redirects, soft 404s, noindex, canonical tags."""
    issues: List[SeoIssue] = []
    if page.is_redirect:
        issues.append(
            SeoIssue(url, "page_with_redirect", "warning", f"Page redirects to {page.location}", article_id)
        )
        return issues
    if page.status_code != 200:
        return issues

    size = len(page.text.encode("utf-8"))
    if size < SOFT_404_BYTES:
        issues.append(
            SeoIssue(url, "soft_404", "critical", f"Page returns 200 but has only {size} bytes.", article_id)
        )
    if has_noindex(page.text):
        issues.append(
            SeoIssue(
                url,
                "not_indexed_intentionally",
                "info",
                "Page has noindex meta tag. This is intentional.",
                article_id,
            )
        )
    canonical = extract_canonical(page.text, url)
    if canonical and not same_url(canonical, url):
        issues.append(
            SeoIssue(
                url,
                "page_canonical_mismatch",
                "warning",
                f'Page declares canonical "{canonical}" instead of "{url}"',
                article_id,
            )
        )
    return issues


def check_article(article: Article, url: str, now: datetime) -> ArticleReport:
    """Metadata and freshness checks on the stored article row."""
    report = ArticleReport()
    issues = report.issues

    def add(issue_type: str, severity: str, notes: str, fixed: bool = False) -> None:
        issues.append(SeoIssue(url, issue_type, severity, notes, article.id, fixed))

    if not article.canonical_url:
        add("missing_canonical", "critical", f'Article "{article.title}" is missing canonical URL. Auto-fixed.', True)
        report.fixes["canonical_url"] = url
    elif not same_url(article.canonical_url, url):
        add(
            "duplicate_canonical",
            "critical",
            f'Canonical URL mismatch: "{article.canonical_url}" -> "{url}". Auto-fixed.',
            True,
        )
        report.fixes["canonical_url"] = url
        report.request_indexing = True

    if not article.meta_title:
        add("missing_meta_title", "critical", "Meta title is missing. Auto-fixed from article title.", True)
        report.fixes["meta_title"] = truncate(article.title, META_TITLE_MAX)
    elif len(article.meta_title) > META_TITLE_MAX:
        add(
            "meta_title_too_long",
            "warning",
            f"Meta title is {len(article.meta_title)} characters (should be <={META_TITLE_MAX})",
        )

    plain_text = strip_tags(article.content or "")
    if not article.meta_description:
        add(
            "missing_meta_description",
            "critical",
            "Meta description is missing. Auto-fixed from article content.",
            True,
        )
        report.fixes["meta_description"] = truncate(plain_text, META_DESCRIPTION_MAX)
    elif len(article.meta_description) > META_DESCRIPTION_MAX:
        add(
            "meta_description_too_long",
            "warning",
            f"Meta description is {len(article.meta_description)} characters "
            f"(should be <={META_DESCRIPTION_MAX})",
        )

    if not article.seo_keywords:
        add("missing_seo_keywords", "warning", "No SEO keywords defined")

    content_length = len(remove_tags(article.content or ""))
    if content_length < MIN_CONTENT_CHARS:
        add("short_content", "critical", f"Content is only {content_length} characters.")

    if article.published_at is not None:
        days = (now - as_utc(article.published_at)).days
        if days > STALE_AFTER_DAYS:
            add("stale_content", "info", f"Article published {days} days ago, consider updating")
        if days <= FRESH_WITHIN_DAYS:
            report.request_indexing = True

    return report


# ---------------------------------------------------------------------------
# Scan
# ---------------------------------------------------------------------------

async def _fetch_live_issues(
    client: httpx.AsyncClient, url: str, article_id: Optional[str]
) -> List[SeoIssue]:
    try:
        page = await fetch_page(url, client)
    except (ValueError, RuntimeError, httpx.HTTPError) as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        return []
    return check_live_page(url, page, article_id)


async def _record(db: AsyncClient, issue: SeoIssue, now: datetime) -> None:
    await insert_seo_issue(
        db,
        {
            "url": issue.url,
            "issue_type": issue.issue_type,
            "severity": issue.severity,
            "notes": issue.notes,
            "article_id": issue.article_id,
            "status": "resolved" if issue.auto_fixed else "open",
            "resolution_status": "auto_fixed" if issue.auto_fixed else None,
            "auto_fix_attempted": issue.auto_fixed,
        },
    )
    if issue.auto_fixed:
        await insert_autofix_verification(
            db,
            {
                "url": issue.url,
                "issue_type": issue.issue_type,
                "fix_action": FIX_ACTIONS.get(issue.issue_type, "Unknown fix"),
                "article_id": issue.article_id,
                "internal_status": "pending",
                "gsc_status": "pending",
                "fix_applied_at": now.isoformat(),
            },
        )


async def scan_seo_health(
    db: AsyncClient,
    client: httpx.AsyncClient,
    settings: Settings,
    fetch_pages: bool = True,
    now: Optional[datetime] = None,
) -> dict:
    """Scan every published article, apply metadata fixes and log each issue.

    Returns issue totals by severity and the number of auto-fixes applied.
    """
    now = now or datetime.now(timezone.utc)
    await clear_stale_seo_issues(db, now - OPEN_ISSUE_TTL)

    articles = await fetch_articles_for_seo(db)
    logger.info("Starting SEO health scan", extra={"articles": len(articles), "fetch_pages": fetch_pages})

    issues: List[SeoIssue] = []
    auto_fixed = 0
    for article in articles:
        url = article_url(settings.base_url, article.slug)
        if fetch_pages:
            issues.extend(await _fetch_live_issues(client, url, article.id))

        report = check_article(article, url, now)
        if report.fixes:
            try:
                await update_article(db, article.id, report.fixes)
            except SupabaseError as exc:
                logger.error("Auto-fix failed for %s: %s", article.slug, exc)
                # Nothing was written, so the issues stay open
                report.issues = [issue._replace(auto_fixed=False) for issue in report.issues]
            else:
                auto_fixed += sum(1 for issue in report.issues if issue.auto_fixed)
        issues.extend(report.issues)

        if report.request_indexing:
            await submit_to_google_indexing(client, db, url, settings, now=now)

    for issue in issues:
        try:
            await _record(db, issue, now)
        except SupabaseError as exc:
            logger.error("Failed to log SEO issue %s for %s: %s", issue.issue_type, issue.url, exc)

    summary = {
        "total_issues": len(issues),
        "critical": sum(1 for i in issues if i.severity == "critical"),
        "warnings": sum(1 for i in issues if i.severity == "warning"),
        "info": sum(1 for i in issues if i.severity == "info"),
        "auto_fixed": auto_fixed,
    }
    logger.info("SEO scan complete", extra=summary)
    return summary
