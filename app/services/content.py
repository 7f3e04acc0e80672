"""Typed queries over the publishing platform's tables."""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from pydantic import TypeAdapter
from supabase import AsyncClient

from app.models.content import (
    Article,
    Category,
    CodeSnippet,
    GscConfig,
    HomepageVideo,
    LearningPath,
    PrivateJob,
    QueueItem,
    WebStory,
)
from app.services.supabase import execute, execute_all

logger = logging.getLogger(__name__)

UPSC_SECTION = "upscbriefs"
WEB3_SECTION = "web3forindia"

_DATETIME = TypeAdapter(datetime)

_ARTICLE_WITH_CATEGORY = "id, slug, title, excerpt, category_id, updated_at, published_at, categories:category_id(slug, name)"

_SEO_ARTICLE_COLUMNS = (
    "id, slug, title, content, canonical_url, meta_title, meta_description, seo_keywords, published_at"
)


class SectionNotFoundError(LookupError):
    """The parent category of a sub-site (UPSC, Web3) does not exist."""


def _first(rows: List[dict]) -> Optional[dict]:
    return rows[0] if rows else None


# ---------------------------------------------------------------------------
# Articles and categories
# ---------------------------------------------------------------------------

async def fetch_published_articles(db: AsyncClient) -> List[Article]:
    rows = await execute_all(
        lambda: db.table("articles")
        .select("id, slug, title, updated_at, published_at, category_id")
        .eq("published", True)
        .order("updated_at", desc=True)
    )
    return [Article(**row) for row in rows]


async def fetch_recent_articles(db: AsyncClient, since: datetime, limit: int) -> List[Article]:
    """Published articles dated on or after *since*.

    An article without ``published_at`` is dated by its ``created_at``.
    """
    cutoff = since.isoformat()
    rows = await execute(
        db.table("articles")
        .select(
            "id, slug, title, excerpt, tags, image_url, created_at, published_at, categories:category_id(slug, name)"
        )
        .eq("published", True)
        .or_(f"published_at.gte.{cutoff},and(published_at.is.null,created_at.gte.{cutoff})")
        .order("published_at", desc=True)
        .limit(limit)
    )
    return [Article(**row) for row in rows]


async def fetch_article(
    db: AsyncClient, article_id: str, published_only: bool = True
) -> Optional[Article]:
    query = db.table("articles").select(_ARTICLE_WITH_CATEGORY).eq("id", article_id)
    if published_only:
        query = query.eq("published", True)
    row = _first(await execute(query.limit(1)))
    return Article(**row) if row else None


async def fetch_categories(db: AsyncClient) -> List[Category]:
    rows = await execute_all(
        lambda: db.table("categories").select("id, name, slug, parent_id, updated_at").order("name")
    )
    return [Category(**row) for row in rows]


async def fetch_section(db: AsyncClient, parent_slug: str) -> Tuple[Category, List[Category]]:
    """Return the parent category of a sub-site and its subcategories.

    Raises:
        SectionNotFoundError: when no category has *parent_slug*.
    """
    parent = _first(
        await execute(db.table("categories").select("id, slug, name").eq("slug", parent_slug).limit(1))
    )
    if not parent:
        raise SectionNotFoundError(f"Section '{parent_slug}' not found")
    rows = await execute(
        db.table("categories").select("id, slug, name, parent_id, updated_at").eq("parent_id", parent["id"])
    )
    return Category(**parent), [Category(**row) for row in rows]


async def fetch_section_articles(
    db: AsyncClient,
    category_ids: Iterable[str],
    limit: Optional[int] = None,
    order_by: str = "updated_at",
) -> List[Article]:
    ids = list(category_ids)
    if not ids:
        return []

    def build():
        return (
            db.table("articles")
            .select(_ARTICLE_WITH_CATEGORY)
            .in_("category_id", ids)
            .eq("published", True)
            .order(order_by, desc=True)
        )

    if limit is None:
        rows = await execute_all(build)
    else:
        rows = await execute(build().limit(limit))
    return [Article(**row) for row in rows]


async def fetch_scheduled_articles(db: AsyncClient, now: datetime) -> List[Article]:
    rows = await execute(
        db.table("articles")
        .select("id, title, slug, published_at")
        .eq("published", False)
        .eq("status", "scheduled")
        .lte("published_at", now.isoformat())
    )
    return [Article(**row) for row in rows]


async def mark_article_published(db: AsyncClient, article_id: str, now: datetime) -> None:
    await execute(
        db.table("articles")
        .update({"published": True, "status": "published", "updated_at": now.isoformat()})
        .eq("id", article_id)
    )


async def fetch_articles_for_seo(db: AsyncClient) -> List[Article]:
    rows = await execute_all(
        lambda: db.table("articles").select(_SEO_ARTICLE_COLUMNS).eq("published", True).order("id")
    )
    return [Article(**row) for row in rows]


async def update_article(db: AsyncClient, article_id: str, values: dict) -> None:
    await execute(db.table("articles").update(values).eq("id", article_id))


# ---------------------------------------------------------------------------
# Web stories
# ---------------------------------------------------------------------------

async def fetch_published_web_stories(
    db: AsyncClient, limit: Optional[int] = None
) -> List[WebStory]:
    def build():
        return (
            db.table("web_stories")
            .select("*")
            .eq("status", "published")
            .order("published_at", desc=True)
        )

    if limit is None:
        rows = await execute_all(build)
    else:
        rows = await execute(build().limit(limit))
    return [WebStory(**row) for row in rows]


async def fetch_web_story(db: AsyncClient, story_id: str) -> Optional[WebStory]:
    row = _first(
        await execute(
            db.table("web_stories").select("*").eq("id", story_id).eq("status", "published").limit(1)
        )
    )
    return WebStory(**row) if row else None


async def fetch_due_queue_items(db: AsyncClient, now: datetime, limit: int = 10) -> List[QueueItem]:
    rows = await execute(
        db.table("web_stories_queue")
        .select("*, web_stories(*)")
        .eq("review_status", "approved")
        .eq("auto_publish", True)
        .lte("scheduled_at", now.isoformat())
        .order("priority", desc=True)
        .limit(limit)
    )
    return [QueueItem(**row) for row in rows]


async def publish_web_story(db: AsyncClient, story_id: str, now: datetime) -> None:
    await execute(
        db.table("web_stories")
        .update({"status": "published", "published_at": now.isoformat()})
        .eq("id", story_id)
    )


async def remove_queue_item(db: AsyncClient, item_id: str) -> None:
    await execute(db.table("web_stories_queue").delete().eq("id", item_id))


# ---------------------------------------------------------------------------
# Jobs, videos, Web3 extras
# ---------------------------------------------------------------------------

async def fetch_published_jobs(db: AsyncClient) -> List[PrivateJob]:
    rows = await execute_all(
        lambda: db.table("private_jobs")
        .select("slug, updated_at")
        .eq("is_published", True)
        .order("updated_at", desc=True)
    )
    return [PrivateJob(**row) for row in rows]


async def fetch_active_videos(db: AsyncClient, limit: Optional[int] = None) -> List[HomepageVideo]:
    query = db.table("homepage_videos").select("*").eq("is_active", True).order("display_order")
    if limit is not None:
        query = query.limit(limit)
    rows = await execute(query)
    return [HomepageVideo(**row) for row in rows]


async def fetch_video(db: AsyncClient, video_id: str) -> Optional[HomepageVideo]:
    row = _first(
        await execute(
            db.table("homepage_videos")
            .select("id, title, youtube_url, category")
            .eq("id", video_id)
            .eq("is_active", True)
            .limit(1)
        )
    )
    return HomepageVideo(**row) if row else None


async def fetch_learning_paths(db: AsyncClient) -> List[LearningPath]:
    rows = await execute(
        db.table("web3_learning_paths").select("slug, updated_at").order("display_order")
    )
    return [LearningPath(**row) for row in rows]


async def fetch_code_snippets(db: AsyncClient, limit: int = 100) -> List[CodeSnippet]:
    rows = await execute(
        db.table("web3_code_snippets")
        .select("slug, updated_at")
        .order("created_at", desc=True)
        .limit(limit)
    )
    return [CodeSnippet(**row) for row in rows]


# ---------------------------------------------------------------------------
# Automation and SEO logs
# ---------------------------------------------------------------------------

async def log_automation(
    db: AsyncClient,
    action_type: str,
    service_name: str,
    status: str,
    article_id: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    row = {
        "article_id": article_id,
        "action_type": action_type,
        "service_name": service_name,
        "status": status,
        "retry_count": 0,
    }
    if error_message is not None:
        row["error_message"] = error_message
    await execute(db.table("seo_automation_logs").insert(row))


async def last_successful_automation(
    db: AsyncClient, action_type: str, article_id: Optional[str] = None
) -> Optional[datetime]:
    """Timestamp of the newest ``success`` log for *action_type* (and *article_id*)."""
    query = (
        db.table("seo_automation_logs")
        .select("created_at")
        .eq("action_type", action_type)
        .eq("status", "success")
    )
    if article_id is not None:
        query = query.eq("article_id", article_id)
    row = _first(await execute(query.order("created_at", desc=True).limit(1)))
    if not row or not row.get("created_at"):
        return None
    return _DATETIME.validate_python(row["created_at"])


async def clear_stale_seo_issues(db: AsyncClient, before: datetime) -> None:
    await execute(
        db.table("seo_health_log").delete().eq("status", "open").lt("detected_at", before.isoformat())
    )


async def insert_seo_issue(db: AsyncClient, row: dict) -> None:
    await execute(db.table("seo_health_log").insert(row))


async def insert_autofix_verification(db: AsyncClient, row: dict) -> None:
    await execute(db.table("seo_autofix_verification").insert(row))


async def fetch_gsc_config(db: AsyncClient) -> Optional[GscConfig]:
    row = _first(
        await execute(
            db.table("gsc_config")
            .select("access_token, token_expires_at, client_id, client_secret, refresh_token")
            .eq("is_active", True)
            .limit(1)
        )
    )
    return GscConfig(**row) if row else None


async def update_gsc_token(db: AsyncClient, access_token: str, expires_at: datetime) -> None:
    await execute(
        db.table("gsc_config")
        .update({"access_token": access_token, "token_expires_at": expires_at.isoformat()})
        .eq("is_active", True)
    )


async def fetch_recent_videos(db: AsyncClient, limit: int = 100) -> List[HomepageVideo]:
    rows = await execute(
        db.table("homepage_videos")
        .select("id, title, youtube_url, category")
        .eq("is_active", True)
        .order("created_at", desc=True)
        .limit(limit)
    )
    return [HomepageVideo(**row) for row in rows]
