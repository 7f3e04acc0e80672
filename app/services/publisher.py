"""Scheduled publishing jobs for articles and the web-story queue."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

import httpx
from supabase import AsyncClient

from app.config import Settings
from app.models.content import QueueItem
from app.services.content import (
    fetch_due_queue_items,
    fetch_scheduled_articles,
    mark_article_published,
    publish_web_story,
    remove_queue_item,
)
from app.services.indexing import plan_web_story_indexing, run_section_indexing
from app.services.search_engines import ping_google
from app.services.supabase import SupabaseError
from app.services.urls import sitemap_url

logger = logging.getLogger(__name__)


async def publish_scheduled_articles(
    db: AsyncClient,
    client: httpx.AsyncClient,
    settings: Settings,
    now: Optional[datetime] = None,
) -> List[dict]:
    """Publish every scheduled article whose publish time has passed.

    Articles are published one at a time; a failure is logged and the
    article left for the next run. Returns ``{id, title, slug}`` for each
    article that went live.
    """
    now = now or datetime.now(timezone.utc)
    due = await fetch_scheduled_articles(db, now)
    if not due:
        logger.info("No scheduled articles to publish")
        return []

    published = []
    for article in due:
        try:
            await mark_article_published(db, article.id, now)
        except SupabaseError as exc:
            logger.error("Failed to publish article %s: %s", article.id, exc)
            continue
        logger.info("Published scheduled article", extra={"article_id": article.id, "slug": article.slug})
        published.append({"id": article.id, "title": article.title, "slug": article.slug})

    if published:
        await ping_google(client, sitemap_url(settings.base_url, "main"))
    return published


async def _index_story(db: AsyncClient, settings: Settings, story_id: str) -> None:
    try:
        plan = await plan_web_story_indexing(db, settings, "single", story_id)
        if plan.urls:
            await run_section_indexing(plan, settings)
    except Exception as exc:
        # The story is already live; indexing is retried by the next batch run
        logger.warning("Indexing failed for story %s: %s", story_id, exc)


async def _publish_queue_item(
    db: AsyncClient, settings: Settings, item: QueueItem, now: datetime
) -> dict:
    story = item.web_stories
    if story is None:
        logger.warning("Story not found for queue item %s", item.id)
        return {"success": False, "story_id": None, "error": "Story not found"}

    try:
        await publish_web_story(db, story.id, now)
        await remove_queue_item(db, item.id)
    except SupabaseError as exc:
        logger.error("Failed to publish story %s: %s", story.id, exc)
        return {"success": False, "story_id": story.id, "error": str(exc)}

    await _index_story(db, settings, story.id)
    logger.info("Published web story", extra={"story_id": story.id, "title": story.title})
    return {"success": True, "story_id": story.id, "title": story.title}


async def publish_queued_web_stories(
    db: AsyncClient, settings: Settings, now: Optional[datetime] = None
) -> List[dict]:
    """Publish approved, due queue items concurrently and return one result per item."""
    now = now or datetime.now(timezone.utc)
    items = await fetch_due_queue_items(db, now)
    if not items:
        logger.info("No web stories to publish")
        return []
    return list(await asyncio.gather(*(_publish_queue_item(db, settings, item, now) for item in items)))
