import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from supabase import AsyncClient

from app.config import Settings, get_settings
from app.dependencies import get_db, require_admin
from app.limiter import limiter
from app.models.publish_response import PublishArticlesResponse, PublishWebStoriesResponse
from app.services.publisher import publish_queued_web_stories, publish_scheduled_articles
from app.services.supabase import SupabaseError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/publishing", tags=["publishing"], dependencies=[Depends(require_admin)])


@router.post("/articles", response_model=PublishArticlesResponse, summary="Publish due scheduled articles")
@limiter.limit("10/minute")
async def publish_articles(
    request: Request,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> PublishArticlesResponse:
    """Meant to be called by a scheduler every few minutes; safe to repeat."""
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            published = await publish_scheduled_articles(db, client, settings)
    except SupabaseError as exc:
        logger.error("Failed to fetch scheduled articles: %s", exc)
        raise HTTPException(status_code=502, detail="Database request failed.")

    message = f"Published {len(published)} article(s)" if published else "No articles to publish"
    return PublishArticlesResponse(message=message, count=len(published), articles=published)


@router.post("/web-stories", response_model=PublishWebStoriesResponse, summary="Publish queued web stories")
@limiter.limit("10/minute")
async def publish_web_stories(
    request: Request,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> PublishWebStoriesResponse:
    try:
        results = await publish_queued_web_stories(db, settings)
    except SupabaseError as exc:
        logger.error("Failed to fetch web story queue: %s", exc)
        raise HTTPException(status_code=502, detail="Database request failed.")

    published = sum(1 for r in results if r["success"])
    failed = len(results) - published
    message = f"Published {published} stories, {failed} failed" if results else "No stories to publish"
    return PublishWebStoriesResponse(
        message=message, published=published, failed=failed, results=results
    )
