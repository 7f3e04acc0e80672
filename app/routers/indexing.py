import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from supabase import AsyncClient

from app.config import Settings, get_settings
from app.dependencies import get_db, require_admin
from app.limiter import limiter
from app.models.indexing_request import (
    ArticleSectionIndexingRequest,
    PageIndexingRequest,
    VideoIndexingRequest,
    WebStoryIndexingRequest,
)
from app.models.indexing_response import IndexingResponse
from app.services.content import SectionNotFoundError
from app.services.indexing import (
    IndexingPlan,
    plan_all_pages_indexing,
    plan_page_indexing,
    plan_upsc_indexing,
    plan_video_indexing,
    plan_web3_indexing,
    plan_web_story_indexing,
    recently_indexed,
    run_bulk_indexing,
    run_page_indexing,
    run_section_indexing,
)
from app.services.supabase import SupabaseError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/indexing", tags=["indexing"], dependencies=[Depends(require_admin)])

Job = Callable[[IndexingPlan, Settings], Awaitable[dict]]


async def _build_plan(planner: Awaitable[IndexingPlan]) -> IndexingPlan:
    try:
        return await planner
    except SectionNotFoundError as exc:
        logger.warning("Indexing section missing: %s", exc)
        raise HTTPException(status_code=404, detail=str(exc))
    except SupabaseError as exc:
        logger.error("Database error while planning indexing: %s", exc)
        raise HTTPException(status_code=502, detail="Database request failed.")


async def _schedule(
    plan: IndexingPlan,
    job: Job,
    force: bool,
    db: AsyncClient,
    settings: Settings,
    background_tasks: BackgroundTasks,
    empty_message: str,
) -> IndexingResponse:
    """Skip, refuse or schedule *plan* and describe the outcome."""
    if not plan.urls:
        return IndexingResponse(success=False, message=empty_message, mode=plan.mode)

    response = IndexingResponse(
        success=True,
        message=f"Indexing started for {len(plan.urls)} URL(s)",
        urls=plan.urls[:10],
        total_urls=len(plan.urls),
        mode=plan.mode,
        main_url=plan.main_url,
    )

    if not force:
        try:
            skip = await recently_indexed(db, plan, settings.indexing_dedupe_minutes)
        except SupabaseError as exc:
            logger.warning("Could not check indexing history: %s", exc)
            skip = False
        if skip:
            logger.info(
                "Indexing skipped, target already indexed",
                extra={"action_type": plan.action_type, "target_id": plan.target_id},
            )
            response.message = "Already indexed recently; pass force=true to resubmit"
            response.skipped = True
            return response

    background_tasks.add_task(job, plan, settings)
    logger.info(
        "Indexing scheduled",
        extra={"action_type": plan.action_type, "mode": plan.mode, "urls": len(plan.urls)},
    )
    return response


@router.post("/pages", response_model=IndexingResponse, summary="Index an article, category or the home page")
@limiter.limit("30/minute")
async def index_pages(
    request: Request,
    body: PageIndexingRequest,
    background_tasks: BackgroundTasks,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IndexingResponse:
    """Google Indexing API for the main URL, IndexNow for every URL, then sitemap pings.

    ``action="delete"`` sends ``URL_DELETED`` to the Indexing API instead of
    ``URL_UPDATED``.
    """
    plan = await _build_plan(
        plan_page_indexing(
            db, settings, body.page_type, body.article_id, body.category_slug, body.action
        )
    )
    return await _schedule(
        plan, run_page_indexing, body.force, db, settings, background_tasks, "Article not found"
    )


@router.post("/web-stories", response_model=IndexingResponse, summary="Index web stories")
@limiter.limit("30/minute")
async def index_web_stories(
    request: Request,
    body: WebStoryIndexingRequest,
    background_tasks: BackgroundTasks,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IndexingResponse:
    plan = await _build_plan(plan_web_story_indexing(db, settings, body.mode, body.story_id))
    return await _schedule(
        plan,
        run_section_indexing,
        body.force,
        db,
        settings,
        background_tasks,
        "No web stories found to index",
    )


@router.post("/upsc", response_model=IndexingResponse, summary="Index UPSC articles")
@limiter.limit("30/minute")
async def index_upsc(
    request: Request,
    body: ArticleSectionIndexingRequest,
    background_tasks: BackgroundTasks,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IndexingResponse:
    plan = await _build_plan(plan_upsc_indexing(db, settings, body.mode, body.article_id))
    return await _schedule(
        plan,
        run_section_indexing,
        body.force,
        db,
        settings,
        background_tasks,
        "No UPSC articles found to index",
    )


@router.post("/web3", response_model=IndexingResponse, summary="Index Web3 for India articles")
@limiter.limit("30/minute")
async def index_web3(
    request: Request,
    body: ArticleSectionIndexingRequest,
    background_tasks: BackgroundTasks,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IndexingResponse:
    plan = await _build_plan(plan_web3_indexing(db, settings, body.mode, body.article_id))
    return await _schedule(
        plan,
        run_section_indexing,
        body.force,
        db,
        settings,
        background_tasks,
        "No Web3 articles found to index",
    )


@router.post("/videos", response_model=IndexingResponse, summary="Index homepage videos")
@limiter.limit("30/minute")
async def index_videos(
    request: Request,
    body: VideoIndexingRequest,
    background_tasks: BackgroundTasks,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IndexingResponse:
    plan = await _build_plan(plan_video_indexing(db, settings, body.mode, body.video_id))
    return await _schedule(
        plan,
        run_section_indexing,
        body.force,
        db,
        settings,
        background_tasks,
        "No videos found to index",
    )


@router.post("/all-pages", response_model=IndexingResponse, summary="Submit every public page")
@limiter.limit("2/minute")
async def index_all_pages(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IndexingResponse:
    """Homepage, fixed pages, every article and category, exam pages and the sitemaps.

    IndexNow receives the URLs in batches of 10 000.
    """
    plan = await _build_plan(plan_all_pages_indexing(db, settings))
    response = await _schedule(
        plan, run_bulk_indexing, True, db, settings, background_tasks, "No pages found to index"
    )
    response.message = f"Bulk indexing started for {len(plan.urls)} URLs"
    return response
