import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from supabase import AsyncClient

from app.config import Settings, get_settings
from app.dependencies import get_db, require_admin
from app.limiter import limiter
from app.models.regenerate_request import RegenerateRequest
from app.models.regenerate_response import RegenerateResponse, SitemapResult
from app.services.content import SectionNotFoundError
from app.services.indexing import plan_page_indexing, run_page_indexing
from app.services.search_engines import ping_all
from app.services.sitemap import parse_sitemap_locs
from app.services.sitemap_builder import INDEXED_SITEMAPS, STATIC_SITEMAPS, generate_sitemap
from app.services.supabase import SupabaseError
from app.services.urls import SITEMAP_PATHS, sitemap_url

logger = logging.getLogger(__name__)

router = APIRouter()

XML_MEDIA_TYPE = "application/xml; charset=utf-8"
CACHE_CONTROL = "public, max-age=3600, s-maxage=3600, stale-while-revalidate"


async def _render(kind: str, db: Optional[AsyncClient], settings: Settings) -> Response:
    """Build the sitemap of *kind* and map data-layer errors to HTTP errors."""
    try:
        xml = await generate_sitemap(kind, db, settings)
    except SectionNotFoundError as exc:
        logger.warning("Sitemap %s unavailable: %s", kind, exc)
        raise HTTPException(status_code=404, detail=str(exc))
    except SupabaseError as exc:
        logger.error("Database error generating %s sitemap: %s", kind, exc)
        raise HTTPException(status_code=502, detail="Error generating sitemap.")
    return Response(content=xml, media_type=XML_MEDIA_TYPE, headers={"Cache-Control": CACHE_CONTROL})


def _sitemap_endpoint(kind: str) -> Callable:
    if kind in STATIC_SITEMAPS:

        async def serve_static_sitemap(
            request: Request, settings: Settings = Depends(get_settings)
        ) -> Response:
            return await _render(kind, None, settings)

        serve_static_sitemap.__name__ = f"{kind}_sitemap"
        return serve_static_sitemap

    async def serve_sitemap(
        request: Request,
        db: AsyncClient = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> Response:
        return await _render(kind, db, settings)

    serve_sitemap.__name__ = f"{kind}_sitemap"
    return serve_sitemap


for _kind, _path in SITEMAP_PATHS.items():
    router.add_api_route(
        _path,
        limiter.limit("60/minute")(_sitemap_endpoint(_kind)),
        methods=["GET"],
        response_class=Response,
        summary=f"{_kind.capitalize()} sitemap",
        tags=["sitemaps"],
    )


@router.post(
    "/sitemaps/regenerate",
    response_model=RegenerateResponse,
    summary="Rebuild sitemaps and notify search engines",
    tags=["sitemaps"],
    dependencies=[Depends(require_admin)],
)
@limiter.limit("10/minute")
async def regenerate(
    request: Request,
    body: RegenerateRequest,
    background_tasks: BackgroundTasks,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> RegenerateResponse:
    """Rebuild the requested sitemaps and report how many URLs each contains.

    When ``submit_to_search_engines`` is set, the sitemap index and every
    individual sitemap are pinged to Google and Bing in the background, and
    page indexing is scheduled for ``article_id`` if one is given.
    """
    kinds = INDEXED_SITEMAPS if body.sitemap_type == "all" else (body.sitemap_type,)
    now = datetime.now(timezone.utc)
    logger.info("Sitemap regeneration requested", extra={"sitemap_type": body.sitemap_type})

    results = {}
    for kind in kinds:
        try:
            xml = await generate_sitemap(kind, db, settings, now)
        except (SupabaseError, SectionNotFoundError) as exc:
            logger.warning("Regenerating %s sitemap failed: %s", kind, exc)
            results[kind] = SitemapResult(status="error", error=str(exc))
            continue
        results[kind] = SitemapResult(status="success", url_count=len(parse_sitemap_locs(xml)))

    submitted = []
    if body.submit_to_search_engines:
        submitted = [sitemap_url(settings.base_url, "index")]
        submitted += [sitemap_url(settings.base_url, kind) for kind in INDEXED_SITEMAPS]
        background_tasks.add_task(ping_all, submitted, settings)

        if body.article_id:
            try:
                plan = await plan_page_indexing(db, settings, "article", article_id=body.article_id)
            except SupabaseError as exc:
                logger.warning("Could not schedule indexing for %s: %s", body.article_id, exc)
            else:
                if plan.urls:
                    background_tasks.add_task(run_page_indexing, plan, settings)

    ok = all(result.status == "success" for result in results.values())
    message = "Sitemaps regenerated and submitted" if submitted else "Sitemaps regenerated"
    return RegenerateResponse(
        success=ok,
        message=message,
        sitemaps=results,
        submitted=submitted,
    )
