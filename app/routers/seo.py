import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from supabase import AsyncClient

from app.config import Settings, get_settings
from app.dependencies import get_db, require_admin
from app.limiter import limiter
from app.models.seo_request import SeoScanRequest
from app.models.seo_response import SeoScanResponse
from app.services.fetcher import TIMEOUT
from app.services.seo_health import scan_seo_health
from app.services.supabase import SupabaseError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/seo", tags=["seo"], dependencies=[Depends(require_admin)])


@router.post("/scan", response_model=SeoScanResponse, summary="Scan published articles for SEO issues")
@limiter.limit("2/minute")
async def scan(
    request: Request,
    body: SeoScanRequest,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SeoScanResponse:
    """Check every published article, auto-fix missing metadata and log each issue.

    Missing or mismatched canonical URLs, meta titles and meta descriptions
    are corrected in place; everything else is recorded as an open issue.
    """
    try:
        async with httpx.AsyncClient(follow_redirects=False, timeout=TIMEOUT) as client:
            summary = await scan_seo_health(db, client, settings, fetch_pages=body.fetch_pages)
    except SupabaseError as exc:
        logger.error("SEO scan failed: %s", exc)
        raise HTTPException(status_code=502, detail="Database request failed.")

    return SeoScanResponse(
        message=f"SEO scan complete. Found {summary['total_issues']} issues.", **summary
    )
