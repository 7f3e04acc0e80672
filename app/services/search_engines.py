"""Outbound notifications to search engines (IndexNow, sitemap pings, Google Indexing API).

Every call is best-effort: failures are logged and reported as ``False``,
never raised, so a flaky search engine cannot break a publishing job.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence
from urllib.parse import quote

import httpx
from supabase import AsyncClient

from app.config import Settings
from app.services.content import fetch_gsc_config, update_gsc_token
from app.services.sitemap import as_utc
from app.services.supabase import SupabaseError
from app.services.urls import sitemap_url

logger = logging.getLogger(__name__)

INDEXNOW_ENDPOINT = "https://api.indexnow.org/indexnow"
INDEXNOW_BATCH_SIZE = 10_000
INDEXNOW_BATCH_PAUSE = 1.0  # seconds

GOOGLE_PING = "https://www.google.com/ping?sitemap="
BING_PING = "https://www.bing.com/ping?sitemap="

GOOGLE_INDEXING_ENDPOINT = "https://indexing.googleapis.com/v3/urlNotifications:publish"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"

MAX_ATTEMPTS = 3
RETRY_DELAY = 1.0  # seconds
RETRY_BACKOFF = 2


def _should_retry(response: httpx.Response) -> bool:
    return response.status_code == 429 or response.status_code >= 500


async def request_with_retry(
    client: httpx.AsyncClient, method: str, url: str, **kwargs
) -> Optional[httpx.Response]:
    """Send a request, retrying transport errors, 429 and 5xx with exponential backoff.

    Returns the last response received, or ``None`` when every attempt failed
    at the transport level.
    """
    response: Optional[httpx.Response] = None
    for attempt in range(MAX_ATTEMPTS):
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            logger.warning(
                "Request to %s failed (attempt %d/%d): %s", url, attempt + 1, MAX_ATTEMPTS, exc
            )
            response = None
        else:
            if not _should_retry(response):
                return response
            logger.warning(
                "Request to %s returned HTTP %d (attempt %d/%d)",
                url,
                response.status_code,
                attempt + 1,
                MAX_ATTEMPTS,
            )

        if attempt < MAX_ATTEMPTS - 1:
            await asyncio.sleep(RETRY_DELAY * (RETRY_BACKOFF ** attempt))
    return response


# ---------------------------------------------------------------------------
# IndexNow
# ---------------------------------------------------------------------------

def _batches(urls: Sequence[str], size: int) -> List[Sequence[str]]:
    return [urls[i : i + size] for i in range(0, len(urls), size)]


async def submit_to_indexnow(
    client: httpx.AsyncClient, urls: Sequence[str], settings: Settings
) -> bool:
    """Submit *urls* to IndexNow; ``True`` only if every batch was accepted."""
    if not settings.indexnow_key:
        logger.info("INDEXNOW_KEY not configured, skipping IndexNow submission")
        return False
    if not urls:
        return False

    batches = _batches(list(urls), INDEXNOW_BATCH_SIZE)
    all_ok = True
    for index, batch in enumerate(batches):
        payload = {
            "host": settings.site_host,
            "key": settings.indexnow_key,
            "keyLocation": f"{settings.base_url}/{settings.indexnow_key}.txt",
            "urlList": list(batch),
        }
        response = await request_with_retry(client, "POST", INDEXNOW_ENDPOINT, json=payload)
        ok = response is not None and response.is_success
        if ok:
            logger.info("IndexNow accepted %d URL(s)", len(batch))
        else:
            status = response.status_code if response is not None else "no response"
            logger.warning("IndexNow rejected batch %d (%s)", index + 1, status)
            all_ok = False
        if index < len(batches) - 1:
            await asyncio.sleep(INDEXNOW_BATCH_PAUSE)
    return all_ok


# ---------------------------------------------------------------------------
# Sitemap pings
# ---------------------------------------------------------------------------

async def ping_sitemap(client: httpx.AsyncClient, ping_endpoint: str, sitemap: str) -> bool:
    response = await request_with_retry(client, "GET", ping_endpoint + quote(sitemap, safe=""))
    ok = response is not None and response.is_success
    if not ok:
        logger.warning("Sitemap ping failed", extra={"endpoint": ping_endpoint, "sitemap": sitemap})
    return ok


async def ping_google(client: httpx.AsyncClient, sitemap: str) -> bool:
    return await ping_sitemap(client, GOOGLE_PING, sitemap)


async def ping_bing(client: httpx.AsyncClient, sitemap: str) -> bool:
    return await ping_sitemap(client, BING_PING, sitemap)


# ---------------------------------------------------------------------------
# Google Indexing API
# ---------------------------------------------------------------------------

async def refresh_access_token(
    client: httpx.AsyncClient, client_id: str, client_secret: str, refresh_token: str
) -> Optional[dict]:
    """Exchange a refresh token for a fresh access token.

    Returns Google's token payload (``access_token``, ``expires_in``) or ``None``.
    """
    response = await request_with_retry(
        client,
        "POST",
        GOOGLE_TOKEN_ENDPOINT,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
    )
    if response is None or not response.is_success:
        logger.error("Google token refresh failed")
        return None
    return response.json()


async def _google_access_token(
    client: httpx.AsyncClient, db: AsyncClient, now: datetime
) -> Optional[str]:
    try:
        config = await fetch_gsc_config(db)
    except SupabaseError as exc:
        logger.warning("Could not load gsc_config: %s", exc)
        return None
    if config is None:
        return None

    expired = config.token_expires_at is None or as_utc(config.token_expires_at) <= now
    if config.access_token and not expired:
        return config.access_token

    if not (config.client_id and config.client_secret and config.refresh_token):
        logger.warning("gsc_config token expired and no refresh credentials are stored")
        return None

    token = await refresh_access_token(
        client, config.client_id, config.client_secret, config.refresh_token
    )
    if not token or not token.get("access_token"):
        return None

    expires_at = now + timedelta(seconds=int(token.get("expires_in", 3600)))
    try:
        await update_gsc_token(db, token["access_token"], expires_at)
    except SupabaseError as exc:
        # The fresh token is still usable for this call
        logger.warning("Could not persist refreshed Google token: %s", exc)
    return token["access_token"]


async def submit_to_google_indexing(
    client: httpx.AsyncClient,
    db: AsyncClient,
    url: str,
    settings: Settings,
    notification_type: str = "URL_UPDATED",
    now: Optional[datetime] = None,
) -> bool:
    """Notify the Google Indexing API about *url*.

    Falls back to a Google ping of the main sitemap when no usable OAuth
    token is available.
    """
    now = now or datetime.now(timezone.utc)
    access_token = await _google_access_token(client, db, now)
    if not access_token:
        logger.info("No Google access token available, falling back to sitemap ping")
        return await ping_google(client, sitemap_url(settings.base_url, "main"))

    response = await request_with_retry(
        client,
        "POST",
        GOOGLE_INDEXING_ENDPOINT,
        json={"url": url, "type": notification_type},
        headers={"Authorization": f"Bearer {access_token}"},
    )
    if response is not None and response.is_success:
        logger.info("Google Indexing API accepted %s", url)
        return True
    status = response.status_code if response is not None else "no response"
    logger.error("Google Indexing API failed for %s (%s)", url, status)
    return False


async def ping_all(sitemaps: Sequence[str], settings: Settings) -> dict:
    """Ping Google and Bing for each sitemap; background-task entry point."""
    results = {}
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        for sitemap in sitemaps:
            google_ok = await ping_google(client, sitemap)
            bing_ok = await ping_bing(client, sitemap)
            results[sitemap] = google_ok and bing_ok
    logger.info(
        "Sitemaps submitted to Google and Bing",
        extra={"sitemaps": len(sitemaps), "accepted": sum(results.values())},
    )
    return results
