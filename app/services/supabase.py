"""Supabase access through the official async client."""

import logging
from typing import Any, Callable, List

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from app.config import Settings

logger = logging.getLogger(__name__)

# PostgREST caps responses at 1000 rows by default
PAGE_SIZE = 1000


class SupabaseError(RuntimeError):
    """A Supabase query failed (PostgREST error or transport error)."""


async def create_db(settings: Settings) -> AsyncClient:
    """Build an async Supabase client from *settings*.

    Raises:
        ConfigurationError: if the project URL or service key is missing.
    """
    settings.require_supabase()
    return await acreate_client(settings.supabase_url, settings.supabase_service_key)


async def execute(query: Any) -> List[dict]:
    """Run a query built with ``db.table(...)`` and return its rows."""
    try:
        response = await query.execute()
    except APIError as exc:
        raise SupabaseError(f"{exc.code or 'PostgREST'} error: {exc.message}") from exc
    except httpx.HTTPError as exc:
        raise SupabaseError(f"Supabase request failed: {exc}") from exc
    return response.data or []


async def execute_all(build: Callable[[], Any], page_size: int = PAGE_SIZE) -> List[dict]:
    """Fetch every row of the query returned by *build*, one range at a time.

    *build* is called once per page because query builders are not reusable
    after ``range()`` has been applied.
    """
    rows: List[dict] = []
    start = 0
    while True:
        page = await execute(build().range(start, start + page_size - 1))
        rows.extend(page)
        if len(page) < page_size:
            break
        start += page_size
    logger.debug("Fetched %d rows in pages of %d", len(rows), page_size)
    return rows
