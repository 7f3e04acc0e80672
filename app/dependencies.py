"""FastAPI dependencies shared by the routers."""

import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import AsyncClient

from app.config import ConfigurationError, Settings, get_settings
from app.services.supabase import create_db

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


async def get_db(settings: Settings = Depends(get_settings)) -> AsyncClient:
    """Supabase client for one request."""
    try:
        return await create_db(settings)
    except ConfigurationError as exc:
        logger.error("Supabase is not configured: %s", exc)
        raise HTTPException(status_code=500, detail="Server configuration error")


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries the configured admin bearer token.

    When ``ADMIN_API_TOKEN`` is unset every caller is accepted.
    """
    if not settings.admin_api_token:
        return
    # compare_digest only accepts ASCII str, so compare the UTF-8 bytes
    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), settings.admin_api_token.encode("utf-8")
    ):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing admin token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
