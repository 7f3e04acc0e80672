import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from supabase import AsyncClient

from app.config import ConfigurationError, Settings, get_settings
from app.dependencies import get_db, require_admin
from app.limiter import limiter
from app.models.notification_request import NotificationRequest
from app.models.notification_response import NotificationResponse
from app.services.notifications import (
    ArticleNotFoundError,
    NotificationError,
    send_article_notification,
)
from app.services.supabase import SupabaseError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"], dependencies=[Depends(require_admin)])


@router.post("/notifications/send", response_model=NotificationResponse, summary="Send a push notification")
@limiter.limit("10/minute")
async def send_notification(
    request: Request,
    body: NotificationRequest,
    db: AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> NotificationResponse:
    """Push a new-article (or test) notification to every subscriber.

    Non-test sends are throttled: an article is announced at most once, and
    no two pushes go out within ``NOTIFICATION_MIN_INTERVAL_MINUTES``.
    Throttled requests return ``skipped=true`` with the reason.
    """
    logger.info(
        "Notification requested", extra={"article_id": body.article_id, "is_test": body.is_test}
    )
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            result = await send_article_notification(
                db, client, settings, body.article_id, body.is_test
            )
    except ArticleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConfigurationError as exc:
        logger.error("Notification configuration error: %s", exc)
        raise HTTPException(status_code=500, detail="Server configuration error")
    except NotificationError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except SupabaseError as exc:
        logger.error("Database error sending notification: %s", exc)
        raise HTTPException(status_code=502, detail="Database request failed.")

    return NotificationResponse(**result._asdict())
