"""Web-push notifications for new articles via OneSignal."""

import logging
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

import httpx
from supabase import AsyncClient

from app.config import ConfigurationError, Settings
from app.services.content import fetch_article, last_successful_automation, log_automation
from app.services.sitemap import as_utc
from app.services.supabase import SupabaseError
from app.services.urls import article_url

logger = logging.getLogger(__name__)

ONESIGNAL_ENDPOINT = "https://api.onesignal.com/notifications"
ACTION_TYPE = "push_notification"

TEST_HEADING = "📰 Test Notification"
TEST_MESSAGE = "This is a test notification from The Bulletin Briefs!"


class NotificationError(RuntimeError):
    """OneSignal refused the notification or could not be reached."""


class ArticleNotFoundError(LookupError):
    pass


class NotificationResult(NamedTuple):
    success: bool
    message: str
    recipients: int = 0
    id: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None


async def throttle_reason(
    db: AsyncClient, article_id: str, min_interval_minutes: int, now: datetime
) -> Optional[str]:
    """Why a push for *article_id* must not be sent right now, or ``None``."""
    if await last_successful_automation(db, ACTION_TYPE, article_id) is not None:
        return "already_notified"
    if min_interval_minutes > 0:
        last_push = await last_successful_automation(db, ACTION_TYPE)
        if last_push is not None and as_utc(last_push) > now - timedelta(minutes=min_interval_minutes):
            return "min_interval"
    return None


async def push(
    client: httpx.AsyncClient, settings: Settings, heading: str, message: str, url: str
) -> dict:
    """POST one notification to every subscribed user; return OneSignal's JSON body."""
    if not settings.onesignal_api_key:
        raise ConfigurationError("ONESIGNAL_REST_API_KEY not configured")

    payload = {
        "app_id": settings.onesignal_app_id,
        "included_segments": ["Subscribed Users"],
        "contents": {"en": message},
        "headings": {"en": heading},
        "url": url,
    }
    # Not retried: a repeated POST would notify subscribers twice
    try:
        response = await client.post(
            ONESIGNAL_ENDPOINT,
            json=payload,
            headers={"Authorization": f"Basic {settings.onesignal_api_key}"},
        )
    except httpx.RequestError as exc:
        raise NotificationError(f"OneSignal request failed: {exc}") from exc

    if not response.is_success:
        logger.error(
            "OneSignal rejected notification",
            extra={"status": response.status_code, "body": response.text[:500]},
        )
        raise NotificationError(f"OneSignal returned HTTP {response.status_code}")
    return response.json()


async def send_article_notification(
    db: AsyncClient,
    client: httpx.AsyncClient,
    settings: Settings,
    article_id: Optional[str],
    is_test: bool = False,
    now: Optional[datetime] = None,
) -> NotificationResult:
    """Announce a published article (or a test message) to push subscribers.

    Raises:
        ArticleNotFoundError: no published article has *article_id*.
        NotificationError: OneSignal rejected the push.
        ConfigurationError: the OneSignal key is not configured.
    """
    now = now or datetime.now(timezone.utc)

    if is_test:
        heading, url, message = TEST_HEADING, settings.base_url, TEST_MESSAGE
    else:
        article = await fetch_article(db, article_id) if article_id else None
        if article is None:
            raise ArticleNotFoundError("Article not found")

        reason = await throttle_reason(
            db, article_id, settings.notification_min_interval_minutes, now
        )
        if reason:
            logger.info("Notification skipped", extra={"article_id": article_id, "reason": reason})
            return NotificationResult(
                success=True, message="Notification skipped", skipped=True, reason=reason
            )

        heading = f"📰 New Article: {article.title}"
        url = article_url(settings.base_url, article.slug)
        message = article.excerpt or article.title

    result = await push(client, settings, heading, message, url)
    logger.info("Notification sent", extra={"article_id": article_id, "id": result.get("id")})

    if not is_test:
        try:
            await log_automation(db, ACTION_TYPE, "onesignal", "success", article_id=article_id)
        except SupabaseError as exc:
            logger.error("Could not record notification: %s", exc)

    return NotificationResult(
        success=True,
        message="Notification sent successfully",
        recipients=result.get("recipients") or 0,
        id=result.get("id"),
    )
