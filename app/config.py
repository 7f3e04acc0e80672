"""Environment-driven settings."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing at the point of use."""


def _int_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Settings:
    site_base_url: str = "https://www.thebulletinbriefs.in"
    publication_name: str = "TheBulletinBriefs"
    publication_language: str = "en"
    supabase_url: str = ""
    supabase_service_key: str = ""
    indexnow_key: str = ""
    onesignal_app_id: str = ""
    onesignal_api_key: str = ""
    admin_api_token: str = ""
    indexing_dedupe_minutes: int = 60
    notification_min_interval_minutes: int = 10
    http_timeout: int = 10
    cors_origins: Tuple[str, ...] = field(default=("*",))
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        return self.site_base_url.rstrip("/")

    @property
    def site_host(self) -> str:
        """Bare host of the public site, e.g. ``thebulletinbriefs.in``."""
        host = urlparse(self.base_url).netloc
        return host[4:] if host.startswith("www.") else host

    def require_supabase(self) -> None:
        if not self.supabase_url or not self.supabase_service_key:
            raise ConfigurationError("Missing Supabase environment variables")


def load_settings() -> Settings:
    """Build :class:`Settings` from the process environment."""
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        site_base_url=os.getenv("SITE_BASE_URL", Settings.site_base_url),
        publication_name=os.getenv("PUBLICATION_NAME", Settings.publication_name),
        publication_language=os.getenv("PUBLICATION_LANGUAGE", Settings.publication_language),
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_service_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
        indexnow_key=os.getenv("INDEXNOW_KEY", ""),
        onesignal_app_id=os.getenv("ONESIGNAL_APP_ID", ""),
        onesignal_api_key=os.getenv("ONESIGNAL_REST_API_KEY", ""),
        admin_api_token=os.getenv("ADMIN_API_TOKEN", ""),
        indexing_dedupe_minutes=_int_env("INDEXING_DEDUPE_MINUTES", 60),
        notification_min_interval_minutes=_int_env("NOTIFICATION_MIN_INTERVAL_MINUTES", 10),
        http_timeout=_int_env("HTTP_TIMEOUT", 10),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
