from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_RATE_LIMIT_MS, DEFAULT_USER_AGENT

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    value = os.getenv(name, default)
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Settings:
    # Application store: receives task-tracking rows. Scraped jobs go to the
    # user's own store, resolved per request.
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_key: str | None = (
        os.getenv("SUPABASE_KEY")
        or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        or os.getenv("SUPABASE_ANON_KEY")
    )

    rate_limit_ms: int = _env_int("SCRAPE_RATE_LIMIT_MS", DEFAULT_RATE_LIMIT_MS)
    http_timeout_seconds: int = _env_int("SCRAPE_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS)
    user_agent: str = os.getenv("SCRAPE_USER_AGENT", DEFAULT_USER_AGENT)

    # Optional override for the bundled sites.yaml catalog
    site_registry_path: str | None = os.getenv("SITE_REGISTRY_PATH")

    # PostHog logging (OTLP) configuration
    posthog_project_api_key: str | None = os.getenv("POSTHOG_PROJECT_API_KEY")
    posthog_logs_endpoint: str | None = os.getenv("POSTHOG_LOGS_ENDPOINT")
    posthog_region: str | None = os.getenv("POSTHOG_REGION")
    posthog_disabled: bool = _env_flag("POSTHOG_DISABLED", "false") or _env_flag(
        "POSTHOG_DISABLE", "false"
    )

    @property
    def posthog_enabled(self) -> bool:
        return bool(self.posthog_project_api_key) and not self.posthog_disabled


settings = Settings()
