from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, ValidationError


class Settings(BaseModel):
    bot_token: str
    supabase_url: HttpUrl
    supabase_service_key: str
    environment: Literal["local", "staging", "production"] = "local"
    # Google Drive access for share-link checks; either may be empty
    drive_access_token: str | None = None
    drive_api_key: str | None = None
    urgent_threshold_days: int = Field(default=7, ge=0)
    default_plan_weeks: int = Field(default=4, ge=1)
    link_check_interval_minutes: int = Field(default=60, ge=1)
    link_check_concurrency: int = Field(default=8, ge=1)
    owner_chat_id: int | None = None
    digest_hour: int = Field(default=9, ge=0, le=23)

    @property
    def is_debug(self) -> bool:
        return self.environment == "local"


_REQUIRED_KEYS = ("BOT_TOKEN", "SUPABASE_URL", "SUPABASE_SERVICE_KEY")

_OPTIONAL_KEYS = {
    "drive_access_token": "GOOGLE_DRIVE_TOKEN",
    "drive_api_key": "GOOGLE_API_KEY",
    "urgent_threshold_days": "URGENT_THRESHOLD_DAYS",
    "default_plan_weeks": "DEFAULT_PLAN_WEEKS",
    "link_check_interval_minutes": "LINK_CHECK_INTERVAL_MINUTES",
    "link_check_concurrency": "LINK_CHECK_CONCURRENCY",
    "owner_chat_id": "OWNER_CHAT_ID",
    "digest_hour": "DIGEST_HOUR",
}


def _build_settings() -> Settings:
    # Load .env file once on first settings build (for local development)
    load_dotenv()

    optional = {
        field: os.environ[key] for field, key in _OPTIONAL_KEYS.items() if os.getenv(key)
    }

    try:
        return Settings(
            bot_token=os.environ["BOT_TOKEN"],
            supabase_url=os.environ["SUPABASE_URL"],
            supabase_service_key=os.environ["SUPABASE_SERVICE_KEY"],
            environment=os.getenv("ENVIRONMENT", "local"),
            **optional,
        )
    except KeyError as exc:
        missing = [key for key in _REQUIRED_KEYS if key not in os.environ]
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        ) from exc
    except ValidationError as exc:
        raise RuntimeError(f"Invalid settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Reads environment variables once and validates them with Pydantic.
    """

    return _build_settings()
