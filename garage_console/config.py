"""Runtime configuration loaded from the environment.

Values are read once and cached; tests that tweak environment variables call
:func:`reset_settings_cache` afterwards.  A ``.env`` file in the working
directory is honoured through python-dotenv when the application starts.
"""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> tuple[str, ...]:
    raw = os.getenv(name) or ""
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclasses.dataclass(frozen=True)
class AppSettings:
    """Settings shared by the HTTP layer and the services."""

    database_url: str | None = None
    identity_api_url: str | None = None
    identity_api_key: str | None = None
    identity_api_timeout: float = 10.0
    landing_rate_limit: str = "60/minute"
    admin_ui_origins: tuple[str, ...] = ()
    brand_name: str = "Garage Console"
    logo_url: str = ""
    auto_create_schema: bool = False


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Load settings from the environment with development defaults."""

    return AppSettings(
        database_url=os.getenv("DATABASE_URL") or None,
        identity_api_url=os.getenv("IDENTITY_API_URL") or None,
        identity_api_key=os.getenv("IDENTITY_API_KEY") or None,
        identity_api_timeout=float(os.getenv("IDENTITY_API_TIMEOUT", "10")),
        landing_rate_limit=os.getenv("LANDING_RATE_LIMIT", "60/minute"),
        admin_ui_origins=_env_list("ADMIN_UI_ORIGINS"),
        brand_name=os.getenv("BRAND_NAME", "Garage Console"),
        logo_url=os.getenv("LOGO_URL", ""),
        auto_create_schema=_env_flag("AUTO_CREATE_SCHEMA"),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()


__all__ = ["AppSettings", "get_settings", "reset_settings_cache"]
