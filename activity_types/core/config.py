"""
Configuration helpers for the activity type engine.

Exposes a frozen Settings object built from environment variables (database
URL, pinned limit, quarantine range, log level) so that repositories and
services do not read os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    max_pinned_activity_types: int
    quarantine_base: int
    log_level: str


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        database_url=os.getenv("DATABASE_URL", "sqlite:///activity_types.db"),
        max_pinned_activity_types=_int(os.getenv("MAX_PINNED_ACTIVITY_TYPES", "4"), 4),
        # quarantine values are always negative, so the base only has to be positive
        quarantine_base=max(1, _int(os.getenv("ACTIVITY_TYPE_QUARANTINE_BASE", "1000"), 1000)),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
