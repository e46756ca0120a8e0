"""Central logging configuration for the activity type engine.

Applies a root stdout handler so all module loggers emit at the configured
level without per-module setup, and avoids duplicate handlers when called
more than once.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig

from .config import get_settings


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            # SQL echo stays quiet unless explicitly raised
            "sqlalchemy.engine": {"level": "WARNING", "propagate": True},
        },
    }


def configure_logging() -> None:
    """Configure application-wide logging once.

    If the root logger already has handlers, return to prevent duplicate output.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config(get_settings().log_level))
