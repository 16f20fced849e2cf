"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
from collections.abc import Mapping
from typing import Any

from .config import LoggingSettings

# httpx and the ASGI server log every request at INFO; the dashboard polls.
_NOISY_LOGGERS: Mapping[str, str] = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "uvicorn.access": "WARNING",
}


def _formatter(structured: bool) -> dict[str, Any]:
    if structured:
        return {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        }
    return {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}


def configure_logging(
    settings: LoggingSettings,
    *,
    logger_levels: Mapping[str, str] | None = None,
) -> None:
    """Configure root logging and quiet chatty transport loggers."""
    levels = {**_NOISY_LOGGERS, **(logger_levels or {})}
    dict_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": _formatter(settings.structured)},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": settings.level,
            },
        },
        "loggers": {name: {"level": level} for name, level in levels.items()},
        "root": {
            "handlers": ["console"],
            "level": settings.level,
        },
    }

    logging.config.dictConfig(dict_config)
    logging.getLogger(__name__).debug(
        "Logging configured at %s (structured=%s)", settings.level, settings.structured
    )


__all__ = ["configure_logging"]
