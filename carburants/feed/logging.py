"""Logging setup for the refresh pipeline and the command line."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import FeedSettings
from .logging_safe import SafeFormatter, SafeJSONFormatter, make_formatter

_CONFIGURED_HANDLERS: list[logging.Handler] = []


class MaxLevelFilter(logging.Filter):
    """Filter that only lets records up to ``max_level`` through."""

    def __init__(self, max_level: int) -> None:
        super().__init__()
        self._max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - simple predicate
        return record.levelno <= self._max_level


def error_log_path(settings: FeedSettings) -> Path:
    return settings.log_dir / "errors.log"


def diagnostics_log_path(settings: FeedSettings) -> Path:
    return settings.log_dir / "diagnostics.log"


def configure_logging(settings: Optional[FeedSettings] = None, *, files: bool = True) -> None:
    """Configure console and rotating file handlers.

    Calling it again replaces the handlers installed by the previous call.
    """

    settings = settings or FeedSettings()

    level = getattr(logging, settings.log_level, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in _CONFIGURED_HANDLERS:
        root_logger.removeHandler(handler)
        handler.close()
    _CONFIGURED_HANDLERS.clear()

    formatter = make_formatter(settings.log_format)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    root_logger.addHandler(console)
    _CONFIGURED_HANDLERS.append(console)

    if not files:
        return

    settings.log_dir.mkdir(parents=True, exist_ok=True)

    error_handler = RotatingFileHandler(
        error_log_path(settings),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    root_logger.addHandler(error_handler)
    _CONFIGURED_HANDLERS.append(error_handler)

    diagnostics_handler = RotatingFileHandler(
        diagnostics_log_path(settings),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    diagnostics_handler.setLevel(min(level, logging.INFO))
    diagnostics_handler.addFilter(MaxLevelFilter(logging.ERROR - 1))
    diagnostics_handler.setFormatter(formatter)
    root_logger.addHandler(diagnostics_handler)
    _CONFIGURED_HANDLERS.append(diagnostics_handler)


__all__ = [
    "MaxLevelFilter",
    "SafeFormatter",
    "SafeJSONFormatter",
    "configure_logging",
    "diagnostics_log_path",
    "error_log_path",
]
