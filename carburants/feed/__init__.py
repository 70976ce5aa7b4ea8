"""Settings, logging and diagnostics around a feed refresh."""

from .config import FeedSettings, LOG_TIMEZONE, resolve_env_path
from .events import Event, EventHook, EventRecorder, logging_hook
from .logging import configure_logging
from .reporting import AttemptReport, RefreshReport

__all__ = [
    "AttemptReport",
    "Event",
    "EventHook",
    "EventRecorder",
    "FeedSettings",
    "LOG_TIMEZONE",
    "RefreshReport",
    "configure_logging",
    "logging_hook",
    "resolve_env_path",
]
