from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from ..utils.logging import sanitize_log_message
from .config import LOG_TIMEZONE


class SafeFormatter(logging.Formatter):
    """Text formatter that sanitizes the rendered message.

    Arguments are merged into the message first so that secrets or control
    characters coming from ``args`` are covered as well.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.msg = sanitize_log_message(record.getMessage())
        record.args = ()
        return super().format(record)


class SafeJSONFormatter(logging.Formatter):
    """JSON logging formatter that sanitizes values."""

    _DEFAULT_FIELDS = {
        "name",
        "msg",
        "message",
        "asctime",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, LOG_TIMEZONE)
        payload: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_log_message(record.getMessage()),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        extras: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in self._DEFAULT_FIELDS:
                continue
            if isinstance(value, str):
                extras[key] = sanitize_log_message(value)
            else:
                extras[key] = value
        if extras:
            payload["extra"] = extras

        return json.dumps(payload, ensure_ascii=False, default=str)


def _paris_time_converter(timestamp: float | None) -> tuple:
    effective_timestamp = (
        timestamp
        if timestamp is not None
        else datetime.now(tz=LOG_TIMEZONE).timestamp()
    )
    return datetime.fromtimestamp(effective_timestamp, LOG_TIMEZONE).timetuple()


def make_formatter(log_format: str = "text") -> logging.Formatter:
    if log_format == "json":
        return SafeJSONFormatter()

    formatter = SafeFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    formatter.converter = _paris_time_converter
    return formatter
