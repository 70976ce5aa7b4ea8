"""Structured diagnostic events emitted by the ingestion pipeline.

Core functions accept an optional ``events`` hook instead of printing.  The
hook receives an :class:`Event`; :func:`logging_hook` forwards events to the
``carburants.events`` logger and :class:`EventRecorder` keeps them in memory
for inspection in tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional

__all__ = [
    "Event",
    "EventHook",
    "EventRecorder",
    "emit",
    "fanout",
    "logging_hook",
]

log = logging.getLogger("carburants.events")


@dataclass(frozen=True)
class Event:
    name: str
    fields: Mapping[str, Any] = field(default_factory=dict)


EventHook = Callable[[Event], None]


def logging_hook(event: Event) -> None:
    """Forward ``event`` to the ``carburants.events`` logger at DEBUG level."""

    if not log.isEnabledFor(logging.DEBUG):
        return
    details = " ".join(f"{key}={value!r}" for key, value in event.fields.items())
    log.debug("%s %s", event.name, details, extra={"event": event.name})


def emit(hook: Optional[EventHook], name: str, /, **fields: Any) -> None:
    """Send an event to ``hook``; falls back to :func:`logging_hook`.

    Failures inside user supplied hooks are logged and never interrupt the
    pipeline.
    """

    target = hook or logging_hook
    try:
        target(Event(name, dict(fields)))
    except Exception:
        log.exception("Event hook failed for '%s'", name)


def fanout(*hooks: Optional[EventHook]) -> EventHook:
    """Combine several hooks into one."""

    active = [hook for hook in hooks if hook is not None]

    def _dispatch(event: Event) -> None:
        for hook in active:
            hook(event)

    return _dispatch


class EventRecorder:
    """Collects events; thread-safe so it can observe concurrent refreshes."""

    def __init__(self) -> None:
        self._events: List[Event] = []
        self._lock = RLock()

    def __call__(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def names(self) -> List[str]:
        return [event.name for event in self.events]

    def named(self, name: str) -> List[Dict[str, Any]]:
        return [dict(event.fields) for event in self.events if event.name == name]
