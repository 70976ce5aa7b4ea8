"""Reporting primitives for feed refresh runs."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from typing import List, Optional


def clean_message(message: Optional[str]) -> str:
    """Normalize log and status messages for human consumption."""

    if not message:
        return ""
    return re.sub(r"\s+", " ", message).strip()


@dataclass
class AttemptReport:
    endpoint: str
    strategy: str
    url: str
    status: str = "pending"  # ok, error
    detail: Optional[str] = None
    size: Optional[int] = None
    duration: Optional[float] = None
    _started_at: Optional[float] = None

    def start(self) -> None:
        self._started_at = perf_counter()
        self.status = "running"

    def finish(
        self,
        status: str,
        *,
        size: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        if self._started_at is not None:
            self.duration = perf_counter() - self._started_at
        self.size = size
        self.detail = clean_message(detail) or None
        self.status = status

    @property
    def label(self) -> str:
        return f"{self.endpoint} via {self.strategy}"


@dataclass
class RefreshReport:
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: List[AttemptReport] = field(default_factory=list)
    station_count: Optional[int] = None
    parser: Optional[str] = None
    successful: bool = False
    error: Optional[str] = None

    def add_attempt(self, attempt: AttemptReport) -> AttemptReport:
        self.attempts.append(attempt)
        return attempt

    @property
    def successful_attempt(self) -> Optional[AttemptReport]:
        for attempt in reversed(self.attempts):
            if attempt.status == "ok":
                return attempt
        return None

    @property
    def last_failure(self) -> Optional[AttemptReport]:
        for attempt in reversed(self.attempts):
            if attempt.status == "error":
                return attempt
        return None

    def summary_lines(self) -> List[str]:
        lines = []
        for attempt in self.attempts:
            duration = f"{attempt.duration:.2f}s" if attempt.duration is not None else "-"
            detail = f" ({attempt.detail})" if attempt.detail else ""
            lines.append(f"{attempt.status:<6} {attempt.label} [{duration}]{detail}")
        if self.successful:
            lines.append(f"{self.station_count or 0} stations parsed ({self.parser or 'unknown'} parser)")
        elif self.error:
            lines.append(f"refresh failed: {clean_message(self.error)}")
        return lines
