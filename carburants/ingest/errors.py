"""Error taxonomy of the ingestion pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from ..feed.reporting import AttemptReport


class FeedError(RuntimeError):
    """Base class for failures that abort a whole refresh."""


class FetchError(FeedError):
    """Raised when every (endpoint, transport) attempt failed."""

    def __init__(
        self,
        message: str,
        *,
        attempts: Optional[List["AttemptReport"]] = None,
        last_error: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.attempts = list(attempts or [])
        self.last_error = last_error


class FormatError(FeedError):
    """Raised when the payload or the markup cannot yield any station."""


class StationParseError(ValueError):
    """Raised for a single malformed station record; never escapes a parse."""


class StructuralParseError(ValueError):
    """Raised by the tree parser when the markup is not well-formed."""
