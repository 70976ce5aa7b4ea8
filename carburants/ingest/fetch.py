"""Download of the feed archive.

The archive is tried from every configured endpoint, first directly and then
through a list of public relays.  The attempt list is the only redundancy:
the HTTP session itself never retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import quote

import requests

from ..feed.config import FeedSettings
from ..feed.events import EventHook, emit
from ..feed.reporting import AttemptReport, RefreshReport
from ..utils.http import fetch_content_safe, sanitize_url_for_error, session_with_retries
from .errors import FetchError

__all__ = [
    "ACCEPT_HEADER",
    "FeedFetcher",
    "PAYLOAD_SIGNATURE",
    "RELAY_STRATEGIES",
    "REMEDIATION_HINT",
    "TransportStrategy",
]

log = logging.getLogger(__name__)

ACCEPT_HEADER = "application/zip, application/octet-stream, */*"
PAYLOAD_SIGNATURE = b"PK"

REMEDIATION_HINT = (
    "Possible causes: the publisher is temporarily down, every relay is "
    "blocked or rate limited, the network is unreachable, or the archive "
    "format changed. Retry in a few minutes or restrict CARBURANTS_RELAYS / "
    "CARBURANTS_FEED_URLS to known good values."
)


@dataclass(frozen=True)
class TransportStrategy:
    """How to reach a target URL, either directly or through a relay."""

    name: str
    build_url: Callable[[str], str]
    headers: Mapping[str, str] = field(default_factory=dict)

    def request_for(self, target: str) -> Tuple[str, Dict[str, str]]:
        return self.build_url(target), dict(self.headers)


def _encoded(template: str) -> Callable[[str], str]:
    def build(target: str) -> str:
        return template.format(target=quote(target, safe=""))

    return build


# Outside a browser no CORS policy applies, so the default order in
# FeedSettings puts "direct" before every relay.
RELAY_STRATEGIES: Dict[str, TransportStrategy] = {
    "direct": TransportStrategy("direct", lambda target: target),
    "codetabs": TransportStrategy(
        "codetabs", _encoded("https://api.codetabs.com/v1/proxy?quest={target}")
    ),
    "allorigins": TransportStrategy(
        "allorigins", _encoded("https://api.allorigins.win/raw?url={target}")
    ),
    "corsproxy": TransportStrategy("corsproxy", _encoded("https://corsproxy.io/?{target}")),
    "htmldriven": TransportStrategy(
        "htmldriven", _encoded("https://cors-proxy.htmldriven.com/?url={target}")
    ),
    "cors-anywhere": TransportStrategy(
        "cors-anywhere",
        lambda target: f"https://cors-anywhere.herokuapp.com/{target}",
        {"X-Requested-With": "XMLHttpRequest"},
    ),
}


class FeedFetcher:
    """Runs the ordered (endpoint, transport) attempts until one succeeds."""

    def __init__(
        self,
        settings: Optional[FeedSettings] = None,
        *,
        session: Optional[requests.Session] = None,
        events: Optional[EventHook] = None,
    ) -> None:
        self.settings = settings or FeedSettings()
        self._session = session
        self._events = events

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = session_with_retries(
                self.settings.user_agent,
                timeout=self.settings.timeout,
                headers={"Accept": ACCEPT_HEADER},
            )
        return self._session

    def strategies(self) -> List[TransportStrategy]:
        return [RELAY_STRATEGIES[name] for name in self.settings.relays if name in RELAY_STRATEGIES]

    def attempts(self) -> Iterator[Tuple[str, TransportStrategy]]:
        for endpoint in self.settings.feed_urls:
            for strategy in self.strategies():
                yield endpoint, strategy

    def _try(self, attempt: AttemptReport, headers: Dict[str, str]) -> Optional[bytes]:
        try:
            payload = fetch_content_safe(
                self.session,
                attempt.url,
                max_bytes=self.settings.max_bytes,
                timeout=self.settings.timeout,
                headers=headers or None,
            )
        except requests.RequestException as exc:
            attempt.finish("error", detail=f"{type(exc).__name__}: {exc}")
            return None
        except ValueError as exc:
            attempt.finish("error", detail=str(exc))
            return None

        if not payload:
            attempt.finish("error", size=0, detail="empty response body")
            return None
        if not payload.startswith(PAYLOAD_SIGNATURE):
            preview = payload[:60].decode("utf-8", errors="replace")
            attempt.finish(
                "error",
                size=len(payload),
                detail=f"response is not an archive (starts with {preview!r})",
            )
            return None

        attempt.finish("ok", size=len(payload))
        return payload

    def fetch(self, report: Optional[RefreshReport] = None) -> bytes:
        """Return the first archive payload any attempt delivers.

        Raises :class:`FetchError` once every attempt failed.
        """

        report = report if report is not None else RefreshReport()
        tried: List[AttemptReport] = []
        for endpoint, strategy in self.attempts():
            url, headers = strategy.request_for(endpoint)
            attempt = report.add_attempt(AttemptReport(endpoint=endpoint, strategy=strategy.name, url=url))
            tried.append(attempt)
            attempt.start()
            payload = self._try(attempt, headers)
            emit(
                self._events,
                "fetch.attempt",
                endpoint=endpoint,
                strategy=strategy.name,
                status=attempt.status,
                size=attempt.size,
                detail=attempt.detail,
            )
            if payload is not None:
                log.info(
                    "Fetched %d bytes from %s via %s",
                    len(payload),
                    sanitize_url_for_error(endpoint),
                    strategy.name,
                )
                return payload
            log.warning("Fetch via %s failed: %s", attempt.label, attempt.detail)

        last_error = tried[-1].detail if tried else "no endpoint or relay configured"
        message = (
            f"Failed to fetch the feed from all {len(tried)} attempts. "
            f"Last error: {last_error or 'unknown error'}. {REMEDIATION_HINT}"
        )
        emit(self._events, "fetch.failed", attempts=len(tried), last_error=last_error)
        raise FetchError(message, attempts=tried, last_error=last_error)
