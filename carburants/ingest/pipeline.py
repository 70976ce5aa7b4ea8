"""End-to-end refresh: fetch, extract, decode, repair and parse."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..feed.config import FeedSettings
from ..feed.events import EventHook
from ..feed.reporting import RefreshReport
from ..models import Snapshot
from .archive import extract_markup
from .encoding import decode_markup
from .errors import FeedError
from .fetch import FeedFetcher
from .parser import parse_stations
from .repair import repair_markup

__all__ = ["load_archive_file", "parse_archive", "refresh_dataset"]

log = logging.getLogger(__name__)


def parse_archive(
    payload: bytes,
    *,
    settings: Optional[FeedSettings] = None,
    source: str = "",
    events: Optional[EventHook] = None,
    report: Optional[RefreshReport] = None,
) -> Snapshot:
    """Turn a downloaded archive into a :class:`Snapshot`.

    Raises :class:`~carburants.ingest.errors.FormatError` when the payload
    does not yield any station.
    """

    settings = settings or FeedSettings()
    markup = extract_markup(payload, max_entry_bytes=settings.max_entry_bytes, events=events)
    text = repair_markup(decode_markup(markup, events=events))
    stations, parser = parse_stations(
        text, max_iterations=settings.fallback_max_iterations, events=events
    )
    if report is not None:
        report.station_count = len(stations)
        report.parser = parser
        report.successful = True
    log.info("Parsed %d stations with the %s parser", len(stations), parser)
    return Snapshot(
        stations=tuple(stations),
        fetched_at=datetime.now(timezone.utc),
        source=source,
    )


def load_archive_file(
    path: Union[str, Path],
    *,
    settings: Optional[FeedSettings] = None,
    events: Optional[EventHook] = None,
) -> Snapshot:
    """Parse an archive that was downloaded earlier."""

    archive_path = Path(path)
    return parse_archive(
        archive_path.read_bytes(),
        settings=settings,
        source=str(archive_path),
        events=events,
    )


def refresh_dataset(
    settings: Optional[FeedSettings] = None,
    *,
    fetcher: Optional[FeedFetcher] = None,
    events: Optional[EventHook] = None,
    report: Optional[RefreshReport] = None,
) -> Snapshot:
    """Fetch the current feed and parse it into a new snapshot."""

    settings = settings or FeedSettings()
    fetcher = fetcher or FeedFetcher(settings, events=events)
    report = report if report is not None else RefreshReport()
    try:
        payload = fetcher.fetch(report)
        attempt = report.successful_attempt
        return parse_archive(
            payload,
            settings=settings,
            source=attempt.label if attempt else "",
            events=events,
            report=report,
        )
    except FeedError as exc:
        report.successful = False
        report.error = str(exc)
        raise
