"""Opening hours evaluation."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..models import WEEKDAYS, Station, TimeRange

# Published opening hours are French local time.
FEED_TIMEZONE = ZoneInfo("Europe/Paris")


def local_now(now: Optional[datetime] = None) -> datetime:
    """Return ``now`` (default: current time) as French wall-clock time.

    Naive datetimes are taken as already being local.
    """

    if now is None:
        return datetime.now(FEED_TIMEZONE)
    if now.tzinfo is None:
        return now
    return now.astimezone(FEED_TIMEZONE)


def _minutes(clock: str) -> int:
    hours, _, minutes = clock.partition(":")
    return int(hours) * 60 + int(minutes or 0)


def _in_range(span: TimeRange, now: int) -> bool:
    opens = _minutes(span.open)
    closes = _minutes(span.close)
    if closes < opens:
        return now >= opens or now <= closes
    return opens <= now <= closes


def is_open(station: Station, now: datetime) -> bool:
    """Return whether ``station`` is open at the wall-clock time ``now``.

    Stations without published hours count as open.  A weekday missing from
    published hours counts as closed, a day without ranges as open all day.
    Bounds are inclusive at minute resolution; ranges whose close time is
    before the open time run past midnight.
    """

    if not station.opening_hours:
        return True

    schedule = station.opening_hours.get(WEEKDAYS[now.weekday()])
    if schedule is None or schedule.closed:
        return False
    if not schedule.hours:
        return True

    current = now.hour * 60 + now.minute
    return any(_in_range(span, current) for span in schedule.hours)
