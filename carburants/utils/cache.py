"""Persistence of the last good snapshot as a JSON document."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Callable, List, Optional, Union

from dateutil import parser as dtparser

from ..models import Snapshot, station_from_dict, station_to_dict
from .files import atomic_write

CACHE_FORMAT_VERSION = 1

log = logging.getLogger(__name__)

_CacheAlertHook = Callable[[Path, str], None]
_CACHE_ALERT_HOOKS: List[_CacheAlertHook] = []
_CACHE_ALERT_LOCK = RLock()


def register_cache_alert_hook(callback: _CacheAlertHook) -> Callable[[], None]:
    """Register ``callback`` to receive ``(path, message)`` read problems.

    Returns a callable that removes the hook again.
    """

    with _CACHE_ALERT_LOCK:
        _CACHE_ALERT_HOOKS.append(callback)

    def _unregister() -> None:
        with _CACHE_ALERT_LOCK:
            try:
                _CACHE_ALERT_HOOKS.remove(callback)
            except ValueError:
                pass

    return _unregister


def _emit_cache_alert(path: Path, message: str) -> None:
    with _CACHE_ALERT_LOCK:
        hooks = list(_CACHE_ALERT_HOOKS)

    for hook in hooks:
        try:
            hook(path, message)
        except Exception:  # pragma: no cover - user hooks
            log.exception("Cache alert hook failed for %s", path)


def snapshot_to_payload(snapshot: Snapshot) -> dict[str, Any]:
    return {
        "version": CACHE_FORMAT_VERSION,
        "fetchedAt": snapshot.fetched_at.isoformat(),
        "source": snapshot.source,
        "stations": [station_to_dict(station) for station in snapshot.stations],
    }


def write_snapshot(
    snapshot: Snapshot, path: Union[str, Path], *, pretty: bool = False
) -> Path:
    """Write ``snapshot`` to ``path`` atomically and return the path."""

    target = Path(path)
    indent: int | None = 2 if pretty else None
    separators: tuple[str, str] | None = None if pretty else (",", ":")
    with atomic_write(target, encoding="utf-8") as fh:
        json.dump(
            snapshot_to_payload(snapshot),
            fh,
            ensure_ascii=False,
            indent=indent,
            separators=separators,
        )
    log.info("Wrote %d stations to %s", len(snapshot), target)
    return target


def _parse_fetched_at(value: Any) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("missing fetchedAt")
    parsed = dtparser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def read_snapshot(path: Union[str, Path]) -> Optional[Snapshot]:
    """Return the cached snapshot at ``path``.

    A missing or unreadable cache yields ``None`` and a warning; records that
    cannot be rebuilt are skipped individually.
    """

    cache_file = Path(path)
    try:
        with cache_file.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except FileNotFoundError:
        log.warning("Snapshot cache not found at %s", cache_file)
        _emit_cache_alert(cache_file, "cache file missing")
        return None
    except json.JSONDecodeError as exc:
        log.warning("Snapshot cache at %s contains invalid JSON: %s", cache_file, exc)
        _emit_cache_alert(cache_file, f"invalid JSON ({exc})")
        return None
    except OSError as exc:
        log.warning("Could not read snapshot cache at %s: %s", cache_file, exc)
        _emit_cache_alert(cache_file, f"read error ({exc})")
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("stations"), list):
        log.warning(
            "Snapshot cache at %s does not contain a station list (found %s)",
            cache_file,
            type(payload).__name__,
        )
        _emit_cache_alert(cache_file, "cache content is not a snapshot")
        return None

    try:
        fetched_at = _parse_fetched_at(payload.get("fetchedAt"))
    except (ValueError, OverflowError) as exc:
        log.warning("Snapshot cache at %s has an invalid timestamp: %s", cache_file, exc)
        _emit_cache_alert(cache_file, f"invalid timestamp ({exc})")
        return None

    stations = []
    seen = set()
    for index, item in enumerate(payload["stations"]):
        if not isinstance(item, dict):
            log.warning("Skipping cached station #%d: not an object", index)
            continue
        try:
            station = station_from_dict(item)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("Skipping cached station #%d: %s", index, exc)
            continue
        if station.id in seen:
            log.warning("Skipping cached station #%d: duplicate id %r", index, station.id)
            continue
        seen.add(station.id)
        stations.append(station)

    return Snapshot(
        stations=tuple(stations),
        fetched_at=fetched_at,
        source=str(payload.get("source") or cache_file),
    )


__all__ = [
    "CACHE_FORMAT_VERSION",
    "read_snapshot",
    "register_cache_alert_hook",
    "snapshot_to_payload",
    "write_snapshot",
]
