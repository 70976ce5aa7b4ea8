"""Regex scan used when the markup cannot be parsed as a tree.

Only the canonical vocabulary of the feed is recognized here.  The scan stops
after :data:`FALLBACK_MAX_ITERATIONS` blocks so that pathological input
cannot keep it busy.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from ..feed.events import EventHook, emit
from ..models import Fuel, Station
from .errors import StationParseError
from .normalize import IdRegistry, RawStation, build_station, normalize_fuel, parse_flag

__all__ = ["FALLBACK_MAX_ITERATIONS", "parse_fallback"]

log = logging.getLogger(__name__)

FALLBACK_MAX_ITERATIONS = 10000

_STATION_BLOCK_RE = re.compile(r"<pdv(?:\s[^>]*)?>(.*?)</pdv>", re.DOTALL)
_OPENING_TAG_RE = re.compile(r"<pdv(?:\s[^>]*)?>")
_ATTRIBUTE_RE = re.compile(r'(\w+(?:-\w+)*)="([^"]*)"')
_ADDRESS_RE = re.compile(r"<adresse>([^<]+)</adresse>")
_CITY_RE = re.compile(r"<ville>([^<]+)</ville>")
_FUEL_TAG_RE = re.compile(r"<prix\b([^>]*?)/?>")
_SERVICE_RE = re.compile(
    r"<service(?:\s[^>]*)?>([^<]*)</services?>|<service(?:\s[^>]*)?/>"
)


def _attributes(fragment: str) -> Dict[str, str]:
    return {name: value for name, value in _ATTRIBUTE_RE.findall(fragment)}


def _first(attributes: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = (attributes.get(name) or "").strip()
        if value:
            return value
    return None


def _address(attributes: Dict[str, str], content: str) -> Optional[str]:
    match = _ADDRESS_RE.search(content)
    if match and match.group(1).strip():
        return match.group(1).strip()
    direct = _first(attributes, "adresse", "address", "rue", "voie", "addr", "street")
    if direct:
        return direct
    parts = [
        _first(attributes, "num", "numero"),
        _first(attributes, "nom_rue", "nom_voie"),
        _first(attributes, "route", "road"),
    ]
    return " ".join(part for part in parts if part) or None


def _fuels(content: str) -> List[Fuel]:
    fuels = []
    for fragment in _FUEL_TAG_RE.findall(content):
        attributes = _attributes(fragment)
        fuel = normalize_fuel(attributes.get("nom"), attributes.get("valeur"), attributes.get("maj"))
        if fuel is not None:
            fuels.append(fuel)
    return fuels


def _services(content: str) -> List[str]:
    return [
        match.group(1).strip()
        for match in _SERVICE_RE.finditer(content)
        if match.group(1) and match.group(1).strip()
    ]


def _raw_station(opening_tag: str, content: str, index: int) -> RawStation:
    attributes = _attributes(opening_tag)
    city_match = _CITY_RE.search(content)
    city = city_match.group(1).strip() if city_match else ""
    return RawStation(
        id=_first(attributes, "id") or f"station-{index}",
        raw_latitude=_first(attributes, "latitude"),
        raw_longitude=_first(attributes, "longitude"),
        city=city or _first(attributes, "ville", "city") or "",
        postal_code=_first(attributes, "cp", "postal_code", "code_postal"),
        address=_address(attributes, content),
        brand=_first(attributes, "marque"),
        last_update=_first(attributes, "maj"),
        automate_24h=parse_flag(attributes.get("automate-24-24")),
        highway=parse_flag(attributes.get("autoroute")),
        free_access=parse_flag(attributes.get("libre-service")),
        fuels=_fuels(content),
        services=_services(content),
    )


def parse_fallback(
    text: str,
    *,
    max_iterations: int = FALLBACK_MAX_ITERATIONS,
    events: Optional[EventHook] = None,
) -> List[Station]:
    """Extract stations from ``<pdv>`` blocks without building a tree."""

    registry = IdRegistry(events)
    stations: List[Station] = []
    scanned = 0
    for index, match in enumerate(_STATION_BLOCK_RE.finditer(text)):
        if index >= max_iterations:
            log.warning("Fallback scan stopped after %d station blocks", max_iterations)
            emit(events, "parse.iteration_limit", limit=max_iterations)
            break
        scanned += 1
        opening_tag = _OPENING_TAG_RE.match(match.group(0))
        try:
            raw = _raw_station(opening_tag.group(0) if opening_tag else "", match.group(1), index)
            station = build_station(raw, registry)
        except (StationParseError, ValueError, TypeError) as exc:
            emit(events, "station.skipped", parser="fallback", index=index, reason=str(exc))
            continue
        if station is None:
            emit(events, "station.rejected", parser="fallback", index=index)
            continue
        stations.append(station)

    emit(events, "parse.container", parser="fallback", container="pdv", count=scanned)
    emit(events, "parse.complete", parser="fallback", stations=len(stations), elements=scanned)
    return stations
