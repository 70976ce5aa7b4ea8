"""Conversions shared by the tree parser and the fallback scanner."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Set

from ..feed.events import EventHook, emit
from ..models import Coordinates, DaySchedule, Fuel, Station
from .errors import StationParseError

__all__ = [
    "COORDINATE_SCALE",
    "FUEL_NAMES",
    "IdRegistry",
    "RawStation",
    "build_station",
    "dedupe",
    "fuel_name",
    "is_acceptable",
    "normalize_coordinates",
    "normalize_fuel",
    "normalize_price",
    "parse_flag",
]

COORDINATE_SCALE = 100000
PRICE_SCALE_THRESHOLD = 10
PRICE_SCALE = 1000

FUEL_NAMES: Mapping[str, str] = {
    "1": "Gazole",
    "2": "SP95",
    "3": "E85",
    "4": "GPLc",
    "5": "E10",
    "6": "SP98",
}


class IdRegistry:
    """Hands out unique station ids for one parse.

    The first occurrence keeps its id; later ones get ``-1``, ``-2`` ... (the
    smallest suffix not taken yet).
    """

    def __init__(self, events: Optional[EventHook] = None) -> None:
        self._used: Set[str] = set()
        self._events = events

    def __contains__(self, candidate: object) -> bool:
        return candidate in self._used

    def __len__(self) -> int:
        return len(self._used)

    def claim(self, candidate: str) -> str:
        if candidate not in self._used:
            self._used.add(candidate)
            return candidate
        counter = 1
        while f"{candidate}-{counter}" in self._used:
            counter += 1
        unique = f"{candidate}-{counter}"
        self._used.add(unique)
        emit(self._events, "station.id_conflict", original=candidate, assigned=unique)
        return unique


def _to_float(raw: object) -> Optional[float]:
    if raw is None:
        return None
    text = str(raw).strip().replace(",", ".")
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def normalize_coordinates(raw_lat: object, raw_lon: object) -> Optional[Coordinates]:
    """Convert fixed-point feed coordinates into degrees.

    Both axes must be present, parseable and non-zero; otherwise the pair as
    a whole is absent.
    """

    lat = _to_float(raw_lat)
    lon = _to_float(raw_lon)
    if not lat or not lon:
        return None
    return (lat / COORDINATE_SCALE, lon / COORDINATE_SCALE)


def normalize_price(raw: object) -> Optional[float]:
    """Return the price in euros, or ``None`` when it is unusable."""

    value = _to_float(raw)
    if value is None:
        return None
    if value > PRICE_SCALE_THRESHOLD:
        value = value / PRICE_SCALE
    if value <= 0:
        return None
    return value


def fuel_name(fuel_id: str) -> str:
    return FUEL_NAMES.get(fuel_id, fuel_id)


def normalize_fuel(
    raw_id: Optional[str], raw_price: object, last_update: Optional[str] = None
) -> Optional[Fuel]:
    fuel_id = (raw_id or "").strip()
    if not fuel_id:
        return None
    price = normalize_price(raw_price)
    if price is None:
        return None
    return Fuel(id=fuel_id, name=fuel_name(fuel_id), price=price, last_update=last_update or None)


def parse_flag(raw: Optional[str]) -> bool:
    return (raw or "").strip() == "1"


def dedupe(values: Iterable[str]) -> List[str]:
    """Drop empty strings and exact duplicates, keeping discovery order."""

    seen: Set[str] = set()
    result: List[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


@dataclass
class RawStation:
    """Field values gathered from one record before normalization."""

    id: str
    raw_latitude: Optional[str] = None
    raw_longitude: Optional[str] = None
    city: str = ""
    postal_code: Optional[str] = None
    address: Optional[str] = None
    brand: Optional[str] = None
    last_update: Optional[str] = None
    automate_24h: bool = False
    highway: bool = False
    free_access: bool = False
    fuels: List[Fuel] = field(default_factory=list)
    services: List[str] = field(default_factory=list)
    opening_hours: Optional[Dict[str, DaySchedule]] = None


def is_acceptable(station: Station) -> bool:
    """A station needs an id plus a city, coordinates, a fuel or a brand."""

    if not station.id:
        return False
    return bool(station.city or station.coordinates or station.fuels or station.brand)


def build_station(raw: RawStation, registry: IdRegistry) -> Optional[Station]:
    """Normalize ``raw`` into a :class:`Station`.

    Returns ``None`` when the record fails the acceptance rule; the id is only
    claimed for accepted records.
    """

    candidate = (raw.id or "").strip()
    if not candidate:
        raise StationParseError("station has no id")

    brand = (raw.brand or "").strip() or None
    draft = Station(
        id=candidate,
        name=brand,
        brand=brand,
        address=(raw.address or "").strip() or None,
        city=(raw.city or "").strip(),
        postal_code=(raw.postal_code or "").strip() or None,
        coordinates=normalize_coordinates(raw.raw_latitude, raw.raw_longitude),
        fuels=tuple(raw.fuels),
        services=tuple(dedupe(s.strip() for s in raw.services)),
        opening_hours=raw.opening_hours,
        automate_24h=raw.automate_24h,
        highway=raw.highway,
        free_access=raw.free_access,
        last_update=(raw.last_update or "").strip() or None,
    )
    if not is_acceptable(draft):
        return None

    unique = registry.claim(candidate)
    if unique == candidate:
        return draft
    return replace(draft, id=unique)
