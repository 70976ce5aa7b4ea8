"""Attribute and geographic filtering of stations."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..models import Coordinates, Station
from .geo import distance_km
from .hours import is_open, local_now

__all__ = [
    "FEATURES",
    "SERVICE_SEPARATORS",
    "StationQuery",
    "filter_by_postal_code",
    "filter_stations",
    "format_address",
    "matches",
    "parse_services",
    "station_services",
]

SERVICE_SEPARATORS: Tuple[str, ...] = (" // ", "//", " / ", "/", " - ", "-", ",", ";")

FEATURES = {
    "highway": lambda station: station.highway,
    "auto24h": lambda station: station.automate_24h,
    "freeAccess": lambda station: station.free_access,
}


def parse_services(value: Optional[str]) -> List[str]:
    """Split a combined service string into individual services.

    Separators are applied one after the other in :data:`SERVICE_SEPARATORS`
    order; empty pieces are dropped.
    """

    if not value:
        return []
    pieces = [value]
    for separator in SERVICE_SEPARATORS:
        split: List[str] = []
        for piece in pieces:
            split.extend(piece.split(separator) if separator in piece else [piece])
        pieces = split
    return [piece.strip() for piece in pieces if piece.strip()]


def station_services(station: Station) -> Set[str]:
    services: Set[str] = set()
    for raw in station.services:
        services.update(parse_services(raw))
    return services


def format_address(station: Station) -> str:
    """``address, postal_code city`` with missing parts left out."""

    parts = []
    if station.address:
        parts.append(station.address)
    locality = " ".join(part for part in (station.postal_code, station.city) if part)
    if locality:
        parts.append(locality)
    return ", ".join(parts)


def filter_by_postal_code(stations: Iterable[Station], pattern: Optional[str]) -> List[Station]:
    """Keep stations whose postal code matches ``pattern``.

    ``"75*"`` matches by prefix, anything else by case-insensitive substring.
    A blank pattern keeps everything.
    """

    stations = list(stations)
    needle = (pattern or "").strip().lower()
    if not needle:
        return stations
    if "*" in needle:
        prefix = needle.replace("*", "")
        return [s for s in stations if s.postal_code and s.postal_code.lower().startswith(prefix)]
    return [s for s in stations if s.postal_code and needle in s.postal_code.lower()]


@dataclass(frozen=True)
class StationQuery:
    """Conjunction of station predicates; unset fields do not filter."""

    fuel_type: Optional[str] = None
    max_price: Optional[float] = None
    fuels: Tuple[str, ...] = ()
    reference: Optional[Coordinates] = None
    max_distance: Optional[float] = None
    services: Tuple[str, ...] = ()
    features: Tuple[str, ...] = ()
    location: Optional[str] = None
    postal_code: Optional[str] = None
    require_coordinates: bool = False
    open_now: bool = False
    now: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.max_price is not None and not self.fuel_type:
            raise ValueError("max_price requires fuel_type")
        if self.max_distance is not None and self.reference is None:
            raise ValueError("max_distance requires a reference point")
        unknown = [feature for feature in self.features if feature not in FEATURES]
        if unknown:
            raise ValueError(f"unknown features: {', '.join(unknown)}")


def matches(station: Station, query: StationQuery) -> bool:
    if query.require_coordinates and station.coordinates is None:
        return False

    if query.fuel_type:
        fuel = station.fuel(query.fuel_type)
        if fuel is None:
            return False
        if query.max_price is not None and fuel.price > query.max_price:
            return False

    if query.fuels and not any(fuel.name in query.fuels for fuel in station.fuels):
        return False

    if query.max_distance is not None and query.reference is not None:
        if station.coordinates is None:
            return False
        if distance_km(query.reference, station.coordinates) > query.max_distance:
            return False

    if query.services:
        available = station_services(station)
        if not all(service in available for service in query.services):
            return False

    if query.features and not any(FEATURES[name](station) for name in query.features):
        return False

    term = (query.location or "").strip().lower()
    if term and term not in format_address(station).lower():
        return False

    if query.postal_code and not filter_by_postal_code([station], query.postal_code):
        return False

    if query.open_now and not is_open(station, local_now(query.now)):
        return False

    return True


def filter_stations(stations: Sequence[Station], query: StationQuery) -> List[Station]:
    """Return the stations matching every predicate of ``query``, in order."""

    if query.open_now and query.now is None:
        query = replace(query, now=local_now())
    return [station for station in stations if matches(station, query)]
