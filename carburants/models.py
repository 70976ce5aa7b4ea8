"""Canonical entities of a parsed fuel price dataset."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

__all__ = [
    "Coordinates",
    "DaySchedule",
    "Fuel",
    "Snapshot",
    "Station",
    "TimeRange",
    "WEEKDAYS",
    "station_from_dict",
    "station_to_dict",
]

Coordinates = Tuple[float, float]

WEEKDAYS: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True)
class TimeRange:
    """Opening interval in ``HH:MM``; ``close < open`` spans midnight."""

    open: str
    close: str


@dataclass(frozen=True)
class DaySchedule:
    closed: bool = False
    hours: Tuple[TimeRange, ...] = ()


@dataclass(frozen=True)
class Fuel:
    id: str
    name: str
    price: float
    last_update: Optional[str] = None


@dataclass(frozen=True)
class Station:
    """A single point of sale.

    ``coordinates`` is either a complete ``(latitude, longitude)`` pair or
    ``None``; every fuel carries a strictly positive price.
    """

    id: str
    city: str = ""
    name: Optional[str] = None
    brand: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    fuels: Tuple[Fuel, ...] = ()
    services: Tuple[str, ...] = ()
    opening_hours: Optional[Mapping[str, DaySchedule]] = None
    automate_24h: bool = False
    highway: bool = False
    free_access: bool = False
    last_update: Optional[str] = None

    def __post_init__(self) -> None:
        if self.opening_hours is not None and not isinstance(self.opening_hours, MappingProxyType):
            object.__setattr__(self, "opening_hours", MappingProxyType(dict(self.opening_hours)))

    @property
    def latitude(self) -> Optional[float]:
        return self.coordinates[0] if self.coordinates else None

    @property
    def longitude(self) -> Optional[float]:
        return self.coordinates[1] if self.coordinates else None

    def fuel(self, name: str) -> Optional[Fuel]:
        """Return the first fuel called ``name`` or ``None``."""
        for fuel in self.fuels:
            if fuel.name == name:
                return fuel
        return None

    def cheapest_price(self) -> Optional[float]:
        prices = [fuel.price for fuel in self.fuels]
        return min(prices) if prices else None


@dataclass(frozen=True)
class Snapshot:
    """Immutable result of one successful refresh."""

    stations: Tuple[Station, ...]
    fetched_at: datetime
    source: str = ""
    by_id: Mapping[str, Station] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "by_id", MappingProxyType({station.id: station for station in self.stations})
        )

    def __len__(self) -> int:
        return len(self.stations)


def station_to_dict(station: Station) -> Dict[str, Any]:
    """Return a JSON-serializable representation of ``station``."""

    hours: Optional[Dict[str, Any]] = None
    if station.opening_hours is not None:
        hours = {
            day: {
                "closed": schedule.closed,
                "hours": [{"open": r.open, "close": r.close} for r in schedule.hours],
            }
            for day, schedule in station.opening_hours.items()
        }
    return {
        "id": station.id,
        "name": station.name,
        "brand": station.brand,
        "address": station.address,
        "city": station.city,
        "postalCode": station.postal_code,
        "latitude": station.latitude,
        "longitude": station.longitude,
        "fuels": [
            {
                "id": fuel.id,
                "name": fuel.name,
                "price": fuel.price,
                "lastUpdate": fuel.last_update,
            }
            for fuel in station.fuels
        ],
        "services": list(station.services),
        "openingHours": hours,
        "automate24h": station.automate_24h,
        "highway": station.highway,
        "freeAccess": station.free_access,
        "lastUpdate": station.last_update,
    }


def station_from_dict(data: Mapping[str, Any]) -> Station:
    """Inverse of :func:`station_to_dict`.

    Raises ``KeyError``/``TypeError``/``ValueError`` for malformed input.
    """

    latitude = data.get("latitude")
    longitude = data.get("longitude")
    coordinates: Optional[Coordinates] = None
    if latitude is not None and longitude is not None:
        coordinates = (float(latitude), float(longitude))

    hours_raw = data.get("openingHours")
    opening_hours: Optional[Dict[str, DaySchedule]] = None
    if isinstance(hours_raw, Mapping):
        for day, value in hours_raw.items():
            if not isinstance(value, Mapping):
                raise TypeError(f"opening hours for {day!r} must be an object")
        opening_hours = {
            str(day): DaySchedule(
                closed=bool(value.get("closed", False)),
                hours=tuple(
                    TimeRange(open=str(r["open"]), close=str(r["close"]))
                    for r in value.get("hours") or ()
                ),
            )
            for day, value in hours_raw.items()
        }

    fuels = tuple(
        Fuel(
            id=str(item["id"]),
            name=str(item.get("name") or item["id"]),
            price=float(item["price"]),
            last_update=item.get("lastUpdate"),
        )
        for item in data.get("fuels") or ()
        if float(item["price"]) > 0
    )

    return Station(
        id=str(data["id"]),
        name=data.get("name"),
        brand=data.get("brand"),
        address=data.get("address"),
        city=str(data.get("city") or ""),
        postal_code=data.get("postalCode"),
        coordinates=coordinates,
        fuels=fuels,
        services=tuple(str(s) for s in data.get("services") or ()),
        opening_hours=opening_hours,
        automate_24h=bool(data.get("automate24h", False)),
        highway=bool(data.get("highway", False)),
        free_access=bool(data.get("freeAccess", False)),
        last_update=data.get("lastUpdate"),
    )
