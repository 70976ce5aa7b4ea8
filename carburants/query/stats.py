"""Aggregate price statistics over a set of stations."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models import Station
from .filters import FEATURES, parse_services

__all__ = [
    "DatasetSummary",
    "FuelStatistics",
    "PriceBucket",
    "dataset_summary",
    "fuel_statistics",
    "price_distribution",
]

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class FuelStatistics:
    name: str
    count: int
    min_price: float
    min_station: Station
    max_price: float
    max_station: Station
    median: float
    average: float


@dataclass(frozen=True)
class PriceBucket:
    price: str
    count: int
    percentage: float


@dataclass(frozen=True)
class DatasetSummary:
    total_stations: int
    fuels: Tuple[str, ...]
    services: Tuple[str, ...]
    features: Tuple[str, ...]
    last_update: Optional[str]


def _median(values: Sequence[float]) -> float:
    middle = len(values) // 2
    if len(values) % 2:
        return values[middle]
    return (values[middle - 1] + values[middle]) / 2


def _fuel_order(name: str) -> Tuple[int, str]:
    if name == "Gazole":
        return (0, name)
    if name.upper().startswith("GPL"):
        return (2, name)
    return (1, name.casefold())


def fuel_statistics(stations: Iterable[Station]) -> List[FuelStatistics]:
    """Per fuel name: count, extremes with their station, median and mean.

    Gazole comes first, the GPL family last, everything else alphabetically.
    """

    prices: Dict[str, List[Tuple[float, Station]]] = {}
    for station in stations:
        for fuel in station.fuels:
            prices.setdefault(fuel.name, []).append((fuel.price, station))

    result = []
    for name, entries in prices.items():
        entries.sort(key=lambda entry: entry[0])
        values = [price for price, _ in entries]
        result.append(
            FuelStatistics(
                name=name,
                count=len(values),
                min_price=entries[0][0],
                min_station=entries[0][1],
                max_price=entries[-1][0],
                max_station=entries[-1][1],
                median=_median(values),
                average=sum(values) / len(values),
            )
        )
    result.sort(key=lambda stat: _fuel_order(stat.name))
    return result


def price_distribution(stations: Iterable[Station], fuel_name: str) -> List[PriceBucket]:
    """Histogram of ``fuel_name`` prices in 0.01 € buckets.

    Prices are rounded half-up to the cent; empty buckets are omitted.
    """

    counts: Dict[Decimal, int] = {}
    total = 0
    for station in stations:
        for fuel in station.fuels:
            if fuel.name != fuel_name:
                continue
            bucket = Decimal(str(fuel.price)).quantize(_CENT, rounding=ROUND_HALF_UP)
            counts[bucket] = counts.get(bucket, 0) + 1
            total += 1

    return [
        PriceBucket(price=str(bucket), count=count, percentage=count / total * 100)
        for bucket, count in sorted(counts.items())
    ]


def dataset_summary(stations: Sequence[Station]) -> DatasetSummary:
    """Available filter options and freshness of ``stations``."""

    fuels: Set[str] = set()
    services: Set[str] = set()
    features: Set[str] = set()
    latest: Optional[str] = None
    for station in stations:
        fuels.update(fuel.name for fuel in station.fuels)
        for raw in station.services:
            services.update(parse_services(raw))
        features.update(name for name, predicate in FEATURES.items() if predicate(station))
        # Feed timestamps are ISO-like, so string order is chronological.
        for stamp in [station.last_update] + [fuel.last_update for fuel in station.fuels]:
            if stamp and (latest is None or stamp > latest):
                latest = stamp

    return DatasetSummary(
        total_stations=len(stations),
        fuels=tuple(sorted(fuels, key=_fuel_order)),
        services=tuple(sorted(services, key=str.casefold)),
        features=tuple(name for name in FEATURES if name in features),
        last_update=latest,
    )
