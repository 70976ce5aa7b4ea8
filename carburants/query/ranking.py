"""Top-N ranking and map selection."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence

from ..models import Coordinates, Station
from .filters import StationQuery, filter_stations
from .geo import distance_km

__all__ = ["ORDER_BY", "RankedStation", "annotate", "rank_top_n", "select_stations"]

ORDER_BY = ("distance", "price")


@dataclass(frozen=True)
class RankedStation:
    """A station with the values it was ranked by.  Never persisted."""

    station: Station
    distance: Optional[float] = None
    selected_fuel_price: Optional[float] = None


def _selected_price(station: Station, fuel_type: Optional[str]) -> Optional[float]:
    if fuel_type:
        fuel = station.fuel(fuel_type)
        return fuel.price if fuel is not None else None
    return station.cheapest_price()


def annotate(
    stations: Iterable[Station],
    fuel_type: Optional[str] = None,
    reference: Optional[Coordinates] = None,
) -> List[RankedStation]:
    ranked = []
    for station in stations:
        distance = None
        if reference is not None and station.coordinates is not None:
            distance = distance_km(reference, station.coordinates)
        ranked.append(
            RankedStation(
                station=station,
                distance=distance,
                selected_fuel_price=_selected_price(station, fuel_type),
            )
        )
    return ranked


def _sort_key(order_by: str):
    attribute = "distance" if order_by == "distance" else "selected_fuel_price"

    def key(item: RankedStation) -> float:
        value = getattr(item, attribute)
        return math.inf if value is None else value

    return key


def rank_top_n(
    stations: Sequence[Station],
    n: int,
    order_by: str,
    fuel_type: Optional[str] = None,
    reference: Optional[Coordinates] = None,
) -> List[RankedStation]:
    """Return the ``n`` best stations ascending by distance or price.

    Missing keys sort last and ties keep their input order.
    """

    if order_by not in ORDER_BY:
        raise ValueError(f"order_by must be one of {ORDER_BY}, got {order_by!r}")
    if n < 0:
        raise ValueError("n must not be negative")
    ranked = sorted(annotate(stations, fuel_type, reference), key=_sort_key(order_by))
    return ranked[:n]


def select_stations(
    stations: Sequence[Station],
    query: Optional[StationQuery] = None,
    *,
    top_n: Optional[int] = None,
    order_by: str = "distance",
    max_stations: Optional[int] = None,
) -> List[RankedStation]:
    """Pick the stations to place on a map.

    Only stations with coordinates qualify.  With ``top_n`` the result is the
    Top-N by ``order_by``; otherwise it is sorted by distance when the query
    has a reference point and cut to ``max_stations``.
    """

    query = replace(query or StationQuery(), require_coordinates=True)
    candidates = filter_stations(stations, query)

    if top_n is not None:
        return rank_top_n(candidates, top_n, order_by, query.fuel_type, query.reference)

    selected = annotate(candidates, query.fuel_type, query.reference)
    if query.reference is not None:
        selected.sort(key=_sort_key("distance"))
    if max_stations is not None:
        selected = selected[:max_stations]
    return selected
