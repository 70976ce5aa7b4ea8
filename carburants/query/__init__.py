"""Pure functions over station sequences."""

from .filters import StationQuery, filter_by_postal_code, filter_stations, format_address, parse_services
from .geo import distance_km
from .hours import is_open
from .ranking import RankedStation, annotate, rank_top_n, select_stations
from .stats import dataset_summary, fuel_statistics, price_distribution

__all__ = [
    "RankedStation",
    "StationQuery",
    "annotate",
    "dataset_summary",
    "distance_km",
    "filter_by_postal_code",
    "filter_stations",
    "format_address",
    "fuel_statistics",
    "is_open",
    "parse_services",
    "price_distribution",
    "rank_top_n",
    "select_stations",
]
