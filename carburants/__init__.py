"""Ingestion and querying of the French fuel price open data feed."""

from .models import DaySchedule, Fuel, Snapshot, Station, TimeRange
from .store import DatasetStore

__all__ = [
    "DatasetStore",
    "DaySchedule",
    "Fuel",
    "Snapshot",
    "Station",
    "TimeRange",
]

__version__ = "0.1.0"
