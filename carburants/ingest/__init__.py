"""From a downloaded archive to a list of stations."""

from .errors import FeedError, FetchError, FormatError, StationParseError, StructuralParseError
from .fetch import FeedFetcher
from .parser import parse_stations
from .pipeline import load_archive_file, parse_archive, refresh_dataset

__all__ = [
    "FeedError",
    "FeedFetcher",
    "FetchError",
    "FormatError",
    "StationParseError",
    "StructuralParseError",
    "load_archive_file",
    "parse_archive",
    "parse_stations",
    "refresh_dataset",
]
