"""Command line entry point: ``carburants fetch|parse|top|stats``."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .feed.config import FeedSettings
from .feed.logging import configure_logging
from .feed.reporting import RefreshReport
from .ingest.errors import FeedError
from .ingest.fetch import FeedFetcher
from .ingest.pipeline import load_archive_file, parse_archive
from .models import Snapshot, station_to_dict
from .query.filters import StationQuery, filter_by_postal_code, filter_stations, format_address
from .query.ranking import ORDER_BY, rank_top_n
from .query.stats import dataset_summary, fuel_statistics, price_distribution
from .utils.cache import read_snapshot, write_snapshot
from .utils.env import load_default_env_files
from .utils.files import atomic_write

log = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when the CLI cannot execute the requested command."""


def _coordinates(value: str) -> tuple[float, float]:
    try:
        lat_raw, lon_raw = value.split(",")
        return float(lat_raw), float(lon_raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {value!r}") from exc


def _store(snapshot: Snapshot, settings: FeedSettings, enabled: bool) -> None:
    if not enabled:
        return
    path = write_snapshot(snapshot, settings.cache_path, pretty=settings.cache_pretty)
    print(f"Snapshot written to {path}")


def _load_cached(args: argparse.Namespace, settings: FeedSettings) -> Snapshot:
    path = Path(args.cache) if args.cache else settings.cache_path
    snapshot = read_snapshot(path)
    if snapshot is None:
        raise CLIError(f"No usable snapshot at {path}; run 'carburants fetch' first")
    return snapshot


def _handle_fetch(args: argparse.Namespace, settings: FeedSettings) -> int:
    report = RefreshReport()
    fetcher = FeedFetcher(settings)
    try:
        payload = fetcher.fetch(report)
        if args.save_archive:
            with atomic_write(args.save_archive, mode="wb") as fh:
                fh.write(payload)
        attempt = report.successful_attempt
        snapshot = parse_archive(
            payload,
            settings=settings,
            source=attempt.label if attempt else "",
            report=report,
        )
    except FeedError as exc:
        report.error = str(exc)
        raise
    finally:
        if args.report:
            for line in report.summary_lines():
                print(line)

    print(f"{len(snapshot)} stations fetched from {snapshot.source}")
    _store(snapshot, settings, not args.no_cache)
    return 0


def _handle_parse(args: argparse.Namespace, settings: FeedSettings) -> int:
    archive = Path(args.archive)
    if not archive.is_file():
        raise CLIError(f"Archive not found: {archive}")
    snapshot = load_archive_file(archive, settings=settings)
    print(f"{len(snapshot)} stations parsed from {archive}")
    _store(snapshot, settings, args.write_cache)
    return 0


def _handle_top(args: argparse.Namespace, settings: FeedSettings) -> int:
    snapshot = _load_cached(args, settings)
    try:
        query = StationQuery(
            fuel_type=args.fuel,
            max_price=args.max_price,
            reference=args.near,
            max_distance=args.max_distance,
            postal_code=args.postal_code,
            open_now=args.open_now,
            require_coordinates=args.order_by == "distance",
        )
        ranked = rank_top_n(
            filter_stations(snapshot.stations, query),
            args.limit,
            args.order_by,
            fuel_type=args.fuel,
            reference=args.near,
        )
    except ValueError as exc:
        raise CLIError(str(exc)) from exc

    if args.json:
        rows = [
            {
                **station_to_dict(item.station),
                "distance": item.distance,
                "selectedFuelPrice": item.selected_fuel_price,
            }
            for item in ranked
        ]
        print(json.dumps(rows, ensure_ascii=False, indent=2))
        return 0

    for position, item in enumerate(ranked, start=1):
        price = f"{item.selected_fuel_price:.3f} €" if item.selected_fuel_price is not None else "-"
        distance = f"{item.distance:.1f} km" if item.distance is not None else "-"
        label = item.station.brand or item.station.id
        print(f"{position:>3}. {price:>9} {distance:>9}  {label}  {format_address(item.station)}")
    return 0


def _handle_stats(args: argparse.Namespace, settings: FeedSettings) -> int:
    snapshot = _load_cached(args, settings)
    stations = filter_by_postal_code(snapshot.stations, args.postal_code)
    summary = dataset_summary(stations)
    print(f"{summary.total_stations} stations, latest update {summary.last_update or 'unknown'}")
    for stat in fuel_statistics(stations):
        print(
            f"{stat.name:<8} n={stat.count:<6} min={stat.min_price:.3f} "
            f"median={stat.median:.3f} avg={stat.average:.3f} max={stat.max_price:.3f}"
        )
    if args.distribution:
        for bucket in price_distribution(stations, args.distribution):
            print(f"{bucket.price} {bucket.count:>6} {bucket.percentage:5.1f}%")
    return 0


def _add_cache_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cache", help="Snapshot file (default: CARBURANTS_CACHE_PATH)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="carburants",
        description="Fetch, parse and query the French fuel price feed.",
    )
    parser.add_argument(
        "--no-log-files",
        action="store_true",
        help="Only log to the console",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Download the feed and refresh the snapshot")
    fetch_parser.add_argument("--no-cache", action="store_true", help="Do not write the snapshot")
    fetch_parser.add_argument("--save-archive", type=Path, help="Also keep the downloaded archive")
    fetch_parser.add_argument("--report", action="store_true", help="Print one line per attempt")
    fetch_parser.set_defaults(func=_handle_fetch)

    parse_parser = subparsers.add_parser("parse", help="Parse an archive downloaded earlier")
    parse_parser.add_argument("archive", help="Path to the zip archive")
    parse_parser.add_argument("--write-cache", action="store_true", help="Store the result as snapshot")
    parse_parser.set_defaults(func=_handle_parse)

    top_parser = subparsers.add_parser("top", help="Rank stations by price or distance")
    _add_cache_argument(top_parser)
    top_parser.add_argument("-n", "--limit", type=int, default=10)
    top_parser.add_argument("--order-by", choices=ORDER_BY, default="price")
    top_parser.add_argument("--fuel", help="Fuel name, e.g. Gazole or SP95")
    top_parser.add_argument("--max-price", type=float)
    top_parser.add_argument("--near", type=_coordinates, metavar="LAT,LON")
    top_parser.add_argument("--max-distance", type=float, metavar="KM")
    top_parser.add_argument("--postal-code", help="Postal code, '75*' for a prefix")
    top_parser.add_argument("--open-now", action="store_true")
    top_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    top_parser.set_defaults(func=_handle_top)

    stats_parser = subparsers.add_parser("stats", help="Price statistics per fuel")
    _add_cache_argument(stats_parser)
    stats_parser.add_argument("--postal-code", help="Postal code, '75*' for a prefix")
    stats_parser.add_argument("--distribution", metavar="FUEL", help="Also print the price histogram")
    stats_parser.set_defaults(func=_handle_stats)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1

    load_default_env_files(base_dir=Path.cwd())
    settings = FeedSettings.from_env()
    configure_logging(settings, files=not args.no_log_files)

    try:
        return handler(args, settings)
    except FeedError as exc:
        log.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - manual execution
    raise SystemExit(main())
