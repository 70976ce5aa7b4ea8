from datetime import datetime, timezone

import pytest

from carburants.models import DaySchedule, Fuel, Station, TimeRange
from carburants.query import (
    StationQuery,
    distance_km,
    filter_by_postal_code,
    filter_stations,
    format_address,
    is_open,
    parse_services,
    rank_top_n,
    select_stations,
)
from carburants.query.hours import local_now

PARIS = (48.8566, 2.3522)
LYON = (45.7640, 4.8357)

# 2024-05-06 is a Monday.
MONDAY_NOON = datetime(2024, 5, 6, 12, 0)


def _station(station_id: str, **kwargs) -> Station:
    kwargs.setdefault("city", "Lyon")
    return Station(id=station_id, **kwargs)


def _gazole(price: float) -> Fuel:
    return Fuel(id="1", name="Gazole", price=price)


def test_distance_between_paris_and_lyon() -> None:
    assert distance_km(PARIS, LYON) == pytest.approx(392, abs=2)
    assert distance_km(PARIS, PARIS) == 0
    assert distance_km(PARIS, LYON) == pytest.approx(distance_km(LYON, PARIS))


def test_station_without_hours_is_open() -> None:
    assert is_open(_station("1"), MONDAY_NOON)


def test_missing_weekday_counts_as_closed() -> None:
    station = _station("1", opening_hours={"tuesday": DaySchedule()})

    assert not is_open(station, MONDAY_NOON)


def test_day_without_ranges_is_open_all_day() -> None:
    station = _station("1", opening_hours={"monday": DaySchedule()})

    assert is_open(station, datetime(2024, 5, 6, 3, 0))


def test_closed_day() -> None:
    station = _station("1", opening_hours={"monday": DaySchedule(closed=True)})

    assert not is_open(station, MONDAY_NOON)


@pytest.mark.parametrize(
    "hour, minute, expected",
    [(6, 0, True), (22, 0, True), (22, 1, False), (5, 59, False), (13, 30, True)],
)
def test_range_bounds_are_inclusive(hour: int, minute: int, expected: bool) -> None:
    station = _station(
        "1", opening_hours={"monday": DaySchedule(hours=(TimeRange("06:00", "22:00"),))}
    )

    assert is_open(station, datetime(2024, 5, 6, hour, minute)) is expected


def test_overnight_range_spans_midnight() -> None:
    station = _station(
        "1", opening_hours={"monday": DaySchedule(hours=(TimeRange("22:00", "06:00"),))}
    )

    assert is_open(station, datetime(2024, 5, 6, 23, 30))
    assert is_open(station, datetime(2024, 5, 6, 5, 0))
    assert not is_open(station, MONDAY_NOON)


def test_aware_time_is_converted_to_paris() -> None:
    # 10:30 UTC is 12:30 in Paris during summer time.
    converted = local_now(datetime(2024, 5, 6, 10, 30, tzinfo=timezone.utc))

    assert (converted.hour, converted.minute) == (12, 30)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Boutique // Lavage", ["Boutique", "Lavage"]),
        ("Boutique/Lavage; Gonflage", ["Boutique", "Lavage", "Gonflage"]),
        ("Toilettes - Wifi, Bar", ["Toilettes", "Wifi", "Bar"]),
        ("  ", []),
        (None, []),
    ],
)
def test_combined_service_strings_are_split(raw, expected) -> None:
    assert parse_services(raw) == expected


def test_format_address_skips_missing_parts() -> None:
    assert format_address(_station("1", address="1 rue Neuve", postal_code="69001")) == (
        "1 rue Neuve, 69001 Lyon"
    )
    assert format_address(Station(id="2", city="")) == ""


def test_postal_code_patterns() -> None:
    stations = [
        _station("1", postal_code="75001"),
        _station("2", postal_code="69075"),
        _station("3"),
    ]

    assert [s.id for s in filter_by_postal_code(stations, "75*")] == ["1"]
    assert [s.id for s in filter_by_postal_code(stations, "75")] == ["1", "2"]
    assert len(filter_by_postal_code(stations, " ")) == 3


def test_query_validation() -> None:
    with pytest.raises(ValueError):
        StationQuery(max_price=1.8)
    with pytest.raises(ValueError):
        StationQuery(max_distance=5)
    with pytest.raises(ValueError):
        StationQuery(features=("carwash",))


def test_fuel_and_price_filter() -> None:
    stations = [
        _station("cheap", fuels=(_gazole(1.70),)),
        _station("dear", fuels=(_gazole(1.95),)),
        _station("petrol", fuels=(Fuel(id="2", name="SP95", price=1.60),)),
    ]

    result = filter_stations(stations, StationQuery(fuel_type="Gazole", max_price=1.80))

    assert [s.id for s in result] == ["cheap"]


def test_distance_filter_drops_stations_without_coordinates() -> None:
    stations = [
        _station("near", coordinates=(45.77, 4.84)),
        _station("far", coordinates=PARIS),
        _station("unknown"),
    ]

    result = filter_stations(stations, StationQuery(reference=LYON, max_distance=10))

    assert [s.id for s in result] == ["near"]


def test_services_require_all_and_features_any() -> None:
    stations = [
        _station("both", services=("Boutique alimentaire // Lavage",), highway=True),
        _station("one", services=("Lavage",), automate_24h=True),
        _station("none", services=("Boutique alimentaire", "Lavage")),
    ]
    query = StationQuery(
        services=("Boutique alimentaire", "Lavage"), features=("highway", "auto24h")
    )

    assert [s.id for s in filter_stations(stations, query)] == ["both"]


def test_location_matches_formatted_address() -> None:
    stations = [_station("1", address="Route de Genas", postal_code="69500", city="Bron"), _station("2")]

    assert [s.id for s in filter_stations(stations, StationQuery(location="genas"))] == ["1"]
    assert [s.id for s in filter_stations(stations, StationQuery(location="69500 bron"))] == ["1"]


def test_open_now_uses_pinned_time() -> None:
    stations = [
        _station("open", opening_hours={"monday": DaySchedule(hours=(TimeRange("06:00", "22:00"),))}),
        _station("closed", opening_hours={"monday": DaySchedule(closed=True)}),
    ]

    result = filter_stations(stations, StationQuery(open_now=True, now=MONDAY_NOON))

    assert [s.id for s in result] == ["open"]


def test_top_n_by_price_is_stable() -> None:
    stations = [_station(str(index), fuels=(_gazole(price),)) for index, price in enumerate([1.75, 1.70, 1.70, 1.90])]

    top = rank_top_n(stations, 2, "price", fuel_type="Gazole")

    assert [item.station.id for item in top] == ["1", "2"]
    assert [item.selected_fuel_price for item in top] == [1.70, 1.70]


def test_top_n_sorts_missing_keys_last() -> None:
    stations = [
        _station("no-fuel"),
        _station("far", coordinates=PARIS, fuels=(_gazole(1.6),)),
        _station("near", coordinates=(45.75, 4.85), fuels=(_gazole(1.9),)),
    ]

    by_distance = rank_top_n(stations, 3, "distance", reference=LYON)
    by_price = rank_top_n(stations, 3, "price")

    assert [item.station.id for item in by_distance] == ["near", "far", "no-fuel"]
    assert by_distance[2].distance is None
    assert [item.station.id for item in by_price] == ["far", "near", "no-fuel"]


def test_top_n_arguments_are_validated() -> None:
    with pytest.raises(ValueError):
        rank_top_n([], 3, "name")
    with pytest.raises(ValueError):
        rank_top_n([], -1, "price")
    assert rank_top_n([_station("1")], 0, "price") == []


def test_select_stations_requires_coordinates_and_sorts_by_distance() -> None:
    stations = [
        _station("far", coordinates=PARIS),
        _station("hidden"),
        _station("near", coordinates=(45.75, 4.85)),
        _station("mid", coordinates=(46.2, 5.2)),
    ]

    selected = select_stations(stations, StationQuery(reference=LYON), max_stations=2)

    assert [item.station.id for item in selected] == ["near", "mid"]


def test_select_stations_top_n_by_price() -> None:
    stations = [
        _station("a", coordinates=LYON, fuels=(_gazole(1.8),)),
        _station("b", coordinates=PARIS, fuels=(_gazole(1.7),)),
        _station("c", fuels=(_gazole(1.5),)),
    ]

    selected = select_stations(stations, StationQuery(fuel_type="Gazole"), top_n=1, order_by="price")

    assert [item.station.id for item in selected] == ["b"]
