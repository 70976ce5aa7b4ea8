import json
import logging
from datetime import datetime, timezone

import pytest

from carburants.models import DaySchedule, Fuel, Snapshot, Station, TimeRange
from carburants.utils.cache import (
    CACHE_FORMAT_VERSION,
    read_snapshot,
    register_cache_alert_hook,
    write_snapshot,
)


@pytest.fixture
def snapshot() -> Snapshot:
    station = Station(
        id="1000001",
        city="Saint-Étienne",
        brand="Total",
        name="Total",
        address="1 rue Neuve",
        postal_code="42000",
        coordinates=(45.4397, 4.3872),
        fuels=(Fuel("1", "Gazole", 1.789, "2024-05-02 10:01:00"),),
        services=("Boutique alimentaire",),
        opening_hours={"monday": DaySchedule(hours=(TimeRange("06:00", "22:00"),))},
        automate_24h=True,
    )
    return Snapshot(
        stations=(station, Station(id="2", city="Roanne")),
        fetched_at=datetime(2024, 5, 6, 8, 30, tzinfo=timezone.utc),
        source="https://example.test via direct",
    )


def test_written_cache_can_be_read_back(tmp_path, snapshot) -> None:
    path = write_snapshot(snapshot, tmp_path / "cache" / "stations.json")

    restored = read_snapshot(path)

    assert restored.stations == snapshot.stations
    assert restored.fetched_at == snapshot.fetched_at
    assert restored.source == snapshot.source


def test_cache_document_layout(tmp_path, snapshot) -> None:
    path = write_snapshot(snapshot, tmp_path / "stations.json", pretty=True)

    payload = json.loads(path.read_text(encoding="utf-8"))

    assert payload["version"] == CACHE_FORMAT_VERSION
    assert payload["fetchedAt"] == "2024-05-06T08:30:00+00:00"
    assert payload["stations"][0]["postalCode"] == "42000"
    assert payload["stations"][0]["openingHours"]["monday"]["hours"] == [{"open": "06:00", "close": "22:00"}]
    assert "Saint-Étienne" in path.read_text(encoding="utf-8")
    assert [p.name for p in tmp_path.iterdir()] == ["stations.json"]


def test_missing_cache_returns_none_and_alerts(tmp_path, caplog) -> None:
    alerts = []
    unregister = register_cache_alert_hook(lambda path, message: alerts.append((path, message)))
    caplog.set_level(logging.WARNING, logger="carburants.utils.cache")
    missing = tmp_path / "absent.json"
    try:
        assert read_snapshot(missing) is None
    finally:
        unregister()

    assert alerts == [(missing, "cache file missing")]
    assert "not found" in caplog.text


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[]",
        json.dumps({"stations": {}}),
        json.dumps({"fetchedAt": "yesterday", "stations": []}),
    ],
)
def test_unusable_cache_returns_none(tmp_path, content: str) -> None:
    path = tmp_path / "stations.json"
    path.write_text(content, encoding="utf-8")

    assert read_snapshot(path) is None


def test_bad_records_are_skipped(tmp_path, caplog) -> None:
    path = tmp_path / "stations.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "fetchedAt": "2024-05-06T08:30:00",
                "stations": [
                    {"id": "1", "city": "Albi"},
                    "garbage",
                    {"city": "no id"},
                    {"id": "1", "city": "duplicate"},
                    {"id": "2", "fuels": [{"id": "1", "price": "n/a"}]},
                    {"id": "3", "latitude": 43.9, "longitude": 2.1},
                ],
            }
        ),
        encoding="utf-8",
    )
    caplog.set_level(logging.WARNING, logger="carburants.utils.cache")

    restored = read_snapshot(path)

    assert [station.id for station in restored.stations] == ["1", "3"]
    assert restored.stations[0].city == "Albi"
    assert restored.stations[1].coordinates == (43.9, 2.1)
    assert restored.fetched_at.tzinfo is not None
    assert restored.source == str(path)
    assert caplog.text.count("Skipping cached station") == 4


def test_record_with_malformed_hours_is_skipped(tmp_path, caplog) -> None:
    path = tmp_path / "stations.json"
    path.write_text(
        json.dumps(
            {
                "fetchedAt": "2024-05-06T08:30:00",
                "stations": [
                    {"id": "1", "city": "Albi", "openingHours": {"monday": "x"}},
                    {"id": "2", "city": "Rodez", "openingHours": {"monday": {"hours": ["06:00"]}}},
                    {"id": "3", "city": "Millau", "openingHours": {"monday": {"closed": True}}},
                ],
            }
        ),
        encoding="utf-8",
    )
    caplog.set_level(logging.WARNING, logger="carburants.utils.cache")

    restored = read_snapshot(path)

    assert [station.id for station in restored.stations] == ["3"]
    assert restored.stations[0].opening_hours["monday"].closed is True
    assert "must be an object" in caplog.text


def test_unregistered_hook_is_not_called(tmp_path) -> None:
    calls = []
    unregister = register_cache_alert_hook(lambda path, message: calls.append(message))
    unregister()
    unregister()

    read_snapshot(tmp_path / "absent.json")

    assert calls == []
