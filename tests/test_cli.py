import json
import logging

import pytest
import responses

from carburants import cli
from carburants.feed.config import FeedSettings
from carburants.feed.logging import configure_logging

FEED = "https://donnees.example.test/opendata/instantane"


@pytest.fixture(autouse=True)
def _cli_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    configure_logging(FeedSettings(), files=False)
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def cached(tmp_path, sample_archive, capsys):
    archive = tmp_path / "prix.zip"
    archive.write_bytes(sample_archive)
    assert cli.main(["--no-log-files", "parse", str(archive), "--write-cache"]) == 0
    capsys.readouterr()
    return tmp_path / "cache" / "stations.json"


def test_parse_writes_snapshot(tmp_path, sample_archive, capsys) -> None:
    archive = tmp_path / "prix.zip"
    archive.write_bytes(sample_archive)

    assert cli.main(["--no-log-files", "parse", str(archive), "--write-cache"]) == 0

    out = capsys.readouterr().out
    assert f"2 stations parsed from {archive}" in out
    payload = json.loads((tmp_path / "cache" / "stations.json").read_text(encoding="utf-8"))
    assert [station["id"] for station in payload["stations"]] == ["1000001", "1000002"]


def test_parse_missing_archive(tmp_path, capsys) -> None:
    assert cli.main(["--no-log-files", "parse", str(tmp_path / "nope.zip")]) == 1

    assert "Archive not found" in capsys.readouterr().err


def test_top_by_price(cached, capsys) -> None:
    assert cli.main(["--no-log-files", "top", "--fuel", "Gazole", "-n", "1"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 1
    assert "1.759 €" in lines[0]
    assert "16 Avenue de Marboz, 01000 BOURG-EN-BRESSE" in lines[0]


def test_top_as_json_by_distance(cached, capsys) -> None:
    argv = ["--no-log-files", "top", "--json", "--order-by", "distance", "--near", "46.2,5.2"]

    assert cli.main(argv) == 0

    rows = json.loads(capsys.readouterr().out)
    assert [row["id"] for row in rows] == ["1000001", "1000002"]
    assert rows[0]["distance"] < rows[1]["distance"]
    assert rows[0]["selectedFuelPrice"] == pytest.approx(1.789)


def test_top_rejects_inconsistent_query(cached, capsys) -> None:
    assert cli.main(["--no-log-files", "top", "--max-price", "1.8"]) == 1

    assert "max_price requires fuel_type" in capsys.readouterr().err


def test_top_without_snapshot(capsys) -> None:
    assert cli.main(["--no-log-files", "top"]) == 1

    assert "run 'carburants fetch' first" in capsys.readouterr().err


def test_stats_with_distribution(cached, capsys) -> None:
    assert cli.main(["--no-log-files", "stats", "--distribution", "Gazole"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("2 stations, latest update 2024-05-02 10:01:00")
    assert "Gazole   n=2" in out
    assert "1.76      1  50.0%" in out
    assert "1.79      1  50.0%" in out


def test_stats_postal_code_filter(cached, capsys) -> None:
    assert cli.main(["--no-log-files", "stats", "--postal-code", "75*"]) == 0

    assert capsys.readouterr().out.startswith("0 stations, latest update unknown")


@responses.activate
def test_fetch_downloads_and_caches(monkeypatch, tmp_path, sample_archive, capsys) -> None:
    monkeypatch.setenv("CARBURANTS_FEED_URLS", FEED)
    monkeypatch.setenv("CARBURANTS_RELAYS", "direct")
    responses.get(FEED, body=sample_archive, status=200)
    saved = tmp_path / "download.zip"

    assert cli.main(["fetch", "--report", "--save-archive", str(saved)]) == 0

    out = capsys.readouterr().out
    assert f"2 stations fetched from {FEED} via direct" in out
    assert out.splitlines()[0].startswith("ok")
    assert saved.read_bytes() == sample_archive
    assert (tmp_path / "cache" / "stations.json").exists()
    assert (tmp_path / "log" / "diagnostics.log").exists()


@responses.activate
def test_fetch_failure_exits_with_error(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.setenv("CARBURANTS_FEED_URLS", FEED)
    monkeypatch.setenv("CARBURANTS_RELAYS", "direct")
    responses.get(FEED, body="down", status=503)

    assert cli.main(["--no-log-files", "fetch", "--report"]) == 1

    captured = capsys.readouterr()
    assert captured.out.startswith("error")
    assert "refresh failed: Failed to fetch the feed" in captured.out
    assert "error: Failed to fetch the feed from all 1 attempts" in captured.err
    assert not (tmp_path / "cache" / "stations.json").exists()
