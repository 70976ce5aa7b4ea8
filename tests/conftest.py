import io
import sys
import zipfile
from pathlib import Path
from typing import Iterable, Tuple, Union

import pytest

root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from carburants.feed.events import EventRecorder  # noqa: E402

SAMPLE_FEED = """<?xml version="1.0" encoding="ISO-8859-1" standalone="yes"?>
<pdv_liste>
  <pdv id="1000001" latitude="4620114" longitude="519791" cp="01000" pop="R">
    <adresse>596 AVENUE DE TREVOUX</adresse>
    <ville>SAINT-DENIS-LèS-BOURG</ville>
    <horaires automate-24-24="1">
      <jour id="1" nom="Lundi" ferme="">
        <horaire ouverture="06.00" fermeture="22.00"/>
      </jour>
      <jour id="7" nom="Dimanche" ferme="1"/>
    </horaires>
    <services>
      <service>Boutique alimentaire</service>
      <service>Station de gonflage</service>
    </services>
    <prix nom="Gazole" id="1" maj="2024-05-02 10:01:00" valeur="1.789"/>
    <prix nom="SP95" id="2" maj="2024-05-02 10:01:00" valeur="1.899"/>
  </pdv>
  <pdv id="1000002" latitude="4621842" longitude="522767" cp="01000" pop="R">
    <adresse>16 Avenue de Marboz</adresse>
    <ville>BOURG-EN-BRESSE</ville>
    <services>
      <service>Lavage automatique</service>
    </services>
    <prix nom="Gazole" id="1" maj="2024-05-01 08:00:00" valeur="1.759"/>
    <prix nom="E10" id="5" maj="2024-05-01 08:00:00" valeur="1.849"/>
  </pdv>
</pdv_liste>
"""


def make_archive(
    markup: Union[str, bytes],
    name: str = "PrixCarburants_instantane.xml",
    extra: Iterable[Tuple[str, bytes]] = (),
    encoding: str = "cp1252",
) -> bytes:
    data = markup.encode(encoding) if isinstance(markup, str) else markup
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for extra_name, extra_data in extra:
            archive.writestr(extra_name, extra_data)
        archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def sample_feed() -> str:
    return SAMPLE_FEED


@pytest.fixture
def archive_factory():
    return make_archive


@pytest.fixture
def sample_archive() -> bytes:
    return make_archive(SAMPLE_FEED)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "CARBURANTS_FEED_URLS",
        "CARBURANTS_RELAYS",
        "CARBURANTS_TIMEOUT",
        "CARBURANTS_MAX_BYTES",
        "CARBURANTS_MAX_ENTRY_BYTES",
        "CARBURANTS_FALLBACK_MAX_ITERATIONS",
        "CARBURANTS_USER_AGENT",
        "CARBURANTS_CACHE_PRETTY",
        "CARBURANTS_ENV_FILES",
        "LOG_LEVEL",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CARBURANTS_CACHE_PATH", str(tmp_path / "cache" / "stations.json"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "log"))
