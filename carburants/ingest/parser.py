"""Tree based parser for the station markup.

Every field is resolved by an ordered tuple of resolver functions; the first
one returning a non-empty string wins.  The feed changed its vocabulary a few
times over the years, so the chains list the historical names as well.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from xml.etree.ElementTree import Element

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET

from ..feed.events import EventHook, emit
from ..models import DaySchedule, Fuel, Station, TimeRange
from .errors import FormatError, StationParseError, StructuralParseError
from .fallback import FALLBACK_MAX_ITERATIONS, parse_fallback
from .normalize import IdRegistry, RawStation, build_station, dedupe, normalize_fuel

__all__ = [
    "STATION_CONTAINERS",
    "parse_opening_hours",
    "parse_stations",
    "parse_tree",
]

log = logging.getLogger(__name__)

Resolver = Callable[[Element], Optional[str]]

_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")

STATION_CONTAINERS: Tuple[str, ...] = (
    "pdv",
    "station",
    "point-de-vente",
    "pdv_id",
    "gasStation",
    "fuel-station",
)
FUEL_CONTAINERS: Tuple[str, ...] = ("prix", "fuel", "carburant", "price", "essence")
SERVICE_ELEMENTS: Tuple[str, ...] = ("service", "services", "equipement", "equipment")
HOURS_CONTAINERS: Tuple[str, ...] = ("horaires", "opening_hours", "hours", "horaire")
DAY_ELEMENTS: Tuple[str, ...] = ("jour", "day", "horaire", "schedule")
RANGE_ELEMENTS: Tuple[str, ...] = ("horaire", "hours", "time", "schedule")

DAY_NAMES: Dict[str, str] = {
    "lundi": "monday",
    "mardi": "tuesday",
    "mercredi": "wednesday",
    "jeudi": "thursday",
    "vendredi": "friday",
    "samedi": "saturday",
    "dimanche": "sunday",
    "lun": "monday",
    "mar": "tuesday",
    "mer": "wednesday",
    "jeu": "thursday",
    "ven": "friday",
    "sam": "saturday",
    "dim": "sunday",
    "monday": "monday",
    "tuesday": "tuesday",
    "wednesday": "wednesday",
    "thursday": "thursday",
    "friday": "friday",
    "saturday": "saturday",
    "sunday": "sunday",
}

_CLOCK_RE = re.compile(r"^(\d{1,2})(?:\s*[.:hH]\s*(\d{2}))?$")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _text_of(element: Element) -> str:
    return "".join(element.itertext()).strip()


def _descendants(element: Element, tag: str) -> Iterator[Element]:
    for candidate in element.iter(tag):
        if candidate is not element:
            yield candidate


def _first_descendant(element: Element, tag: str) -> Optional[Element]:
    return next(_descendants(element, tag), None)


def _first_matching(element: Element, tags: Sequence[str]) -> List[Element]:
    for tag in tags:
        found = list(_descendants(element, tag))
        if found:
            return found
    return []


def _attr(name: str) -> Resolver:
    def resolve(element: Element) -> Optional[str]:
        return _clean(element.get(name))

    return resolve


def _child_text(tag: str) -> Resolver:
    def resolve(element: Element) -> Optional[str]:
        child = _first_descendant(element, tag)
        if child is None:
            return None
        return _clean(_text_of(child))

    return resolve


def _joined_attrs(*groups: Tuple[str, ...]) -> Resolver:
    """Join the first present attribute of every group with spaces."""

    def resolve(element: Element) -> Optional[str]:
        parts = []
        for names in groups:
            value = _resolve(element, tuple(_attr(name) for name in names))
            if value:
                parts.append(value)
        return " ".join(parts) or None

    return resolve


def _resolve(element: Element, chain: Sequence[Resolver]) -> Optional[str]:
    for resolver in chain:
        value = resolver(element)
        if value:
            return value
    return None


def _attrs(*names: str) -> Tuple[Resolver, ...]:
    return tuple(_attr(name) for name in names)


ID_CHAIN = _attrs("id", "station_id", "code")
LATITUDE_CHAIN = _attrs("latitude", "lat", "y")
LONGITUDE_CHAIN = _attrs("longitude", "lng", "lon", "x")
CITY_CHAIN = (_child_text("ville"),) + _attrs("ville", "city", "commune", "localite")
POSTAL_CODE_CHAIN = (_child_text("cp"),) + _attrs("cp", "postal_code", "code_postal", "codepostal")
ADDRESS_CHAIN = (
    (_child_text("adresse"),)
    + _attrs("adresse", "address", "rue", "voie", "addr", "street")
    + (_joined_attrs(("num", "numero"), ("nom_rue", "nom_voie"), ("route", "road")),)
)
BRAND_CHAIN = _attrs("marque", "brand", "enseigne", "nom")
LAST_UPDATE_CHAIN = _attrs("maj", "last_update", "date_maj", "update")
AUTOMATE_CHAIN = _attrs("automate-24-24", "automate_24h", "automate24h")
HIGHWAY_CHAIN = _attrs("autoroute", "highway", "autorute")
FREE_ACCESS_CHAIN = _attrs("libre-service", "free_access", "libre_service")

FUEL_ID_CHAIN = _attrs("nom", "id", "type", "name", "code")
FUEL_PRICE_CHAIN = _attrs("valeur", "price", "prix", "value") + (lambda el: _clean(_text_of(el)),)
FUEL_UPDATE_CHAIN = _attrs("maj", "last_update", "date", "update")

SERVICE_NAME_CHAIN = (lambda el: _clean(_text_of(el)),) + _attrs("nom", "name", "type")
DAY_NAME_CHAIN = _attrs("nom", "name", "day") + (lambda el: el.tag,)
RANGE_OPEN_CHAIN = _attrs("ouverture", "open", "start")
RANGE_CLOSE_CHAIN = _attrs("fermeture", "close", "end")


def _flag(element: Element, chain: Sequence[Resolver], fallback: Optional[Element] = None) -> bool:
    for resolver in chain:
        if resolver(element) == "1":
            return True
    if fallback is not None:
        return _flag(fallback, chain)
    return False


def normalize_clock(value: Optional[str]) -> Optional[str]:
    """Return ``value`` as ``HH:MM`` (``"6.00"`` becomes ``"06:00"``)."""

    if not value:
        return None
    match = _CLOCK_RE.match(value.strip())
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        return None
    return f"{hours:02d}:{minutes:02d}"


def parse_opening_hours(container: Element) -> Optional[Dict[str, DaySchedule]]:
    """Build a weekday mapping from an hours container.

    Returns ``None`` when no day element maps to a known weekday.
    """

    schedule: Dict[str, DaySchedule] = {}
    for day in _first_matching(container, DAY_ELEMENTS):
        raw_name = _resolve(day, DAY_NAME_CHAIN) or ""
        weekday = DAY_NAMES.get(raw_name.strip().lower())
        if weekday is None:
            continue

        text = _text_of(day).lower()
        closed = (
            day.get("ferme") == "1"
            or day.get("closed") == "1"
            or "fermé" in text
            or "closed" in text
        )
        if closed:
            schedule[weekday] = DaySchedule(closed=True)
            continue

        ranges = []
        for element in _first_matching(day, RANGE_ELEMENTS):
            opens = normalize_clock(_resolve(element, RANGE_OPEN_CHAIN))
            closes = normalize_clock(_resolve(element, RANGE_CLOSE_CHAIN))
            if opens and closes:
                ranges.append(TimeRange(open=opens, close=closes))
        schedule[weekday] = DaySchedule(closed=False, hours=tuple(ranges))

    return schedule or None


def _parse_fuels(element: Element) -> List[Fuel]:
    fuels = []
    for node in _first_matching(element, FUEL_CONTAINERS):
        fuel = normalize_fuel(
            _resolve(node, FUEL_ID_CHAIN),
            _resolve(node, FUEL_PRICE_CHAIN),
            _resolve(node, FUEL_UPDATE_CHAIN),
        )
        if fuel is not None:
            fuels.append(fuel)
    return fuels


def _parse_services(element: Element) -> List[str]:
    found: List[str] = []
    for tag in SERVICE_ELEMENTS:
        for node in _descendants(element, tag):
            if len(node):
                continue
            name = _resolve(node, SERVICE_NAME_CHAIN)
            if name:
                found.append(name)
    for child in element:
        if not isinstance(child.tag, str) or "service" not in child.tag.lower():
            continue
        name = _clean(child.text) or _resolve(child, _attrs("nom", "name"))
        if name:
            found.append(name)
    return dedupe(found)


def _raw_station(element: Element, index: int) -> RawStation:
    hours_container = None
    for tag in HOURS_CONTAINERS:
        hours_container = _first_descendant(element, tag)
        if hours_container is not None:
            break

    return RawStation(
        id=_resolve(element, ID_CHAIN) or f"station-{index}",
        raw_latitude=_resolve(element, LATITUDE_CHAIN),
        raw_longitude=_resolve(element, LONGITUDE_CHAIN),
        city=_resolve(element, CITY_CHAIN) or "",
        postal_code=_resolve(element, POSTAL_CODE_CHAIN),
        address=_resolve(element, ADDRESS_CHAIN),
        brand=_resolve(element, BRAND_CHAIN),
        last_update=_resolve(element, LAST_UPDATE_CHAIN),
        # The current feed carries the 24/24 flag on <horaires>.
        automate_24h=_flag(element, AUTOMATE_CHAIN, hours_container),
        highway=_flag(element, HIGHWAY_CHAIN),
        free_access=_flag(element, FREE_ACCESS_CHAIN),
        fuels=_parse_fuels(element),
        services=_parse_services(element),
        opening_hours=parse_opening_hours(hours_container) if hours_container is not None else None,
    )


def _load_tree(text: str) -> Element:
    # ElementTree rejects str input that still carries an encoding declaration.
    body = _XML_DECLARATION_RE.sub("", text, count=1)
    try:
        return SafeET.fromstring(body)
    except SafeET.ParseError as exc:
        raise StructuralParseError(f"markup is not well-formed: {exc}") from exc
    except DefusedXmlException as exc:
        raise StructuralParseError(f"markup uses forbidden constructs: {exc}") from exc


def parse_tree(text: str, *, events: Optional[EventHook] = None) -> List[Station]:
    """Parse well-formed markup into stations.

    Raises :class:`StructuralParseError` when the markup cannot be parsed as a
    tree and :class:`FormatError` when no known station element exists.
    """

    root = _load_tree(text)

    container = None
    elements: List[Element] = []
    for tag in STATION_CONTAINERS:
        elements = list(root.iter(tag))
        if elements:
            container = tag
            break
    if container is None:
        raise FormatError(f"no station elements found (root element <{root.tag}>)")

    emit(events, "parse.container", parser="tree", container=container, count=len(elements))

    registry = IdRegistry(events)
    stations: List[Station] = []
    for index, element in enumerate(elements):
        try:
            station = build_station(_raw_station(element, index), registry)
        except (StationParseError, ValueError, TypeError) as exc:
            emit(events, "station.skipped", parser="tree", index=index, reason=str(exc))
            continue
        if station is None:
            emit(events, "station.rejected", parser="tree", index=index)
            continue
        stations.append(station)

    emit(events, "parse.complete", parser="tree", stations=len(stations), elements=len(elements))
    return stations


def parse_stations(
    text: str,
    *,
    max_iterations: int = FALLBACK_MAX_ITERATIONS,
    events: Optional[EventHook] = None,
) -> Tuple[List[Station], str]:
    """Parse ``text`` with the tree parser, falling back to the regex scan.

    Returns the stations together with the name of the parser that produced
    them (``"tree"`` or ``"fallback"``).
    """

    try:
        stations = parse_tree(text, events=events)
        parser = "tree"
    except StructuralParseError as exc:
        log.warning("Markup is malformed, using fallback parser: %s", exc)
        emit(events, "parse.structural_failure", reason=str(exc))
        stations = parse_fallback(text, max_iterations=max_iterations, events=events)
        parser = "fallback"

    if not stations:
        raise FormatError(f"no station could be parsed ({parser} parser)")
    return stations, parser
