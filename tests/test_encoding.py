import codecs

import pytest

from carburants.ingest.encoding import (
    CJK_REPAIRS,
    MOJIBAKE_REPAIRS,
    decode_markup,
    detect_encoding,
    repair_mojibake,
)


def test_utf8_bom_is_stripped_and_decoded_as_utf8() -> None:
    data = codecs.BOM_UTF8 + "<ville>Bourg-lès-Valence</ville>".encode("utf-8")

    assert decode_markup(data) == "<ville>Bourg-lès-Valence</ville>"


def test_declared_latin_encoding_is_decoded_as_windows_1252() -> None:
    text = '<?xml version="1.0" encoding="ISO-8859-1"?><ville>Saint-Étienne – Nord</ville>'
    data = text.encode("cp1252")

    assert decode_markup(data) == text


@pytest.mark.parametrize("declared", ["ISO-8859-15", "latin1", "windows-1252", "cp1252"])
def test_latin_family_aliases_map_to_windows_1252(declared: str) -> None:
    data = f'<?xml version="1.0" encoding="{declared}"?><a/>'.encode("ascii")

    codec, strip_bom, _reason = detect_encoding(data)

    assert codec == "cp1252"
    assert strip_bom is False


def test_declared_utf8_is_honoured() -> None:
    text = '<?xml version="1.0" encoding="UTF-8"?><ville>Orléans</ville>'

    assert decode_markup(text.encode("utf-8")) == text


def test_declaration_after_probe_window_is_ignored() -> None:
    data = b" " * 250 + b'<?xml version="1.0" encoding="ISO-8859-1"?>'

    assert detect_encoding(data)[0] == "auto"


def test_undeclared_invalid_utf8_falls_back_to_windows_1252(recorder) -> None:
    data = "<ville>Sète</ville>".encode("cp1252")

    assert decode_markup(data, events=recorder) == "<ville>Sète</ville>"
    detected = recorder.named("encoding.detected")
    assert detected == [{"codec": "cp1252", "reason": "utf-8 rejected"}]


def test_undeclared_valid_utf8_stays_utf8(recorder) -> None:
    data = "<ville>Nîmes</ville>".encode("utf-8")

    assert decode_markup(data, events=recorder) == "<ville>Nîmes</ville>"
    assert recorder.named("encoding.detected")[0]["codec"] == "utf-8"


def test_double_encoded_accents_are_repaired(recorder) -> None:
    data = '<?xml version="1.0" encoding="UTF-8"?><ville>CafÃ© Ã  HyÃ¨res</ville>'.encode("utf-8")

    assert decode_markup(data, events=recorder).endswith("<ville>Café à Hyères</ville>")
    assert "encoding.repaired" in recorder.names()


@pytest.mark.parametrize(
    "broken, expected",
    [
        ("lâ€™aire", "l'aire"),
        ("â€œStationâ€", '"Station"'),
        ("Lyon â€“ Sud", "Lyon – Sud"),
        ("Nord â€” Est", "Nord — Est"),
        ("Ã‰CHANGEUR", "ÉCHANGEUR"),
        ("GARÃ‡ON", "GARÇON"),
    ],
)
def test_punctuation_and_capitals_are_repaired(broken: str, expected: str) -> None:
    assert repair_mojibake(broken) == expected


def test_cjk_corruptions_are_repaired() -> None:
    assert repair_mojibake("Caf茅 du P脿ssage") == "Café du Pàssage"


def test_prefix_sequences_come_after_the_sequences_they_prefix() -> None:
    patterns = [pattern for pattern, _ in MOJIBAKE_REPAIRS]
    for index, pattern in enumerate(patterns):
        for later in patterns[index + 1:]:
            assert not later.startswith(pattern) or later == pattern, (pattern, later)


def test_repair_tables_are_ordered_tuples() -> None:
    assert isinstance(MOJIBAKE_REPAIRS, tuple)
    assert isinstance(CJK_REPAIRS, tuple)
    assert all(len(entry) == 2 for entry in MOJIBAKE_REPAIRS + CJK_REPAIRS)


def test_clean_text_is_left_untouched() -> None:
    text = "Station Total - Aire de Beaune, 21200"

    assert repair_mojibake(text) == text
