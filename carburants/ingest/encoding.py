"""Decoding of the extracted markup and repair of double-encoded text.

The feed is nominally ISO-8859-1 but regularly ships UTF-8, with or without a
byte order mark, and sometimes text that went through a wrong conversion
once already.  :func:`decode_markup` picks a codec and then runs
:func:`repair_mojibake`, which rewrites the well-known corruption patterns.
"""

from __future__ import annotations

import codecs
import re
from typing import Optional, Tuple

from ..feed.events import EventHook, emit

__all__ = [
    "CJK_REPAIRS",
    "MOJIBAKE_REPAIRS",
    "decode_markup",
    "detect_encoding",
    "repair_mojibake",
]

_DECLARATION_PROBE_BYTES = 200
_DECLARED_ENCODING_RE = re.compile(rb"""encoding\s*=\s*["']([A-Za-z0-9_.:-]+)["']""")

_LATIN_ENCODINGS = frozenset(
    {
        "iso-8859-1",
        "iso-8859-15",
        "iso8859-1",
        "iso8859-15",
        "latin1",
        "latin-1",
        "windows-1252",
        "cp1252",
    }
)
_UTF8_ENCODINGS = frozenset({"utf-8", "utf8"})

# Applied in order.  Three-character punctuation sequences come before the
# bare "â€" prefix they share, otherwise the prefix rule would eat them.
MOJIBAKE_REPAIRS: Tuple[Tuple[str, str], ...] = (
    ("Ã©", "é"),
    ("Ã¨", "è"),
    ("Ãª", "ê"),
    ("Ã\xa0", "à"),
    ("Ã ", "à"),
    ("Ã¯", "ï"),
    ("Ã®", "î"),
    ("Ã´", "ô"),
    ("Ã¹", "ù"),
    ("Ã»", "û"),
    ("Ã¼", "ü"),
    ("Ã¢", "â"),
    ("Ã§", "ç"),
    ("Ã‰", "É"),
    ("Ã€", "À"),
    ("Ã‡", "Ç"),
    ("â€™", "'"),
    ("â€œ", '"'),
    ("â€“", "–"),
    ("â€”", "—"),
    ("â€", '"'),
)

# Accented letters seen rendered as unrelated CJK ideographs.
CJK_REPAIRS: Tuple[Tuple[str, str], ...] = (
    ("飨", "é"),
    ("锚", "à"),
    ("豥", "è"),
    ("蠢", "ç"),
    ("铆", "î"),
    ("么", "ô"),
    ("霉", "ù"),
    ("赂", "û"),
    ("露", "ï"),
    ("脺", "ü"),
    ("茅", "é"),
    ("脿", "à"),
    ("猫", "è"),
    ("漏", "ù"),
    ("锄", "ç"),
)


def _normalize_codec_name(name: str) -> Optional[str]:
    lowered = name.strip().lower()
    if lowered in _LATIN_ENCODINGS:
        return "cp1252"
    if lowered in _UTF8_ENCODINGS:
        return "utf-8"
    return None


def detect_encoding(data: bytes) -> Tuple[str, bool, str]:
    """Return ``(codec, strip_bom, reason)`` for ``data``.

    ``codec`` is ``"utf-8"``, ``"cp1252"`` or ``"auto"`` when neither a byte
    order mark nor a supported declaration settles the question.
    """

    if data.startswith(codecs.BOM_UTF8):
        return "utf-8", True, "bom"

    match = _DECLARED_ENCODING_RE.search(data[:_DECLARATION_PROBE_BYTES])
    if match:
        declared = match.group(1).decode("ascii", errors="replace")
        codec = _normalize_codec_name(declared)
        if codec is not None:
            return codec, False, f"declared {declared}"
    return "auto", False, "undeclared"


def repair_mojibake(text: str) -> str:
    """Apply :data:`MOJIBAKE_REPAIRS` then :data:`CJK_REPAIRS` to ``text``."""

    for pattern, replacement in MOJIBAKE_REPAIRS:
        if pattern in text:
            text = text.replace(pattern, replacement)
    for pattern, replacement in CJK_REPAIRS:
        if pattern in text:
            text = text.replace(pattern, replacement)
    return text


def decode_markup(data: bytes, *, events: Optional[EventHook] = None) -> str:
    """Decode the raw XML bytes and repair known corruption patterns."""

    codec, strip_bom, reason = detect_encoding(data)
    if strip_bom:
        data = data[len(codecs.BOM_UTF8):]

    if codec == "auto":
        try:
            text = data.decode("utf-8")
            codec = "utf-8"
        except UnicodeDecodeError:
            codec = "cp1252"
            reason = "utf-8 rejected"
            text = data.decode(codec, errors="replace")
    else:
        text = data.decode(codec, errors="replace")

    emit(events, "encoding.detected", codec=codec, reason=reason)

    repaired = repair_mojibake(text)
    if repaired != text:
        emit(events, "encoding.repaired", codec=codec)
    return repaired
