"""Targeted rewrites that make the feed markup well-formed again."""

from __future__ import annotations

import re

__all__ = ["repair_markup"]

# ``<service>Boutique</services>``: the close tag is the open tag plus "s".
_PLURAL_CLOSE_RE = re.compile(r"<(\w+)(?=[\s>])([^>]*?)(?<!/)>([^<]*)</\1s>")
_BARE_AMPERSAND_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+|#x[0-9a-fA-F]+);)")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def repair_markup(text: str) -> str:
    """Fix mismatched plural close tags, bare ampersands and control characters.

    Element content is never dropped; only the markup around it changes.
    """

    text = _PLURAL_CLOSE_RE.sub(r"<\1\2>\3</\1>", text)
    text = _BARE_AMPERSAND_RE.sub("&amp;", text)
    return _CONTROL_CHARS_RE.sub("", text)
