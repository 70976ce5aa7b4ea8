"""Extraction of the markup document from the downloaded archive."""

from __future__ import annotations

import io
import zipfile
from typing import Optional

from ..feed.events import EventHook, emit
from .errors import FormatError

__all__ = ["ZIP_SIGNATURE", "extract_markup", "looks_like_archive"]

ZIP_SIGNATURE = b"PK\x03\x04"
DEFAULT_MAX_ENTRY_BYTES = 300 * 1024 * 1024


def looks_like_archive(payload: bytes) -> bool:
    return payload.startswith(ZIP_SIGNATURE)


def _preview(payload: bytes, limit: int = 80) -> str:
    return payload[:limit].decode("utf-8", errors="replace")


def extract_markup(
    payload: bytes,
    *,
    max_entry_bytes: int = DEFAULT_MAX_ENTRY_BYTES,
    events: Optional[EventHook] = None,
) -> bytes:
    """Return the bytes of the first ``.xml`` entry in ``payload``.

    Raises :class:`FormatError` when ``payload`` is not a zip archive, holds
    no markup entry, or the entry is larger than ``max_entry_bytes``.
    """

    if not looks_like_archive(payload):
        raise FormatError(f"not an archive (starts with {_preview(payload)!r})")

    try:
        archive = zipfile.ZipFile(io.BytesIO(payload))
    except zipfile.BadZipFile as exc:
        raise FormatError(f"not an archive: {exc}") from exc

    with archive:
        entry = next(
            (
                info
                for info in archive.infolist()
                if not info.is_dir() and info.filename.lower().endswith(".xml")
            ),
            None,
        )
        if entry is None:
            names = ", ".join(info.filename for info in archive.infolist()) or "empty archive"
            raise FormatError(f"no markup entry ({names})")
        if entry.file_size > max_entry_bytes:
            raise FormatError(
                f"markup entry {entry.filename} is too large "
                f"({entry.file_size} > {max_entry_bytes} bytes)"
            )

        try:
            with archive.open(entry) as handle:
                data = handle.read(max_entry_bytes + 1)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, RuntimeError, OSError) as exc:
            raise FormatError(f"cannot read markup entry {entry.filename}: {exc}") from exc

    if len(data) > max_entry_bytes:
        raise FormatError(f"markup entry {entry.filename} exceeds {max_entry_bytes} bytes")

    emit(events, "archive.entry", name=entry.filename, size=len(data))
    return data
