"""File utility helpers."""
from __future__ import annotations

import os
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator, Optional, Union


@contextmanager
def atomic_write(
    path: Union[str, Path],
    mode: str = "w",
    encoding: Optional[str] = "utf-8",
    permissions: int = 0o644,
    newline: Optional[str] = None,
) -> Iterator[IO[Any]]:
    """Safe atomic file write using a temporary file.

    The target only ever contains either its previous content or the complete
    new content; readers never observe a half-written snapshot.

    Args:
        path: Target file path.
        mode: Open mode ('w' for text, 'wb' for binary).
        encoding: Text encoding (default: 'utf-8'). Ignored if binary mode.
        permissions: File permissions (default: 0o644).
        newline: Newline control (passed to open).
    """
    target = Path(path).resolve()
    target.parent.mkdir(parents=True, exist_ok=True)

    text_mode = "b" not in mode
    if not text_mode:
        encoding = None
        newline = None

    tmp_path = target.with_name(f"{target.name}.{uuid.uuid4().hex}.tmp")

    f: Optional[IO[Any]] = None
    try:
        f = open(tmp_path, mode, encoding=encoding, newline=newline)
        yield f
        f.flush()
        os.fsync(f.fileno())
        f.close()
        f = None

        try:
            os.chmod(tmp_path, permissions)
        except OSError:
            pass

        os.replace(tmp_path, target)
    except BaseException:
        if f is not None:
            try:
                f.close()
            except OSError:
                pass
        if os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise
