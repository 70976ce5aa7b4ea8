"""Holder of the current dataset snapshot."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Optional

from .models import Snapshot

__all__ = ["DatasetStore"]

log = logging.getLogger(__name__)

Loader = Callable[[], Snapshot]


class DatasetStore:
    """Keeps the last good :class:`Snapshot` and replaces it wholesale.

    Readers use :attr:`snapshot` without locking; a refresh builds the new
    snapshot first and only then swaps the reference under the writer lock.
    A failed refresh re-raises and leaves the current snapshot in place.
    """

    def __init__(self, loader: Loader, snapshot: Optional[Snapshot] = None) -> None:
        self._loader = loader
        self._snapshot = snapshot
        self._write_lock = Lock()

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def stations(self):
        current = self._snapshot
        return current.stations if current is not None else ()

    def replace(self, snapshot: Snapshot) -> Optional[Snapshot]:
        """Install ``snapshot`` and return the one it replaced."""

        with self._write_lock:
            previous, self._snapshot = self._snapshot, snapshot
        return previous

    def refresh(self) -> Snapshot:
        try:
            snapshot = self._loader()
        except Exception:
            log.warning(
                "Refresh failed, keeping %s",
                "previous snapshot" if self._snapshot is not None else "empty store",
            )
            raise
        self.replace(snapshot)
        log.info("Dataset replaced: %d stations from %s", len(snapshot), snapshot.source or "unknown source")
        return snapshot
