"""In-memory holder for the current backlink snapshot."""

from __future__ import annotations

import threading

from .backlinks_index import EMPTY_BACKLINKS, BacklinkIndex, Backlinks


class IndexCache:
    """Owns the installed ``BacklinkIndex`` and serves point lookups.

    ``install`` swaps a single reference, so a reader sees either the old or
    the new snapshot in full. Readers never lock; snapshots are never
    mutated after construction.
    """

    def __init__(self) -> None:
        self._snapshot: BacklinkIndex | None = None
        self._generation = 0
        self._install_lock = threading.Lock()

    def get(self, doc_id: str) -> Backlinks:
        """Backlinks of doc_id, or an empty mapping (also before the first build)."""
        snapshot = self._snapshot
        if snapshot is None:
            return EMPTY_BACKLINKS
        return snapshot.backlinks(doc_id)

    def install(self, index: BacklinkIndex) -> int:
        """Replace the current snapshot and return the new generation number."""
        with self._install_lock:
            self._generation += 1
            self._snapshot = index
            return self._generation

    @property
    def snapshot(self) -> BacklinkIndex:
        snapshot = self._snapshot
        return snapshot if snapshot is not None else BacklinkIndex()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None
