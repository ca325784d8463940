"""Deciding when the backlinks display needs a refresh, and rendering it.

``ViewRefreshTrigger.on_interaction`` runs on every user interaction, so it
only resolves one path and compares ids. It never walks the corpus.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from .backlinks_cache import IndexCache
from .backlinks_index import BacklinkIndex, Backlinks
from .corpus import Corpus
from .models import DocumentId

log = logging.getLogger(__name__)


class DisplaySurface(Protocol):
    """A pane that shows the backlinks of one document."""

    def is_active(self) -> bool: ...

    def show(self, doc_id: DocumentId, backlinks: Backlinks) -> None: ...

    def snapshot_available(self, doc_id: DocumentId) -> None: ...


def format_backlinks(doc_id: str, backlinks: Backlinks, *, include_self: bool = True) -> str:
    """Render backlinks as Markdown text, sources sorted by id."""
    sources = sorted(source for source in backlinks if include_self or source != doc_id)
    if not sources:
        return f"# {doc_id}\n\nNo backlinks."

    count = sum(len(backlinks[source]) for source in sources)
    lines = [f"# {doc_id}", "", f"{count} backlink{'s' if count != 1 else ''}", ""]
    for source in sources:
        lines.append(f"## {source}")
        lines.append("")
        for excerpt in backlinks[source]:
            lines.append(f"- {excerpt}" if excerpt else "- (no text)")
        lines.append("")
    return "\n".join(lines).rstrip()


class TextSurface:
    """Display surface that writes rendered backlinks through a callable."""

    def __init__(self, write: Callable[[str], None], *, include_self: bool = True):
        self._write = write
        self._include_self = include_self
        self.active = True
        self.pending: DocumentId | None = None

    def is_active(self) -> bool:
        return self.active

    def show(self, doc_id: DocumentId, backlinks: Backlinks) -> None:
        self.pending = None
        self._write(format_backlinks(doc_id, backlinks, include_self=self._include_self))

    def snapshot_available(self, doc_id: DocumentId) -> None:
        self.pending = doc_id


class ViewRefreshTrigger:
    """Tracks the last rendered document and refreshes the surface when due."""

    def __init__(self, corpus: Corpus, cache: IndexCache, surface: DisplaySurface):
        self._corpus = corpus
        self._cache = cache
        self._surface = surface
        self._last_id: DocumentId | None = None
        self._stale = threading.Event()

    @property
    def last_id(self) -> DocumentId | None:
        return self._last_id

    @property
    def is_stale(self) -> bool:
        """Whether a snapshot landed since the last render."""
        return self._stale.is_set()

    def _current_id(self, current_path: Path) -> DocumentId | None:
        try:
            real = Path(current_path).resolve()
        except (OSError, RuntimeError):
            return None
        if not self._corpus.is_member(real, resolved=True):
            return None
        return self._corpus.id_of(real)

    def should_refresh(self, current_path: Path | None) -> bool:
        """Refresh iff the document changed, is a corpus member, and the surface is active."""
        if current_path is None or not self._surface.is_active():
            return False
        doc_id = self._current_id(current_path)
        return doc_id is not None and doc_id != self._last_id

    def on_interaction(self, current_path: Path | None) -> bool:
        """Refresh the surface if due. Returns True when it rendered."""
        if current_path is None or not self._surface.is_active():
            return False

        doc_id = self._current_id(current_path)
        if doc_id is None:
            return False
        if doc_id == self._last_id and not self._stale.is_set():
            return False

        self.render(doc_id)
        return True

    def render(self, doc_id: DocumentId) -> None:
        self._stale.clear()
        self._last_id = doc_id
        self._surface.show(doc_id, self._cache.get(doc_id))

    def on_snapshot(self, index: BacklinkIndex) -> None:
        """Scheduler listener: a new snapshot was installed.

        Runs on the rebuild worker; it only flags the view and tells the
        surface, leaving the actual redraw to the interactive side.
        """
        self._stale.set()
        doc_id = self._last_id
        if doc_id is not None and self._surface.is_active():
            log.debug("Fresh snapshot available for %s", doc_id)
            self._surface.snapshot_available(doc_id)
