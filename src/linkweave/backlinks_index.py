"""Immutable reverse-link snapshots and the fold that builds them."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from .corpus import Corpus
from .models import DocumentId

log = logging.getLogger(__name__)

Backlinks = Mapping[DocumentId, tuple[str, ...]]

EMPTY_BACKLINKS: Backlinks = MappingProxyType({})


class BacklinkIndex(Mapping[DocumentId, Backlinks]):
    """Read-only mapping ``target id -> (source id -> excerpts)``.

    Excerpts for one source are ordered newest-discovered first. That order
    is an artifact of the build pass, not document order.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[DocumentId, Mapping[DocumentId, Iterable[str]]] | None = None):
        frozen = {
            target: MappingProxyType({source: tuple(excerpts) for source, excerpts in sources.items()})
            for target, sources in (entries or {}).items()
            if sources
        }
        self._entries: Mapping[DocumentId, Backlinks] = MappingProxyType(frozen)

    def __getitem__(self, target: DocumentId) -> Backlinks:
        return self._entries[target]

    def __iter__(self) -> Iterator[DocumentId]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"BacklinkIndex(targets={len(self)}, links={self.link_count()})"

    def backlinks(self, target: str) -> Backlinks:
        """Backlinks of one document; empty when nothing links to it."""
        return self._entries.get(DocumentId(target), EMPTY_BACKLINKS)

    def edges(self) -> list[tuple[DocumentId, DocumentId]]:
        """Distinct (source, target) pairs, sorted."""
        return sorted((source, target) for target, sources in self._entries.items() for source in sources)

    def link_count(self) -> int:
        return sum(len(excerpts) for sources in self._entries.values() for excerpts in sources.values())

    def to_dict(self) -> dict[str, dict[str, list[str]]]:
        return {
            target: {source: list(excerpts) for source, excerpts in sources.items()}
            for target, sources in self._entries.items()
        }


def aggregate(triples: Iterable[tuple[Path, Path, str]], corpus: Corpus) -> BacklinkIndex:
    """Fold (source path, target path, excerpt) triples into a snapshot.

    Self links are kept. Links whose target lies outside the corpus root
    have no document id and are dropped, as are links whose target cannot
    be resolved (a symlink loop, say).
    """
    building: dict[DocumentId, dict[DocumentId, list[str]]] = {}

    for source, target, excerpt in triples:
        try:
            source_id = corpus.id_of(source)
            target_id = corpus.id_of(target)
        except ValueError:
            log.debug("Dropping link leaving the corpus: %s -> %s", source, target)
            continue
        except (OSError, RuntimeError) as e:
            log.warning("Dropping link that cannot be resolved: %s -> %s: %s", source, target, e)
            continue
        building.setdefault(target_id, {}).setdefault(source_id, []).append(excerpt)

    # Newest first
    return BacklinkIndex(
        {
            target: {source: reversed(excerpts) for source, excerpts in sources.items()}
            for target, sources in building.items()
        }
    )
