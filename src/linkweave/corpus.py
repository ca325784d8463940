"""Corpus discovery and the mapping between file paths and document ids."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .models import Document, DocumentId

log = logging.getLogger(__name__)

_SELF_REFERENCES = frozenset({".", ".."})


def _normalize_suffix(extension: str) -> str:
    return "." + extension.lstrip(".")


@dataclass(frozen=True)
class Corpus:
    """A directory of documents sharing one extension.

    The root is resolved once at construction so that id computations only
    need to resolve the document path itself.
    """

    root: Path
    extension: str = "md"
    suffix: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())
        object.__setattr__(self, "suffix", _normalize_suffix(self.extension))

    def has_extension(self, path: Path) -> bool:
        return path.suffix == self.suffix

    def contains(self, path: Path) -> bool:
        """Whether an already resolved path lies under the root."""
        return path == self.root or self.root in path.parents

    def id_of(self, path: Path) -> DocumentId:
        """Return the document id for a file path.

        Raises:
            ValueError: If the path is outside the corpus root.
        """
        real = Path(path).resolve()
        try:
            relative = real.relative_to(self.root)
        except ValueError:
            raise ValueError(f"{path} is outside the corpus root {self.root}") from None

        text = relative.as_posix()
        if text.endswith(self.suffix):
            text = text[: -len(self.suffix)]
        return DocumentId(text)

    def path_of(self, doc_id: str) -> Path:
        """Return the absolute path a document id maps to.

        Raises:
            ValueError: If the id is empty, absolute, or escapes the root.
        """
        posix = PurePosixPath(doc_id.replace("\\", "/"))
        if not posix.parts or posix.is_absolute() or ".." in posix.parts:
            raise ValueError(f"Invalid document id: {doc_id!r}")
        return self.root.joinpath(*posix.parts).with_name(posix.name + self.suffix)

    def is_member(self, path: Path, *, resolved: bool = False) -> bool:
        """Cheap membership test: right extension and inside the root.

        Pass ``resolved=True`` when the caller already resolved the path.
        """
        real = Path(path) if resolved else Path(path).resolve()
        return self.has_extension(real) and self.contains(real)

    def list_documents(self) -> list[Path]:
        """Recursively enumerate readable documents under the root.

        A missing root is an empty corpus, not an error. Symlinked
        directories are not followed, and files whose real location is
        outside the root are skipped, so every returned path maps to an id
        and back. A document reached through a symlink as well as
        directly is listed once.
        """
        if not self.root.is_dir():
            log.debug("Corpus root does not exist: %s", self.root)
            return []

        found: list[Path] = []
        seen: set[Path] = set()
        pending: list[Path] = [self.root]

        while pending:
            directory = pending.pop()
            try:
                with os.scandir(directory) as entries:
                    children = list(entries)
            except OSError as e:
                log.warning("Cannot read directory %s: %s", directory, e)
                continue

            for entry in children:
                if entry.name in _SELF_REFERENCES:
                    continue
                try:
                    if entry.is_dir(follow_symlinks=False):
                        pending.append(Path(entry.path))
                        continue
                    if not entry.is_file():
                        continue
                except OSError:
                    continue

                path = Path(entry.path)
                if path.suffix != self.suffix or not os.access(path, os.R_OK):
                    continue

                if entry.is_symlink():
                    path = path.resolve()
                    if not self.contains(path):
                        log.debug("Skipping symlink leaving the corpus: %s", entry.path)
                        continue

                if path in seen:
                    continue
                seen.add(path)
                found.append(path)

        return found

    def scan(self) -> list[Document]:
        """List documents together with their ids."""
        return [Document(id=self.id_of(path), path=path) for path in self.list_documents()]


def list_documents(root: Path, extension: str = "md") -> list[Path]:
    """Recursively enumerate documents under root with the given extension."""
    return Corpus(root, extension).list_documents()


def id_of(path: Path, root: Path, extension: str = "md") -> DocumentId:
    """Map a file path to its corpus-relative document id."""
    return Corpus(root, extension).id_of(path)


def path_of(doc_id: str, root: Path, extension: str = "md") -> Path:
    """Map a document id back to its absolute file path."""
    return Corpus(root, extension).path_of(doc_id)


def is_member(path: Path, root: Path, extension: str = "md") -> bool:
    """Whether path is a document of the corpus at root."""
    return Corpus(root, extension).is_member(path)


def scan_documents(root: Path, extension: str = "md") -> list[Document]:
    """List the documents under root together with their ids."""
    return Corpus(root, extension).scan()
