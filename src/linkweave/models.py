"""Pydantic models for the backlink engine."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import NewType

from pydantic import BaseModel, ConfigDict, Field

# Corpus-relative path without extension, e.g. "projects/alpha"
DocumentId = NewType("DocumentId", str)


class Document(BaseModel):
    """A corpus member found by one scan."""

    model_config = ConfigDict(frozen=True)

    id: DocumentId
    path: Path  # Absolute, resolved path


class ReferenceKind(str, Enum):
    """What a link points at, decided once when the link is extracted."""

    FILE = "file"  # [text](other.md) or [text](file:other.md)
    WIKI = "wiki"  # [[other]]
    WEB = "web"  # any URL with a scheme other than file:
    ANCHOR = "anchor"  # [text](#heading)
    OTHER = "other"


class LinkRecord(BaseModel):
    """One outbound link occurrence found in a source document."""

    model_config = ConfigDict(frozen=True)

    source_path: Path
    target_path: Path
    excerpt: str
    kind: ReferenceKind = ReferenceKind.FILE
    explicit_file_prefix: bool = False  # Written as file:target

    def as_triple(self) -> tuple[Path, Path, str]:
        return self.source_path, self.target_path, self.excerpt


class SkippedDocument(BaseModel):
    """A document that contributed no links because it failed to parse."""

    path: str
    reason: str


class BuildReport(BaseModel):
    """Summary of one rebuild run."""

    root: str
    documents: int = 0
    links: int = 0
    targets: int = 0
    skipped: list[SkippedDocument] = Field(default_factory=list)
    root_missing: bool = False
    duration_seconds: float = 0.0
    finished_at: datetime | None = None
