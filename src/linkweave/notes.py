"""Note files: resolving ids to files, placeholders, and daily notes.

The corpus grows by reference: opening or linking to a document that does
not exist yet creates an empty placeholder instead of failing.
"""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path

from .corpus import Corpus
from .errors import DocumentNotFound, ErrorCode

log = logging.getLogger(__name__)

DAILY_DATE_FORMAT = "%Y-%m-%d"


def ensure_document(corpus: Corpus, doc_id: str, initial_content: str = "") -> tuple[Path, bool]:
    """Return the path for doc_id, creating an empty placeholder if absent.

    Returns:
        Tuple of (path, created).

    Raises:
        DocumentNotFound: If doc_id cannot name a file inside the corpus.
    """
    try:
        path = corpus.path_of(doc_id)
    except ValueError as e:
        raise DocumentNotFound(str(e), details={"id": doc_id}) from e

    if path.exists():
        return path, False

    log.info("[%s] Creating placeholder for %s", ErrorCode.TARGET_FILE_ABSENT.value, doc_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(initial_content, encoding="utf-8")
    return path, True


def daily_note_id(daily_directory: str, day: date | None = None) -> str:
    day = day or date.today()
    name = day.strftime(DAILY_DATE_FORMAT)
    directory = daily_directory.strip("/")
    return f"{directory}/{name}" if directory else name


def daily_note(corpus: Corpus, daily_directory: str, day: date | None = None) -> tuple[Path, bool]:
    """Return today's (or day's) dated note, creating it with a heading."""
    day = day or date.today()
    doc_id = daily_note_id(daily_directory, day)
    return ensure_document(corpus, doc_id, f"# {day.strftime(DAILY_DATE_FORMAT)}\n")


def format_link(source_path: Path, target_path: Path, label: str | None = None) -> str:
    """Markdown link text from one note to another, relative to the source."""
    relative = os.path.relpath(target_path, source_path.parent)
    href = Path(relative).as_posix().replace(" ", "%20")
    text = label if label else target_path.stem
    return f"[{text}]({href})"
