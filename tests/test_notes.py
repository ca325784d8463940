"""Tests for placeholders, daily notes and link formatting."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from conftest import write_note
from linkweave.corpus import Corpus
from linkweave.errors import DocumentNotFound
from linkweave.notes import daily_note, daily_note_id, ensure_document, format_link


class TestEnsureDocument:
    def test_existing_document_is_untouched(self, corpus: Corpus, corpus_root: Path):
        note = write_note(corpus_root, "a.md", "keep me")

        path, created = ensure_document(corpus, "a")

        assert path == note
        assert not created
        assert note.read_text() == "keep me"

    def test_absent_document_gets_placeholder(self, corpus: Corpus, corpus_root: Path):
        path, created = ensure_document(corpus, "projects/new idea")

        assert created
        assert path == corpus_root / "projects" / "new idea.md"
        assert path.read_text() == ""
        assert corpus.id_of(path) == "projects/new idea"

    def test_id_escaping_corpus_is_rejected(self, corpus: Corpus):
        with pytest.raises(DocumentNotFound):
            ensure_document(corpus, "../outside")


class TestDailyNote:
    def test_id_includes_directory(self):
        assert daily_note_id("daily", date(2024, 3, 9)) == "daily/2024-03-09"
        assert daily_note_id("", date(2024, 3, 9)) == "2024-03-09"
        assert daily_note_id("/journal/", date(2024, 3, 9)) == "journal/2024-03-09"

    def test_created_with_heading_once(self, corpus: Corpus):
        day = date(2024, 1, 2)

        path, created = daily_note(corpus, "daily", day)
        path.write_text(path.read_text() + "\nwrote things\n")
        again, created_again = daily_note(corpus, "daily", day)

        assert created and not created_again
        assert again == path
        assert path.read_text().startswith("# 2024-01-02\n")


class TestFormatLink:
    def test_relative_link_between_notes(self, corpus_root: Path):
        link = format_link(corpus_root / "sub" / "a.md", corpus_root / "other" / "my note.md")

        assert link == "[my note](../other/my%20note.md)"

    def test_custom_label(self, corpus_root: Path):
        assert format_link(corpus_root / "a.md", corpus_root / "b.md", "Bee") == "[Bee](b.md)"
