"""Tests for the view refresh trigger and the text surface."""

from __future__ import annotations

from pathlib import Path
from unittest import mock

import pytest

from conftest import write_note
from linkweave.backlinks_cache import IndexCache
from linkweave.backlinks_index import BacklinkIndex
from linkweave.corpus import Corpus
from linkweave.view import TextSurface, ViewRefreshTrigger, format_backlinks


class RecordingSurface:
    def __init__(self, active: bool = True):
        self.active = active
        self.shown: list[tuple[str, dict]] = []
        self.available: list[str] = []

    def is_active(self) -> bool:
        return self.active

    def show(self, doc_id, backlinks) -> None:
        self.shown.append((doc_id, {k: tuple(v) for k, v in backlinks.items()}))

    def snapshot_available(self, doc_id) -> None:
        self.available.append(doc_id)


@pytest.fixture
def cache() -> IndexCache:
    cache = IndexCache()
    cache.install(BacklinkIndex({"b": {"a": ("see [[b]]",)}}))
    return cache


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


@pytest.fixture
def trigger(corpus: Corpus, cache: IndexCache, surface: RecordingSurface) -> ViewRefreshTrigger:
    return ViewRefreshTrigger(corpus, cache, surface)


class TestShouldRefresh:
    def test_first_member_document_refreshes(self, trigger, corpus_root: Path):
        assert trigger.should_refresh(write_note(corpus_root, "b.md", "body"))

    def test_same_document_does_not_refresh(self, trigger, corpus_root: Path):
        note = write_note(corpus_root, "b.md", "body")
        trigger.on_interaction(note)

        assert not trigger.should_refresh(note)

    def test_non_member_is_ignored(self, trigger, tmp_path: Path):
        outside = tmp_path / "elsewhere.md"
        outside.write_text("x")

        assert not trigger.should_refresh(outside)
        assert not trigger.should_refresh(None)

    def test_unresolvable_path_is_ignored(self, trigger, surface, corpus_root: Path):
        note = write_note(corpus_root, "loop.md", "x")

        with mock.patch.object(Path, "resolve", side_effect=RuntimeError("Symlink loop")):
            assert not trigger.should_refresh(note)
            assert not trigger.on_interaction(note)

        assert surface.shown == []

    def test_wrong_extension_is_ignored(self, trigger, corpus_root: Path):
        assert not trigger.should_refresh(write_note(corpus_root, "b.txt", "x"))

    def test_inactive_surface_is_ignored(self, trigger, surface, corpus_root: Path):
        surface.active = False

        assert not trigger.should_refresh(write_note(corpus_root, "b.md", "x"))

    def test_predicate_has_no_side_effects(self, trigger, surface, corpus_root: Path):
        note = write_note(corpus_root, "b.md", "x")

        trigger.should_refresh(note)
        trigger.should_refresh(note)

        assert surface.shown == []
        assert trigger.last_id is None


class TestOnInteraction:
    def test_switching_documents_renders_each_once(self, trigger, surface, corpus_root: Path):
        a = write_note(corpus_root, "a.md", "see [[b]]")
        b = write_note(corpus_root, "b.md", "body")

        assert trigger.on_interaction(b)
        assert not trigger.on_interaction(b)
        assert trigger.on_interaction(a)

        assert surface.shown == [("b", {"a": ("see [[b]]",)}), ("a", {})]
        assert trigger.last_id == "a"

    def test_new_snapshot_marks_view_stale(self, trigger, surface, cache, corpus_root: Path):
        b = write_note(corpus_root, "b.md", "body")
        trigger.on_interaction(b)

        fresh = BacklinkIndex({"b": {"c": ("[[b]] again",)}})
        cache.install(fresh)
        trigger.on_snapshot(fresh)

        assert trigger.is_stale
        assert surface.available == ["b"]
        assert trigger.on_interaction(b)
        assert surface.shown[-1] == ("b", {"c": ("[[b]] again",)})
        assert not trigger.is_stale

    def test_snapshot_before_any_render_only_flags(self, trigger, surface):
        trigger.on_snapshot(BacklinkIndex())

        assert trigger.is_stale
        assert surface.available == []


class TestTextSurface:
    def test_writes_formatted_backlinks(self):
        written: list[str] = []
        surface = TextSurface(written.append)
        surface.snapshot_available("b")

        surface.show("b", {"a": ("see [[b]]",)})

        assert surface.pending is None
        assert written == ["# b\n\n1 backlink\n\n## a\n\n- see [[b]]"]

    def test_format_without_self_links(self):
        text = format_backlinks("b", {"b": ("[[b]]",)}, include_self=False)

        assert text == "# b\n\nNo backlinks."

    def test_format_counts_every_excerpt(self):
        text = format_backlinks("b", {"z": ("one", "two"), "a": ("",)})

        assert "3 backlinks" in text
        assert text.index("## a") < text.index("## z")
        assert "- (no text)" in text
