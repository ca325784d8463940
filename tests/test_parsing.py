"""Tests for the structural parser and link extraction.

Philosophy: test behaviors (which links are found, which excerpt they get),
not markdown-it internals.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_note
from linkweave.errors import DocumentParseFailure, ErrorCode
from linkweave.models import ReferenceKind
from linkweave.parser import classify_target, extract_link_triples, extract_links, parse_markdown


def _links(root: Path, rel_path: str, content: str):
    return extract_links(write_note(root, rel_path, content), "md", root)


# ─────────────────────────────────────────────────────────────────────────────
# Element tree
# ─────────────────────────────────────────────────────────────────────────────


class TestParseMarkdown:
    def test_paragraph_offsets_cover_text(self):
        text = "first para\n\nsecond [[b]] para\n"
        tree = parse_markdown(text)

        paragraphs = [e for e in tree.walk() if e.type == "paragraph"]

        assert [p.content(text) for p in paragraphs] == ["first para", "second [[b]] para"]

    def test_link_elements_carry_target_and_offset(self):
        text = "intro [[target|Label]] and [md](other.md)"
        tree = parse_markdown(text)

        links = [e for e in tree.walk() if e.type == "link"]

        assert [link.properties["target"] for link in links] == ["target", "other.md"]
        assert links[0].properties["label"] == "Label"
        assert text[links[0].begin : links[0].end] == "[[target|Label]]"
        assert text[links[1].begin : links[1].end] == "[md](other.md)"

    def test_innermost_block_is_list_paragraph(self):
        text = "- one\n- two [[x]]\n"
        tree = parse_markdown(text)
        link = next(e for e in tree.walk() if e.type == "link")

        block = tree.innermost_block_at(link.begin)

        assert block is not None
        assert block.type == "paragraph"
        assert block.content(text) == "two [[x]]"

    def test_crlf_is_normalized(self):
        tree = parse_markdown("line [[a]]\r\nmore\r\n")

        assert "\r" not in tree.properties["text"]


# ─────────────────────────────────────────────────────────────────────────────
# Classification
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "target,syntax,expected",
    [
        ("other.md", "inline", (ReferenceKind.FILE, False)),
        ("file:other.md", "inline", (ReferenceKind.FILE, True)),
        ("FILE:other.md", "inline", (ReferenceKind.FILE, True)),
        ("https://example.com/a.md", "inline", (ReferenceKind.WEB, False)),
        ("mailto:someone@example.com", "inline", (ReferenceKind.WEB, False)),
        ("#heading", "inline", (ReferenceKind.ANCHOR, False)),
        ("", "inline", (ReferenceKind.OTHER, False)),
        ("anything", "wiki", (ReferenceKind.WIKI, False)),
    ],
)
def test_classify_target(target: str, syntax: str, expected):
    assert classify_target(target, syntax) == expected


# ─────────────────────────────────────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────────────────────────────────────


class TestExtractLinks:
    def test_wiki_link_excerpt_is_enclosing_paragraph(self, corpus_root: Path):
        (record,) = _links(corpus_root, "A.md", "see [[B]]")

        assert record.target_path == corpus_root / "B.md"
        assert record.excerpt == "see [[B]]"
        assert record.kind == ReferenceKind.WIKI

    def test_markdown_link_is_relative_to_source(self, corpus_root: Path):
        (record,) = _links(corpus_root, "sub/a.md", "Up to [parent](../b.md).")

        assert record.target_path == corpus_root / "b.md"
        assert record.kind == ReferenceKind.FILE
        assert not record.explicit_file_prefix

    def test_file_prefix_is_recorded(self, corpus_root: Path):
        (record,) = _links(corpus_root, "a.md", "See [b](file:b.md)")

        assert record.target_path == corpus_root / "b.md"
        assert record.explicit_file_prefix

    def test_percent_escapes_and_fragments_are_removed(self, corpus_root: Path):
        (record,) = _links(corpus_root, "a.md", "[x](<my note.md#part>) and nothing else")

        assert record.target_path == corpus_root / "my note.md"

    def test_wiki_links_are_root_relative_unless_dotted(self, corpus_root: Path):
        records = _links(corpus_root, "sub/a.md", "[[top]] and [[./beside]] and [[deep/x#Heading|alias]]")

        assert [r.target_path for r in records] == [
            corpus_root / "top.md",
            corpus_root / "sub" / "beside.md",
            corpus_root / "deep" / "x.md",
        ]

    def test_wiki_targets_name_document_ids(self, corpus_root: Path):
        records = _links(corpus_root, "a.md", "[[report.v2]] [[b.md]]")

        assert [r.target_path.name for r in records] == ["report.v2.md", "b.md"]

    def test_ignores_web_anchor_and_other_extensions(self, corpus_root: Path):
        content = (
            "[site](https://example.com/page.md) "
            "[jump](#section) "
            "[pic](image.png) "
            "[real](b.md)"
        )

        records = _links(corpus_root, "a.md", content)

        assert [r.target_path.name for r in records] == ["b.md"]

    def test_code_is_not_scanned(self, corpus_root: Path):
        content = "Inline `[[nope]]` code.\n\n```\n[[also-nope]]\n```\n"

        assert _links(corpus_root, "a.md", content) == []

    @pytest.mark.parametrize(
        "content,excerpt",
        [
            ("- first\n- see [[B]] here\n", "see [[B]] here"),
            ("## About [[B]]\n", "About [[B]]"),
            ("> quoted [[B]]\n", "quoted [[B]]"),
            ("Intro line\ncontinues [[B]]\n\nOther para\n", "Intro line\ncontinues [[B]]"),
            ("   padded [[B]]   \n", "padded [[B]]"),
        ],
    )
    def test_excerpt_per_block_type(self, corpus_root: Path, content: str, excerpt: str):
        (record,) = _links(corpus_root, "a.md", content)

        assert record.excerpt == excerpt

    def test_multiple_links_in_one_block(self, corpus_root: Path):
        records = _links(corpus_root, "a.md", "[[b]] then [[c]] then [[b]]")

        assert [r.target_path.name for r in records] == ["b.md", "c.md", "b.md"]
        assert {r.excerpt for r in records} == {"[[b]] then [[c]] then [[b]]"}

    def test_frontmatter_is_not_part_of_excerpts(self, corpus_root: Path):
        content = "---\ntitle: A\ntags: [x]\n---\n\nbody [[b]]\n"

        (record,) = _links(corpus_root, "a.md", content)

        assert record.excerpt == "body [[b]]"

    def test_triples(self, corpus_root: Path):
        note = write_note(corpus_root, "a.md", "to [[b]]")

        assert extract_link_triples(note, "md", corpus_root) == [(note, corpus_root / "b.md", "to [[b]]")]


class TestParseFailures:
    def test_malformed_frontmatter(self, corpus_root: Path):
        note = write_note(corpus_root, "bad.md", "---\ntitle: [unclosed\n---\nbody [[b]]\n")

        with pytest.raises(DocumentParseFailure) as exc_info:
            extract_links(note, "md", corpus_root)

        assert exc_info.value.code == ErrorCode.DOCUMENT_PARSE_FAILURE
        assert exc_info.value.path == note

    def test_invalid_utf8(self, corpus_root: Path):
        note = corpus_root / "binary.md"
        note.write_bytes(b"\xff\xfe\x00 not text [[b]]")

        with pytest.raises(DocumentParseFailure):
            extract_links(note, "md", corpus_root)
