"""Structural Markdown parsing into an offset-annotated element tree.

markdown-it produces a flat token stream with line maps. This module folds
it into a tree of ``Element`` objects whose offsets index into the document
body, so that callers can ask "which block encloses this offset" without
knowing anything about markdown-it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import frontmatter
from markdown_it import MarkdownIt
from markdown_it.rules_inline import StateInline
from markdown_it.rules_inline import link as _link_rule
from markdown_it.token import Token

from ..errors import DocumentParseFailure

# Element types that live inside a block rather than being one
INLINE_TYPES = frozenset({"link"})

# markdown-it refuses these schemes; file: is allowed because notes use it
_BAD_SCHEMES = ("vbscript:", "javascript:", "data:")

_parser: MarkdownIt | None = None


@dataclass
class Element:
    """A node of the document tree.

    Offsets are character offsets into the parsed text. ``content_begin`` and
    ``content_end`` delimit the text of blocks that hold inline content
    (paragraphs, headings, table cells) without markers such as ``- `` or
    ``## ``.
    """

    type: str
    begin: int
    end: int
    content_begin: int | None = None
    content_end: int | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    children: list[Element] = field(default_factory=list)

    @property
    def is_block(self) -> bool:
        return self.type not in INLINE_TYPES

    def contains(self, offset: int) -> bool:
        return self.begin <= offset < self.end

    def walk(self) -> Iterator[Element]:
        """Yield this element and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def innermost_block_at(self, offset: int) -> Element | None:
        """Return the deepest block element containing offset."""
        if not self.is_block or not self.contains(offset):
            return None
        for child in self.children:
            found = child.innermost_block_at(offset)
            if found is not None:
                return found
        return self

    def content(self, text: str) -> str:
        begin = self.content_begin if self.content_begin is not None else self.begin
        end = self.content_end if self.content_end is not None else self.end
        return text[begin:end]


@dataclass
class ParsedDocument:
    """A document body (frontmatter removed) and its element tree."""

    path: Path
    text: str
    tree: Element
    metadata: dict[str, Any] = field(default_factory=dict)


def _wikilink_rule(state: StateInline, silent: bool) -> bool:
    """Recognize [[target]] and [[target|label]]."""
    start = state.pos
    if not state.src.startswith("[[", start):
        return False

    close = state.src.find("]]", start + 2)
    if close == -1:
        return False

    inner = state.src[start + 2 : close]
    if not inner.strip() or "\n" in inner or "[" in inner:
        return False

    if not silent:
        target, _, label = inner.partition("|")
        token = state.push("wikilink", "", 0)
        token.content = inner
        token.meta = {
            "target": target.strip(),
            "label": label.strip() or None,
            "offset": start,
            "end": close + 2,
        }

    state.pos = close + 2
    return True


def _positioned_link_rule(state: StateInline, silent: bool) -> bool:
    """The stock link rule, recording where each link starts and ends."""
    start = state.pos
    first_new = len(state.tokens)
    if not _link_rule(state, silent):
        return False

    if not silent:
        for token in state.tokens[first_new:]:
            if token.type == "link_open":
                token.meta = {**(token.meta or {}), "offset": start, "end": state.pos}
                break
    return True


def _validate_link(url: str) -> bool:
    return not url.strip().lower().startswith(_BAD_SCHEMES)


def _get_parser() -> MarkdownIt:
    global _parser
    if _parser is None:
        md = MarkdownIt("commonmark").enable(["table", "strikethrough"])
        md.inline.ruler.at("link", _positioned_link_rule)
        md.inline.ruler.before("link", "wikilink", _wikilink_rule)
        md.validateLink = _validate_link
        _parser = md
    return _parser


def _line_offsets(text: str) -> list[int]:
    """Start offset of every line, plus len(text) as a sentinel."""
    offsets = [0]
    position = text.find("\n")
    while position != -1:
        offsets.append(position + 1)
        position = text.find("\n", position + 1)
    offsets.append(len(text))
    return offsets


class _InlineLocator:
    """Maps offsets inside an inline token's content back to the source.

    markdown-it strips block markers and indentation from inline content,
    so each content line is located inside its source line.
    """

    def __init__(self, text: str, offsets: list[int], first_line: int, content: str):
        self.lines = content.split("\n")
        self.starts: list[int] = []
        last_line = len(offsets) - 2
        for i, content_line in enumerate(self.lines):
            line_no = min(first_line + i, last_line)
            line_start, line_end = offsets[line_no], offsets[line_no + 1]
            column = text.find(content_line, line_start, line_end)
            self.starts.append(column if column >= 0 else line_start)

    def to_source(self, offset: int) -> int:
        remaining = offset
        for start, line in zip(self.starts, self.lines):
            if remaining <= len(line):
                return start + remaining
            remaining -= len(line) + 1
        return self.starts[-1] + len(self.lines[-1])


def _block_element(token: Token, parent: Element, offsets: list[int]) -> Element:
    element_type = token.type[:-5] if token.type.endswith("_open") else token.type
    if token.map:
        first, last = token.map
        last_line = len(offsets) - 1
        begin = offsets[min(first, last_line)]
        end = offsets[min(last, last_line)]
        lines = (first, last)
    else:
        begin, end = parent.begin, parent.end
        lines = parent.properties.get("lines", (0, 0))

    properties: dict[str, Any] = {"lines": lines, "tag": token.tag}
    if token.info:
        properties["info"] = token.info
    return Element(element_type, begin, end, properties=properties)


def _attach_inline(token: Token, block: Element, text: str, offsets: list[int]) -> None:
    first_line = token.map[0] if token.map else block.properties.get("lines", (0, 0))[0]
    locator = _InlineLocator(text, offsets, first_line, token.content)

    block.content_begin = locator.to_source(0)
    block.content_end = locator.to_source(len(token.content))

    for child in token.children or []:
        meta = child.meta or {}
        if "offset" not in meta:
            continue
        if child.type == "wikilink":
            properties = {"syntax": "wiki", "target": meta["target"], "label": meta["label"]}
        elif child.type == "link_open":
            properties = {
                "syntax": "inline",
                "target": str(child.attrGet("href") or ""),
                "title": child.attrGet("title"),
            }
        else:
            continue
        block.children.append(
            Element(
                "link",
                locator.to_source(meta["offset"]),
                locator.to_source(meta["end"]),
                properties=properties,
            )
        )


def parse_markdown(text: str) -> Element:
    """Parse Markdown text into a document element tree.

    Line endings are normalized to ``\\n`` first; offsets refer to the
    normalized text, which is stored on the root as ``properties["text"]``.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    offsets = _line_offsets(text)
    root = Element("document", 0, len(text), 0, len(text), properties={"text": text})
    stack = [root]

    for token in _get_parser().parse(text):
        if token.nesting == 1:
            element = _block_element(token, stack[-1], offsets)
            stack[-1].children.append(element)
            stack.append(element)
        elif token.nesting == -1:
            if len(stack) > 1:
                stack.pop()
        elif token.type == "inline":
            _attach_inline(token, stack[-1], text, offsets)
        else:
            stack[-1].children.append(_block_element(token, stack[-1], offsets))

    return root


def parse_document(path: Path) -> ParsedDocument:
    """Read a document, split off YAML frontmatter, and parse the body.

    Raises:
        DocumentParseFailure: If the file cannot be read, is not UTF-8, or
            its frontmatter is malformed.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentParseFailure(path, f"Cannot read file: {e}") from e

    try:
        post = frontmatter.loads(raw)
    except Exception as e:
        raise DocumentParseFailure(path, f"Failed to parse frontmatter: {e}") from e

    try:
        tree = parse_markdown(post.content)
    except Exception as e:
        raise DocumentParseFailure(path, f"Failed to parse markdown: {e}") from e

    return ParsedDocument(
        path=path,
        text=tree.properties["text"],
        tree=tree,
        metadata=dict(post.metadata),
    )
