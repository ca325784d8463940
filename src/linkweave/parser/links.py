"""Outbound link extraction.

Links are read from the element tree produced by ``parser.markdown``. Each
link is classified once (``ReferenceKind``) and, when it points at another
document of the corpus extension, paired with the trimmed text of the block
that encloses it.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from pathlib import Path
from urllib.parse import unquote

from ..models import LinkRecord, ReferenceKind
from .markdown import Element, ParsedDocument, parse_document

# A URL scheme is at least two characters so that Windows drive letters
# ("C:/notes/a.md") are not mistaken for one
_SCHEME_PATTERN = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]+):")

FILE_PREFIX = "file:"

LOCAL_KINDS = frozenset({ReferenceKind.FILE, ReferenceKind.WIKI})


def classify_target(target: str, syntax: str) -> tuple[ReferenceKind, bool]:
    """Decide what a raw link target refers to.

    Returns:
        Tuple of (kind, explicit_file_prefix).
    """
    if syntax == "wiki":
        return ReferenceKind.WIKI, False

    if not target:
        return ReferenceKind.OTHER, False
    if target.startswith("#"):
        return ReferenceKind.ANCHOR, False
    if target.lower().startswith(FILE_PREFIX):
        return ReferenceKind.FILE, True
    if _SCHEME_PATTERN.match(target) or target.startswith("//"):
        return ReferenceKind.WEB, False
    return ReferenceKind.FILE, False


def _strip_fragment(target: str) -> str:
    return target.split("#", 1)[0].split("?", 1)[0]


def resolve_target(
    source: Path,
    target: str,
    kind: ReferenceKind,
    explicit_file_prefix: bool,
    suffix: str,
    root: Path | None = None,
) -> Path | None:
    """Resolve a local link target to an absolute, normalized path.

    Markdown and ``file:`` links are relative to the source's directory.
    Wiki links are relative to the corpus root unless they start with
    ``./`` or ``../``; they get the corpus suffix when they have none.

    Returns:
        The target path, or None if the link has no usable path.
    """
    raw = target
    if explicit_file_prefix:
        raw = raw[len(FILE_PREFIX) :]
        if raw.startswith("//"):
            raw = raw[2:]

    raw = unquote(_strip_fragment(raw)).strip().replace("\\", "/")
    if not raw:
        return None

    if kind == ReferenceKind.WIKI:
        if not raw.endswith(suffix):
            raw = raw + suffix
        if raw.startswith(("./", "../")) or root is None:
            base = source.parent
        else:
            base = root
            raw = raw.lstrip("/")
    else:
        base = source.parent

    candidate = Path(os.path.expanduser(raw))
    if not candidate.is_absolute():
        candidate = base / candidate
    return Path(os.path.normpath(candidate))


def _excerpt_for(document: ParsedDocument, link: Element) -> str:
    block = document.tree.innermost_block_at(link.begin)
    if block is None:
        return ""
    return block.content(document.text).strip()


def iter_link_elements(tree: Element) -> Iterator[Element]:
    for element in tree.walk():
        if element.type == "link":
            yield element


def links_in_document(
    document: ParsedDocument,
    suffix: str,
    root: Path | None = None,
) -> list[LinkRecord]:
    """Return local links to documents with the given suffix."""
    records: list[LinkRecord] = []
    source = document.path

    for element in iter_link_elements(document.tree):
        target = element.properties.get("target") or ""
        kind, explicit = classify_target(target, element.properties.get("syntax", "inline"))
        if kind not in LOCAL_KINDS:
            continue

        target_path = resolve_target(source, target, kind, explicit, suffix, root)
        if target_path is None or target_path.suffix != suffix:
            continue

        records.append(
            LinkRecord(
                source_path=source,
                target_path=target_path,
                excerpt=_excerpt_for(document, element),
                kind=kind,
                explicit_file_prefix=explicit,
            )
        )

    return records


def extract_links(path: Path, extension: str = "md", root: Path | None = None) -> list[LinkRecord]:
    """Extract every local link from one document.

    Args:
        path: Absolute path of the source document.
        extension: Corpus extension; links to other extensions are ignored.
        root: Corpus root used to resolve wiki links.

    Raises:
        DocumentParseFailure: If the document cannot be read or parsed.
    """
    suffix = "." + extension.lstrip(".")
    return links_in_document(parse_document(path), suffix, root)


def extract_link_triples(
    path: Path, extension: str = "md", root: Path | None = None
) -> list[tuple[Path, Path, str]]:
    """Like ``extract_links`` but as (source, target, excerpt) triples."""
    return [record.as_triple() for record in extract_links(path, extension, root)]
