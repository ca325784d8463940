"""Markdown parsing and link extraction."""

from .links import classify_target, extract_link_triples, extract_links, resolve_target
from .markdown import Element, ParsedDocument, parse_document, parse_markdown

__all__ = [
    "Element",
    "ParsedDocument",
    "parse_document",
    "parse_markdown",
    "classify_target",
    "resolve_target",
    "extract_links",
    "extract_link_triples",
]
