"""linkweave: backlink index for a directory of Markdown notes."""

__version__ = "0.1.0"
