"""Graphviz export of the corpus and its backlink edges."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import tempfile
from collections.abc import Iterable
from pathlib import Path

from .backlinks_index import BacklinkIndex
from .config import DEFAULT_GRAPH_EXECUTABLE, DEFAULT_GRAPH_FORMAT
from .errors import ExternalToolFailed, MissingExternalTool
from .models import Document

log = logging.getLogger(__name__)

GRAPH_NAME = "linkweave"

# Seconds to wait for the renderer before giving up
RENDER_TIMEOUT = 120


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def export_graph(docs: Iterable[Document], index: BacklinkIndex) -> str:
    """Describe documents and backlink edges as a DOT digraph.

    Nodes are labelled by id and carry the file path as ``URL``/``tooltip``.
    There is one edge per (source, target) pair however many times the
    source mentions the target. Output is sorted so identical input gives
    identical text.
    """
    lines = [f"digraph {_quote(GRAPH_NAME)} {{"]

    for doc in sorted(docs, key=lambda d: d.id):
        path = doc.path.as_posix()
        lines.append(
            f"  {_quote(doc.id)} [label={_quote(doc.id)}, "
            f"URL={_quote(doc.path.as_uri())}, tooltip={_quote(path)}];"
        )

    for source, target in index.edges():
        lines.append(f"  {_quote(source)} -> {_quote(target)};")

    lines.append("}")
    return "\n".join(lines) + "\n"


def resolve_executable(name: str, purpose: str) -> str:
    """Return the full path of an executable.

    Raises:
        MissingExternalTool: If it is not installed.
    """
    found = shutil.which(name)
    if found is None:
        raise MissingExternalTool(name, purpose)
    return found


def default_viewer() -> str:
    if sys.platform == "darwin":
        return "open"
    if sys.platform.startswith("win"):
        return "explorer"
    return "xdg-open"


def render_graph(
    dot_source: str,
    output: Path | None = None,
    fmt: str = DEFAULT_GRAPH_FORMAT,
    executable: str = DEFAULT_GRAPH_EXECUTABLE,
) -> Path:
    """Render DOT text with Graphviz and return the artifact's path.

    Raises:
        MissingExternalTool: If the renderer is not installed.
        ExternalToolFailed: If the renderer exits with an error.
    """
    binary = resolve_executable(executable, "render the graph")

    if output is None:
        with tempfile.NamedTemporaryFile(prefix="linkweave-graph-", suffix=f".{fmt}", delete=False) as handle:
            output = Path(handle.name)

    try:
        result = subprocess.run(
            [binary, f"-T{fmt}", "-o", str(output)],
            input=dot_source,
            capture_output=True,
            text=True,
            timeout=RENDER_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ExternalToolFailed(f"{executable} failed: {e}") from e

    if result.returncode != 0:
        raise ExternalToolFailed(
            f"{executable} exited with status {result.returncode}",
            details={"stderr": result.stderr.strip()},
        )

    log.info("Rendered graph to %s", output)
    return output


def view_graph(path: Path, viewer: str | None = None) -> None:
    """Open a rendered graph in an external viewer without waiting for it.

    Raises:
        MissingExternalTool: If the viewer is not installed.
    """
    name = viewer or default_viewer()
    binary = resolve_executable(name, "view the graph")
    subprocess.Popen(
        [binary, str(path)],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
