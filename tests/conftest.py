"""Shared test fixtures for the linkweave test suite.

Design:
- corpus_root: empty corpus directory in a temp dir
- corpus: Corpus over corpus_root with the default .md extension
- runner / cli_invoke: CliRunner with LINKWEAVE_ROOT pointing at the corpus
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from linkweave.cli import cli
from linkweave.corpus import Corpus


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's own configuration out of the tests."""
    for name in (
        "LINKWEAVE_ROOT",
        "LINKWEAVE_EXTENSION",
        "LINKWEAVE_REBUILD_INTERVAL",
        "LINKWEAVE_GRAPH_EXECUTABLE",
        "LINKWEAVE_GRAPH_VIEWER",
        "LINKWEAVE_GRAPH_FORMAT",
        "LINKWEAVE_QUIET",
        "LINKWEAVE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers bound to a previous CliRunner's stderr."""
    yield
    package_logger = logging.getLogger("linkweave")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def corpus_root(tmp_path: Path) -> Path:
    root = tmp_path / "notes"
    root.mkdir()
    return root


@pytest.fixture
def corpus(corpus_root: Path) -> Corpus:
    return Corpus(corpus_root, "md")


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def cli_invoke(runner: CliRunner, corpus_root: Path):
    """Helper for invoking the CLI against the test corpus.

    Usage:
        def test_list(cli_invoke):
            result = cli_invoke(["list"])
            assert result.exit_code == 0
    """

    def _invoke(args: list[str], input: str | None = None, catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            input=input,
            catch_exceptions=catch_exceptions,
            env={"LINKWEAVE_ROOT": str(corpus_root)},
        )

    return _invoke


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def write_note(root: Path, rel_path: str, content: str) -> Path:
    """Create a note (and its parent directories) under root.

    Usage in tests:
        from conftest import write_note
        note = write_note(corpus_root, "a.md", "see [[b]]")
    """
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
