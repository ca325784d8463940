#!/usr/bin/env python3
"""
lw: CLI for the linkweave backlink index

Usage:
    lw backlinks projects/alpha    # Who links to this note
    lw rebuild                     # Rebuild the index and show a report
    lw graph --render --view       # Render the link graph with Graphviz
    lw today                       # Path of today's daily note
    lw watch projects/alpha        # Keep the index fresh and show backlinks
"""

from __future__ import annotations

import difflib
import json
import sys
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as LINKWEAVE_VERSION
from .errors import ErrorCode, LinkweaveError, format_error_json

# Seconds between simulated interactions in `lw watch`
WATCH_POLL_SECONDS = 0.5


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}
    widths = {col: len(col) for col in columns}

    def cell(row: dict, col: str) -> str:
        val = str(row.get(col, ""))
        limit = max_widths.get(col, 60)
        if len(val) > limit:
            val = val[: limit - 3] + "..."
        return val

    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(cell(row, col)))

    lines = [
        "  ".join(col.upper().ljust(widths[col]) for col in columns),
        "  ".join("-" * widths[col] for col in columns),
    ]
    for row in rows:
        lines.append("  ".join(cell(row, col).ljust(widths[col]) for col in columns).rstrip())

    return "\n".join(lines)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report an error as text or JSON (with --json-errors) and exit."""
    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, LinkweaveError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
            suggestion = error.details.get("suggestion")
            if suggestion:
                click.echo(f"Hint: {suggestion}", err=True)
    elif json_errors:
        click.echo(format_error_json(ErrorCode.INTERNAL_ERROR, str(error)), err=True)
    else:
        click.echo(f"Error: {error}", err=True)

    sys.exit(exit_code)


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    return "CLI_ERROR"


class JsonErrorGroup(click.Group):
    """Click group that formats usage errors as JSON when --json-errors is set.

    Also suggests the closest command name for typos.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(cmd_name, self.list_commands(ctx), n=1, cutoff=0.6)
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?") from e
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        # Treat a misplaced --json-errors as the global flag
        argv = ["--json-errors"] + [a for a in argv if a != "--json-errors"]
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            click.echo(format_error_json(get_error_code_for_exception(e), e.format_message()), err=True)
            raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Shared helpers
# ─────────────────────────────────────────────────────────────────────────────


def _settings(ctx: click.Context):
    from .config import load_settings

    try:
        return load_settings(root=ctx.obj.get("root"))
    except LinkweaveError as e:
        _handle_error(ctx, e)


def _corpus(settings):
    from .core import corpus_from_settings

    return corpus_from_settings(settings)


def _build(corpus):
    """Run one rebuild through the scheduler and return (cache, report)."""
    from .backlinks_cache import IndexCache
    from .scheduler import RebuildScheduler

    cache = IndexCache()
    scheduler = RebuildScheduler(corpus, cache)
    try:
        report = scheduler.run_once()
    finally:
        scheduler.stop()

    if scheduler.last_error is not None:
        raise scheduler.last_error
    return cache, report


def _report_dict(report) -> dict[str, Any]:
    return report.model_dump(mode="json")


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=LINKWEAVE_VERSION, prog_name="lw")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    help="Corpus root (overrides LINKWEAVE_ROOT and .linkweave.yaml)",
)
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="LINKWEAVE_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None, json_errors: bool, quiet: bool):
    """lw: backlinks for a directory of Markdown notes.

    \b
    Quick start:
      lw rebuild                     # Index the corpus, report skipped files
      lw backlinks notes/idea        # Who links to notes/idea.md
      lw graph > corpus.dot          # Link graph as Graphviz DOT
      lw watch notes/idea            # Live backlinks while you edit
    """
    from ._logging import configure_logging, set_quiet_mode

    configure_logging()
    if quiet:
        set_quiet_mode(True)

    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def info(ctx: click.Context, as_json: bool):
    """Show the resolved configuration."""
    settings = _settings(ctx)
    data = settings.model_dump(mode="json")
    data["root_exists"] = settings.root.is_dir()

    if as_json:
        output(data, as_json=True)
        return

    rows = [{"setting": key, "value": "" if value is None else value} for key, value in data.items()]
    click.echo(format_table(rows, ["setting", "value"], {"value": 80}))


@cli.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_documents(ctx: click.Context, as_json: bool):
    """List corpus documents by id."""
    settings = _settings(ctx)
    documents = sorted(_corpus(settings).scan(), key=lambda d: d.id)

    if as_json:
        output([{"id": d.id, "path": str(d.path)} for d in documents], as_json=True)
        return

    for document in documents:
        click.echo(document.id)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rebuild(ctx: click.Context, as_json: bool):
    """Rebuild the backlink index once and print a report."""
    settings = _settings(ctx)
    try:
        _, report = _build(_corpus(settings))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_report_dict(report), as_json=True)
        return

    if report.root_missing:
        click.echo(f"Warning: corpus root does not exist: {report.root}", err=True)
    click.echo(
        f"Indexed {report.documents} documents: {report.links} links to "
        f"{report.targets} targets in {report.duration_seconds:.2f}s"
    )
    if report.skipped:
        click.echo(f"Skipped {len(report.skipped)} document(s):")
        for skipped in report.skipped:
            click.echo(f"  {skipped.path}: {skipped.reason}")


@cli.command()
@click.argument("doc_id")
@click.option("--no-self", "no_self", is_flag=True, help="Hide links from the document to itself")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def backlinks(ctx: click.Context, doc_id: str, no_self: bool, as_json: bool):
    """Show the documents that link to DOC_ID, with excerpts."""
    from .view import format_backlinks

    settings = _settings(ctx)
    corpus = _corpus(settings)
    doc_id = doc_id.removesuffix(corpus.suffix)

    try:
        path = corpus.path_of(doc_id)
    except ValueError as e:
        _handle_error(ctx, LinkweaveError(str(e), code=ErrorCode.DOCUMENT_NOT_FOUND))

    try:
        cache, _ = _build(corpus)
    except Exception as e:
        _handle_error(ctx, e)

    entries = cache.get(doc_id)
    if no_self:
        entries = {source: excerpts for source, excerpts in entries.items() if source != doc_id}

    if as_json:
        output(
            {
                "id": doc_id,
                "path": str(path),
                "exists": path.exists(),
                "backlinks": {source: list(excerpts) for source, excerpts in sorted(entries.items())},
            },
            as_json=True,
        )
        return

    click.echo(format_backlinks(doc_id, entries))


@cli.command()
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write DOT (or the rendered file with --render) here",
)
@click.option("--render", is_flag=True, help="Render with Graphviz instead of printing DOT")
@click.option("--view", is_flag=True, help="Open the rendered graph (implies --render)")
@click.option("--format", "fmt", help="Graphviz output format (default from config: svg)")
@click.pass_context
def graph(ctx: click.Context, output_path: Path | None, render: bool, view: bool, fmt: str | None):
    """Export the link graph as Graphviz DOT, optionally rendering it."""
    from .graph import export_graph, render_graph, view_graph

    settings = _settings(ctx)
    corpus = _corpus(settings)

    try:
        cache, _ = _build(corpus)
        dot_source = export_graph(corpus.scan(), cache.snapshot)

        if not (render or view):
            if output_path is None:
                click.echo(dot_source, nl=False)
            else:
                output_path.write_text(dot_source, encoding="utf-8")
                click.echo(str(output_path))
            return

        artifact = render_graph(
            dot_source,
            output=output_path,
            fmt=fmt or settings.graph_format,
            executable=settings.graph_executable,
        )
        click.echo(str(artifact))
        if view:
            view_graph(artifact, settings.graph_viewer)
    except Exception as e:
        _handle_error(ctx, e)


@cli.command("open")
@click.argument("doc_id")
@click.option("--link-from", "link_from", help="Also print a Markdown link to DOC_ID from this document id")
@click.pass_context
def open_document(ctx: click.Context, doc_id: str, link_from: str | None):
    """Print the path for DOC_ID, creating an empty note if it does not exist."""
    from .notes import ensure_document, format_link

    settings = _settings(ctx)
    corpus = _corpus(settings)

    try:
        path, created = ensure_document(corpus, doc_id.removesuffix(corpus.suffix))
        source = corpus.path_of(link_from.removesuffix(corpus.suffix)) if link_from else None
    except ValueError as e:
        _handle_error(ctx, LinkweaveError(str(e), code=ErrorCode.DOCUMENT_NOT_FOUND))
    except LinkweaveError as e:
        _handle_error(ctx, e)

    if created and not ctx.obj.get("quiet"):
        click.echo(f"Created {path}", err=True)
    click.echo(str(path))
    if source is not None:
        click.echo(format_link(source, path))


@cli.command()
@click.pass_context
def today(ctx: click.Context):
    """Print the path of today's daily note, creating it if needed."""
    from .notes import daily_note

    settings = _settings(ctx)
    try:
        path, created = daily_note(_corpus(settings), settings.daily_directory)
    except LinkweaveError as e:
        _handle_error(ctx, e)

    if created and not ctx.obj.get("quiet"):
        click.echo(f"Created {path}", err=True)
    click.echo(str(path))


@cli.command()
@click.argument("doc_id")
@click.option("--interval", type=click.FloatRange(min=0, min_open=True), help="Minutes between rebuilds")
@click.option("--no-watch-files", is_flag=True, help="Only rebuild on the timer")
@click.option("--duration", type=click.FloatRange(min=0), help="Stop after this many seconds")
@click.pass_context
def watch(ctx: click.Context, doc_id: str, interval: float | None, no_watch_files: bool, duration: float | None):
    """Keep the index fresh and reprint DOC_ID's backlinks when they change."""
    from .backlinks_cache import IndexCache
    from .scheduler import RebuildScheduler
    from .view import TextSurface, ViewRefreshTrigger
    from .watcher import CorpusWatcher

    settings = _settings(ctx)
    corpus = _corpus(settings)
    try:
        current = corpus.path_of(doc_id.removesuffix(corpus.suffix))
    except ValueError as e:
        _handle_error(ctx, LinkweaveError(str(e), code=ErrorCode.DOCUMENT_NOT_FOUND))

    cache = IndexCache()
    surface = TextSurface(lambda text: click.echo(text + "\n"))
    trigger = ViewRefreshTrigger(corpus, cache, surface)
    minutes = interval if interval is not None else settings.rebuild_interval
    scheduler = RebuildScheduler(corpus, cache, interval_seconds=minutes * 60, listeners=[trigger.on_snapshot])
    watcher = None if no_watch_files else CorpusWatcher(corpus, scheduler.request_rebuild, settings.watch_debounce)

    deadline = None if duration is None else time.monotonic() + duration
    scheduler.start()
    if watcher is not None:
        watcher.start()
    try:
        while deadline is None or time.monotonic() < deadline:
            trigger.on_interaction(current)
            time.sleep(WATCH_POLL_SECONDS)
    except KeyboardInterrupt:
        pass
    finally:
        if watcher is not None:
            watcher.stop()
        scheduler.stop()

    # Show whatever the last rebuild produced
    trigger.on_interaction(current)


def main():
    cli()


if __name__ == "__main__":
    main()
