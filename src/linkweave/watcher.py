"""File watcher that requests a rebuild when corpus documents change."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import DEFAULT_WATCH_DEBOUNCE
from .corpus import Corpus

logger = logging.getLogger(__name__)


class DebouncedHandler(FileSystemEventHandler):
    """File system event handler with debouncing."""

    def __init__(
        self,
        callback: Callable[[set[Path]], None],
        suffix: str,
        debounce_seconds: float = DEFAULT_WATCH_DEBOUNCE,
    ):
        """Initialize the debounced handler.

        Args:
            callback: Function to call with changed files after debounce.
            suffix: Only files with this suffix are reported.
            debounce_seconds: Debounce window in seconds.
        """
        super().__init__()
        self._callback = callback
        self._suffix = suffix
        self._debounce_seconds = debounce_seconds
        self._pending_files: set[Path] = set()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def _fire(self) -> None:
        with self._lock:
            files = self._pending_files
            self._pending_files = set()
            self._timer = None
        if files:
            self._callback(files)

    def _add(self, path: str | bytes | None) -> None:
        if not path:
            return
        candidate = Path(path.decode() if isinstance(path, bytes) else path)
        if candidate.suffix != self._suffix:
            return

        with self._lock:
            self._pending_files.add(candidate)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce_seconds, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending_files.clear()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("created", "modified", "deleted", "moved"):
            return
        self._add(event.src_path)
        self._add(getattr(event, "dest_path", None))


class CorpusWatcher:
    """Watch the corpus directory and request rebuilds on change.

    The watcher never builds anything itself; ``on_change`` is normally
    ``RebuildScheduler.request_rebuild``, which drops the request when a
    rebuild is already running.
    """

    def __init__(
        self,
        corpus: Corpus,
        on_change: Callable[[], object],
        debounce_seconds: float = DEFAULT_WATCH_DEBOUNCE,
    ):
        self._corpus = corpus
        self._on_change = on_change
        self._debounce_seconds = debounce_seconds
        self._observer: Observer | None = None
        self._handler: DebouncedHandler | None = None
        self._running = False

    def _on_files_changed(self, files: set[Path]) -> None:
        logger.info("%d document(s) changed; requesting rebuild", len(files))
        try:
            self._on_change()
        except Exception as e:
            logger.warning("Rebuild request failed: %s", e)

    def start(self) -> None:
        """Start watching for file changes."""
        if self._running:
            return

        if not self._corpus.root.is_dir():
            logger.warning("Corpus root does not exist: %s", self._corpus.root)
            return

        self._handler = DebouncedHandler(
            callback=self._on_files_changed,
            suffix=self._corpus.suffix,
            debounce_seconds=self._debounce_seconds,
        )
        self._observer = Observer()
        self._observer.schedule(self._handler, str(self._corpus.root), recursive=True)
        self._observer.start()
        self._running = True
        logger.info("Started watching: %s", self._corpus.root)

    def stop(self) -> None:
        """Stop watching for file changes."""
        if not self._running or self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        if self._handler is not None:
            self._handler.cancel()
        self._observer = None
        self._handler = None
        self._running = False
        logger.info("Stopped file watcher")

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> CorpusWatcher:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
