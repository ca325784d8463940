"""Background rebuilds of the backlink index.

The scheduler owns one worker thread for the pipeline and one timer thread
for periodic ticks. Triggers that arrive while a rebuild is in flight are
dropped; the next tick picks up anything they would have seen.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum

from .backlinks_cache import IndexCache
from .backlinks_index import BacklinkIndex
from .config import DEFAULT_REBUILD_INTERVAL
from .core import build_index
from .corpus import Corpus
from .models import BuildReport

log = logging.getLogger(__name__)

SnapshotListener = Callable[[BacklinkIndex], None]
Pipeline = Callable[[Corpus], tuple[BacklinkIndex, BuildReport]]


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class RebuildScheduler:
    """Keeps an ``IndexCache`` fresh without blocking the caller.

    Usage:
        cache = IndexCache()
        with RebuildScheduler(corpus, cache, interval_seconds=300) as scheduler:
            scheduler.add_listener(trigger.on_snapshot)
            ...
            scheduler.request_rebuild()  # after a save, say
    """

    def __init__(
        self,
        corpus: Corpus,
        cache: IndexCache,
        *,
        interval_seconds: float = DEFAULT_REBUILD_INTERVAL * 60,
        run_on_start: bool = True,
        listeners: list[SnapshotListener] | None = None,
        pipeline: Pipeline = build_index,
    ):
        """Initialize the scheduler.

        Args:
            corpus: Corpus to index.
            cache: Cache that receives each finished snapshot.
            interval_seconds: Time between periodic rebuilds.
            run_on_start: Fire the first periodic rebuild immediately.
            listeners: Called with each installed snapshot, on the worker thread.
            pipeline: Function producing (snapshot, report) for a corpus.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._corpus = corpus
        self._cache = cache
        self._interval = interval_seconds
        self._run_on_start = run_on_start
        self._listeners: list[SnapshotListener] = list(listeners or [])
        self._pipeline = pipeline

        self._executor: ThreadPoolExecutor | None = None
        self._timer: threading.Thread | None = None
        self._stopping = threading.Event()
        # Single in-flight slot: set from submission until the result is installed
        self._in_flight = False
        self._lock = threading.Lock()
        self._settled = threading.Condition(self._lock)

        self.last_report: BuildReport | None = None
        self.last_error: Exception | None = None

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.RUNNING if self._in_flight else SchedulerState.IDLE

    @property
    def is_running(self) -> bool:
        """Whether the periodic timer is active."""
        return self._timer is not None and self._timer.is_alive()

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="linkweave-rebuild")
        return self._executor

    def request_rebuild(self) -> bool:
        """Start a rebuild unless one is already in flight.

        Returns:
            True if a rebuild was started, False if the trigger was dropped.
        """
        with self._lock:
            if self._stopping.is_set():
                log.debug("Scheduler stopped; dropping trigger")
                return False
            if self._in_flight:
                log.debug("Rebuild already running; dropping trigger")
                return False
            self._in_flight = True

        try:
            future = self._ensure_executor().submit(self._pipeline, self._corpus)
        except RuntimeError:
            # Executor already shut down
            self._release_slot()
            log.debug("Scheduler stopped; dropping trigger")
            return False

        future.add_done_callback(self._on_pipeline_done)
        return True

    def _on_pipeline_done(self, future: Future) -> None:
        try:
            try:
                index, report = future.result()
            except Exception as e:
                log.exception("Rebuild failed; keeping the previous snapshot")
                self.last_error = e
                return

            generation = self._cache.install(index)
            self.last_report = report
            self.last_error = None
            log.debug("Installed snapshot %d (%d targets)", generation, len(index))
            self._notify(index)
        finally:
            self._release_slot()

    def _release_slot(self) -> None:
        with self._lock:
            self._in_flight = False
            self._settled.notify_all()

    def _notify(self, index: BacklinkIndex) -> None:
        for listener in list(self._listeners):
            try:
                listener(index)
            except Exception:
                log.exception("Snapshot listener %r failed", listener)

    def _tick_loop(self) -> None:
        if self._run_on_start:
            self.request_rebuild()
        while not self._stopping.wait(self._interval):
            self.request_rebuild()

    def start(self) -> None:
        """Start periodic rebuilds."""
        if self.is_running:
            return

        self._stopping.clear()
        self._ensure_executor()
        self._timer = threading.Thread(target=self._tick_loop, name="linkweave-timer", daemon=True)
        self._timer.start()
        log.info("Rebuilding %s every %.0fs", self._corpus.root, self._interval)

    def stop(self, wait: bool = True) -> None:
        """Stop the timer and the worker. An in-flight rebuild is not cancelled."""
        self._stopping.set()
        if self._timer is not None:
            self._timer.join(timeout=5.0)
            self._timer = None

        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no rebuild is in flight. Returns False on timeout."""
        with self._lock:
            return self._settled.wait_for(lambda: not self._in_flight, timeout)

    def run_once(self, timeout: float | None = None) -> BuildReport | None:
        """Trigger a rebuild (or join the running one) and wait for it."""
        self.request_rebuild()
        self.wait_idle(timeout)
        return self.last_report

    def __enter__(self) -> RebuildScheduler:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
