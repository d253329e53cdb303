"""Single-flight sync manager.

Every trigger (startup sync, periodic timer, file events, tool calls) is a
request pushed onto one queue. A single daemon thread drains the queue and
runs the indexer, so two cycles never overlap and never race on metadata.
"""

import logging
import queue
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum

from vault_meili.indexer import Indexer, SyncResult

logger = logging.getLogger(__name__)


class SyncKind(str, Enum):
    INCREMENTAL = "incremental"
    FULL = "full"
    FILE = "file"
    DELETE = "delete"


@dataclass
class SyncRequest:
    """A queued trigger. Its future resolves with the result of the cycle
    that covered it, which may be shared with coalesced requests."""

    kind: SyncKind
    path: str | None = None
    future: Future = field(default_factory=Future)


@dataclass
class _Run:
    kind: SyncKind
    path: str | None
    requests: list[SyncRequest]


def plan_runs(batch: list[SyncRequest]) -> list[_Run]:
    """
    Coalesce a drained batch of requests into the cycles to run, in order.

    - A full reindex runs once and covers pending incremental requests; file
      events are re-evaluated after it (cheap when hashes already match).
    - Otherwise an incremental sync runs once and covers every file event.
    - Otherwise the latest event per path wins.
    """
    full = [r for r in batch if r.kind is SyncKind.FULL]
    incremental = [r for r in batch if r.kind is SyncKind.INCREMENTAL]
    path_events = [r for r in batch if r.kind in (SyncKind.FILE, SyncKind.DELETE)]

    runs: list[_Run] = []
    if full:
        runs.append(_Run(SyncKind.FULL, None, full + incremental))
    elif incremental:
        runs.append(_Run(SyncKind.INCREMENTAL, None, incremental + path_events))
        return runs

    by_path: dict[str, _Run] = {}
    for request in path_events:
        run = by_path.get(request.path)
        if run is None:
            by_path[request.path] = _Run(request.kind, request.path, [request])
        else:
            run.kind = request.kind
            run.requests.append(request)
    runs.extend(by_path.values())
    return runs


class SyncManager:
    """Owns the sync queue and its consumer thread.

    The thread is a daemon, so it automatically terminates when the main
    process exits.
    """

    def __init__(self, indexer: Indexer, interval: int = 0):
        """Initialize the sync manager.

        Args:
            indexer: The indexer instance to drive.
            interval: Periodic incremental sync in seconds; 0 disables it.
        """
        if interval < 0:
            raise ValueError(f"Sync interval must be >= 0, got {interval}")

        self._indexer = indexer
        self._interval = interval
        self._queue: queue.Queue[SyncRequest | None] = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._busy = threading.Event()

    @property
    def indexer(self) -> Indexer:
        return self._indexer

    @property
    def is_busy(self) -> bool:
        """True while a cycle is running."""
        return self._busy.is_set()

    def start(self) -> None:
        """Start the consumer thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Sync thread already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._sync_loop,
            name="vault-sync",
            daemon=True,
        )
        self._thread.start()
        if self._interval:
            logger.info("Sync manager started (interval: %ds)", self._interval)
        else:
            logger.info("Sync manager started (periodic sync disabled)")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the consumer thread.

        Waits for the running cycle, if any; queued requests are cancelled.
        """
        if self._thread is None or not self._thread.is_alive():
            return

        self._stop_event.set()
        self._queue.put(None)
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Sync thread did not stop cleanly")
        else:
            logger.info("Sync manager stopped")
        self._thread = None
        self._cancel_pending()

    # Triggers

    def request_sync(self) -> Future:
        return self._submit(SyncRequest(SyncKind.INCREMENTAL))

    def request_reindex(self) -> Future:
        return self._submit(SyncRequest(SyncKind.FULL))

    def notify_changed(self, path: str) -> Future:
        """A file was created or modified."""
        return self._submit(SyncRequest(SyncKind.FILE, path))

    def notify_deleted(self, path: str) -> Future:
        return self._submit(SyncRequest(SyncKind.DELETE, path))

    def _submit(self, request: SyncRequest) -> Future:
        self._queue.put(request)
        return request.future

    # Consumer

    def _sync_loop(self) -> None:
        """Main loop - runs in the consumer thread."""
        logger.debug("Sync loop started")
        next_periodic = time.monotonic() + self._interval if self._interval else None

        while not self._stop_event.is_set():
            timeout = None
            if next_periodic is not None:
                timeout = max(0.0, next_periodic - time.monotonic())

            try:
                first = self._queue.get(timeout=timeout)
            except queue.Empty:
                first = SyncRequest(SyncKind.INCREMENTAL)
            if first is None:
                break

            batch = [first]
            stopping = False
            while True:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                if item is None:
                    stopping = True
                    break
                batch.append(item)

            if next_periodic is not None and time.monotonic() >= next_periodic:
                if not any(r.kind is SyncKind.INCREMENTAL for r in batch):
                    batch.append(SyncRequest(SyncKind.INCREMENTAL))
                next_periodic = time.monotonic() + self._interval

            self.process(batch)
            if stopping:
                break

        logger.debug("Sync loop stopped")

    def process(self, batch: list[SyncRequest]) -> None:
        """Run the cycles for one drained batch and resolve its futures."""
        for run in plan_runs(batch):
            self._busy.set()
            try:
                result = self._execute(run)
            except Exception as e:
                logger.exception("Error during %s sync", run.kind.value)
                for request in run.requests:
                    if not request.future.done():
                        request.future.set_exception(e)
            else:
                self._log_result(run, result)
                for request in run.requests:
                    if not request.future.done():
                        request.future.set_result(result)
            finally:
                self._busy.clear()

    def _execute(self, run: _Run) -> SyncResult:
        operations: dict[SyncKind, Callable[[], SyncResult]] = {
            SyncKind.FULL: self._indexer.reindex,
            SyncKind.INCREMENTAL: self._indexer.sync,
            SyncKind.FILE: lambda: self._indexer.index_path(run.path),
            SyncKind.DELETE: lambda: self._indexer.remove_path(run.path),
        }
        return operations[run.kind]()

    @staticmethod
    def _log_result(run: _Run, result: SyncResult) -> None:
        if not result.ok:
            logger.error("%s sync failed: %s", run.kind.value.capitalize(), result.error)
        elif result.added or result.updated or result.deleted:
            logger.info("Sync (%s): %s", run.kind.value, result.summary())
        else:
            logger.debug("Sync (%s): no changes detected", run.kind.value)

    def _cancel_pending(self) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            if item is not None:
                item.future.cancel()
