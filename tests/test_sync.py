"""Tests for sync module."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from vault_meili.indexer.models import SyncResult
from vault_meili.sync import SyncKind, SyncManager, SyncRequest, plan_runs


def wait_for_condition(condition_fn, timeout: float = 3.0, interval: float = 0.05) -> bool:
    """Wait for a condition to become true, polling at interval.

    Args:
        condition_fn: Callable that returns True when condition is met.
        timeout: Maximum time to wait in seconds.
        interval: Time between checks in seconds.

    Returns:
        True if condition was met, False if timeout was reached.
    """
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition_fn():
            return True
        time.sleep(interval)
    return False


def make_indexer() -> MagicMock:
    indexer = MagicMock()
    indexer.sync.return_value = SyncResult(mode="incremental")
    indexer.reindex.return_value = SyncResult(mode="full")
    indexer.index_path.side_effect = lambda path: SyncResult(mode="file", added=[path])
    indexer.remove_path.side_effect = lambda path: SyncResult(mode="delete", deleted=[path])
    return indexer


class TestPlanRuns:
    def test_full_runs_first_then_file_events(self):
        batch = [
            SyncRequest(SyncKind.FILE, "a.md"),
            SyncRequest(SyncKind.FULL),
            SyncRequest(SyncKind.INCREMENTAL),
        ]
        runs = plan_runs(batch)

        assert [(r.kind, r.path) for r in runs] == [
            (SyncKind.FULL, None),
            (SyncKind.FILE, "a.md"),
        ]
        # The incremental request is covered by the full reindex
        assert batch[2] in runs[0].requests

    def test_incremental_covers_file_events(self):
        batch = [
            SyncRequest(SyncKind.FILE, "a.md"),
            SyncRequest(SyncKind.DELETE, "b.md"),
            SyncRequest(SyncKind.INCREMENTAL),
        ]
        runs = plan_runs(batch)

        assert len(runs) == 1
        assert runs[0].kind is SyncKind.INCREMENTAL
        assert len(runs[0].requests) == 3

    def test_latest_event_per_path_wins(self):
        batch = [
            SyncRequest(SyncKind.FILE, "a.md"),
            SyncRequest(SyncKind.FILE, "b.md"),
            SyncRequest(SyncKind.DELETE, "a.md"),
        ]
        runs = plan_runs(batch)

        assert [(r.kind, r.path) for r in runs] == [
            (SyncKind.DELETE, "a.md"),
            (SyncKind.FILE, "b.md"),
        ]
        assert len(runs[0].requests) == 2


class TestProcess:
    def test_resolves_futures_with_results(self):
        indexer = make_indexer()
        manager = SyncManager(indexer)
        first = SyncRequest(SyncKind.FILE, "a.md")
        second = SyncRequest(SyncKind.FILE, "a.md")

        manager.process([first, second])

        assert indexer.index_path.call_count == 1
        assert first.future.result().added == ["a.md"]
        assert second.future.result() is first.future.result()

    def test_exception_is_set_on_future(self):
        indexer = make_indexer()
        indexer.sync.side_effect = RuntimeError("Simulated error")
        manager = SyncManager(indexer)
        request = SyncRequest(SyncKind.INCREMENTAL)

        manager.process([request])

        with pytest.raises(RuntimeError, match="Simulated error"):
            request.future.result()


class TestSyncManager:
    def test_init_rejects_negative_interval(self):
        with pytest.raises(ValueError, match="Sync interval must be >= 0"):
            SyncManager(MagicMock(), -1)

    def test_start_creates_daemon_thread(self):
        manager = SyncManager(make_indexer())

        manager.start()
        try:
            assert manager._thread is not None
            assert manager._thread.is_alive()
            assert manager._thread.daemon is True
            assert manager._thread.name == "vault-sync"
        finally:
            manager.stop()

    def test_start_idempotent(self):
        manager = SyncManager(make_indexer())

        manager.start()
        thread1 = manager._thread
        manager.start()
        thread2 = manager._thread

        try:
            assert thread1 is thread2
        finally:
            manager.stop()

    def test_stop_terminates_thread(self):
        manager = SyncManager(make_indexer())

        manager.start()
        assert manager._thread.is_alive()

        manager.stop()
        assert manager._thread is None

    def test_stop_idempotent(self):
        manager = SyncManager(MagicMock())
        manager.stop()  # Should not raise

    def test_requests_are_processed(self):
        indexer = make_indexer()
        manager = SyncManager(indexer)
        manager.start()
        try:
            result = manager.request_sync().result(timeout=3)
            assert result.mode == "incremental"
            assert manager.notify_deleted("x.md").result(timeout=3).deleted == ["x.md"]
            assert manager.request_reindex().result(timeout=3).mode == "full"
        finally:
            manager.stop()

    def test_cycles_never_overlap(self):
        indexer = make_indexer()
        active = 0
        max_active = 0
        lock = threading.Lock()

        def slow_cycle(path):
            nonlocal active, max_active
            with lock:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.05)
            with lock:
                active -= 1
            return SyncResult(mode="file", added=[path])

        indexer.index_path.side_effect = slow_cycle
        manager = SyncManager(indexer)
        manager.start()
        try:
            futures = [manager.notify_changed(f"{i}.md") for i in range(5)]
            for future in futures:
                future.result(timeout=5)
        finally:
            manager.stop()

        assert max_active == 1

    def test_event_during_reindex_is_deferred(self):
        indexer = make_indexer()
        started = threading.Event()
        release = threading.Event()
        order = []

        def slow_reindex():
            started.set()
            release.wait(timeout=3)
            order.append("full")
            return SyncResult(mode="full")

        def index_path(path):
            order.append(path)
            return SyncResult(mode="file")

        indexer.reindex.side_effect = slow_reindex
        indexer.index_path.side_effect = index_path
        manager = SyncManager(indexer)
        manager.start()
        try:
            full = manager.request_reindex()
            assert started.wait(timeout=3)
            event = manager.notify_changed("a.md")
            release.set()
            full.result(timeout=3)
            event.result(timeout=3)
        finally:
            manager.stop()

        assert order == ["full", "a.md"]

    def test_periodic_sync(self):
        indexer = make_indexer()
        manager = SyncManager(indexer, 1)

        manager.start()
        try:
            condition_met = wait_for_condition(
                lambda: indexer.sync.call_count >= 1,
                timeout=3.0,
            )
            assert condition_met, "sync() was not called within timeout"
        finally:
            manager.stop()

    def test_exception_doesnt_stop_thread(self):
        indexer = make_indexer()
        indexer.sync.side_effect = [RuntimeError("Simulated error"), SyncResult(mode="incremental")]
        manager = SyncManager(indexer)

        manager.start()
        try:
            with pytest.raises(RuntimeError):
                manager.request_sync().result(timeout=3)
            assert manager.request_sync().result(timeout=3).ok
        finally:
            manager.stop()
