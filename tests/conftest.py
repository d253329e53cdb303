"""Shared fixtures: an in-memory remote index and a temporary vault."""

from pathlib import Path

import pytest

from vault_meili.indexer import Indexer, MetadataStore, TaskWaiter
from vault_meili.indexer.models import TaskHandle, TaskInfo, TaskStatus


class FakeRemoteIndex:
    """In-memory stand-in for Meilisearch.

    Tasks are applied immediately unless the submission number is listed in
    ``fail_on`` (reported failed) or ``pending_forever`` is set.
    """

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.submissions: list[tuple[str, list]] = []
        self.tasks: dict[int, TaskInfo] = {}
        self.fail_on: dict[int, str] = {}
        self.pending_forever = False
        self.status_calls = 0

    def _enqueue(self, kind: str, items: list, apply) -> TaskHandle:
        self.submissions.append((kind, items))
        uid = len(self.submissions)
        if uid in self.fail_on:
            info = TaskInfo(uid, TaskStatus.FAILED, self.fail_on[uid], "internal")
        elif self.pending_forever:
            info = TaskInfo(uid, TaskStatus.PENDING)
        else:
            apply()
            info = TaskInfo(uid, TaskStatus.SUCCEEDED)
        self.tasks[uid] = info
        return TaskHandle(uid)

    def add_or_update(self, documents):
        payloads = [doc.to_payload() for doc in documents]

        def apply():
            for payload in payloads:
                self.documents[payload["id"]] = payload

        return self._enqueue("add_or_update", payloads, apply)

    def delete(self, remote_ids):
        ids = list(remote_ids)

        def apply():
            for remote_id in ids:
                self.documents.pop(remote_id, None)

        return self._enqueue("delete", ids, apply)

    def clear(self):
        return self._enqueue("clear", [], self.documents.clear)

    def status(self, handle):
        self.status_calls += 1
        return self.tasks[handle.uid]

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.submissions]


@pytest.fixture
def remote() -> FakeRemoteIndex:
    return FakeRemoteIndex()


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def metadata_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "metadata.json"


@pytest.fixture
def indexer(vault: Path, metadata_path: Path, remote: FakeRemoteIndex) -> Indexer:
    """Indexer over the temporary vault and the fake remote, no sleeping."""
    waiter = TaskWaiter(remote, poll_interval=0, max_attempts=3, sleep=lambda _: None)
    return Indexer(
        vault_root=vault,
        store=MetadataStore(metadata_path),
        client=remote,
        waiter=waiter,
        clock=lambda: 1700000000.0,
    )
