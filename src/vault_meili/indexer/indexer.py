"""Reconciliation engine that keeps the Meilisearch index in sync with the vault."""

import dataclasses
import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import TypeVar

from vault_meili.config import Config
from vault_meili.errors import MetadataCorrupt, SyncError
from vault_meili.indexer.client import MeilisearchClient, RemoteIndexClient
from vault_meili.indexer.metadata import MetadataStore
from vault_meili.indexer.models import (
    ChangeSet,
    Document,
    Metadata,
    SyncPhase,
    SyncProgress,
    SyncResult,
    TaskHandle,
)
from vault_meili.indexer.parser import parse_document
from vault_meili.indexer.tasks import TaskWaiter
from vault_meili.indexer.walker import (
    compute_hash,
    relative_to_vault,
    resolve_in_vault,
    walk_vault,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def classify(previous: Mapping[str, Metadata], current: Mapping[str, str]) -> ChangeSet:
    """
    Diff stored metadata against current content hashes.

    Args:
        previous: Metadata of the last confirmed sync, keyed by path.
        current: Hash of every file present now, keyed by path.

    Returns:
        A ChangeSet whose four lists partition the union of both key sets.
    """
    changes = ChangeSet()
    for path in sorted(current):
        known = previous.get(path)
        if known is None:
            changes.added.append(path)
        elif known.hash != current[path]:
            changes.modified.append(path)
        else:
            changes.unchanged.append(path)
    changes.deleted = sorted(path for path in previous if path not in current)
    return changes


def _chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class Indexer:
    """
    Syncs the vault with a Meilisearch index.

    The vault is the source of truth. The metadata file remembers the hash
    and remote id of every document confirmed by Meilisearch, so a sync only
    reads and hashes files, and parses and uploads the ones that changed.

    Thread Safety:
        Cycles (sync, reindex, index_path, remove_path) hold a lock, so at most
        one runs at a time. The SyncManager additionally serializes requests
        coming from file events and tools.
    """

    def __init__(
        self,
        vault_root: Path,
        store: MetadataStore,
        client: RemoteIndexClient,
        waiter: TaskWaiter,
        batch_size: int = 1000,
        on_progress: Callable[[SyncProgress], None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            vault_root: Directory holding the Markdown files.
            store: Persisted metadata record.
            client: Remote index.
            waiter: Confirms every submitted task.
            batch_size: Maximum documents per remote operation.
            on_progress: Called with a snapshot whenever progress changes.
            clock: Time source for ``indexed_at``.
        """
        if batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {batch_size}")

        self.vault_root = vault_root
        self.store = store
        self.client = client
        self.waiter = waiter
        self.batch_size = batch_size
        self._on_progress = on_progress
        self._clock = clock
        self._metadata: dict[str, Metadata] | None = None
        self._write_lock = threading.Lock()
        self.progress = SyncProgress()

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: MeilisearchClient | None = None,
        on_progress: Callable[[SyncProgress], None] | None = None,
    ) -> "Indexer":
        client = client or MeilisearchClient(config)
        waiter = TaskWaiter(
            client,
            poll_interval=config.task_poll_interval,
            max_attempts=config.task_max_attempts,
        )
        return cls(
            vault_root=config.vault_root,
            store=MetadataStore(config.metadata_path),
            client=client,
            waiter=waiter,
            batch_size=config.batch_size,
            on_progress=on_progress,
        )

    # Metadata

    def load_metadata(self) -> dict[str, Metadata]:
        """
        Load the persisted metadata into memory.

        Raises:
            MetadataCorrupt: The file is unreadable. Only reindex() can recover.
        """
        self._metadata = self.store.load()
        return dict(self._metadata)

    @property
    def metadata(self) -> dict[str, Metadata]:
        """Copy of the in-memory metadata (empty before the first load)."""
        return dict(self._metadata or {})

    def _require_metadata(self) -> dict[str, Metadata]:
        if self._metadata is None:
            try:
                self._metadata = self.store.load()
            except MetadataCorrupt:
                logger.error("Metadata is corrupt, a full reindex is required")
                raise
        return self._metadata

    # Progress

    def _report(self, **changes) -> None:
        self.progress = dataclasses.replace(self.progress, **changes)
        if self._on_progress is not None:
            self._on_progress(dataclasses.replace(self.progress))

    def _enter(self, phase: SyncPhase) -> None:
        logger.debug("Sync phase: %s", phase.value)
        self._report(phase=phase)

    # Public operations

    def sync(self) -> SyncResult:
        """
        Incremental sync: upload new and modified files, remove deleted ones.

        Raises:
            MetadataCorrupt: The metadata file cannot be trusted.
        """
        with self._write_lock:
            metadata = self._require_metadata()
            logger.info("Starting incremental indexing of %s", self.vault_root)
            return self._run(SyncResult(mode="incremental"), metadata, scope=None)

    def reindex(self) -> SyncResult:
        """
        Full reindex: clear the remote index, then upload every file.

        A missing vault root or a failed clear aborts the cycle before anything
        is submitted and leaves the metadata untouched. This is the only way
        out of MetadataCorrupt.
        """
        with self._write_lock:
            result = SyncResult(mode="full")
            if not self._check_root(result):
                return result
            logger.info("Starting full indexing of %s", self.vault_root)
            self._report(
                status="indexing", total=0, processed=0, current_item=None, error=None
            )
            self._enter(SyncPhase.SUBMITTING)
            try:
                handle = self.client.clear()
                self._enter(SyncPhase.WAITING)
                self.waiter.wait(handle)
            except SyncError as e:
                result.error = f"Failed to clear index: {e}"
                self._fail(result)
                return result

            self._metadata = {}
            return self._run(result, self._metadata, scope=None)

    def index_path(self, path: str) -> SyncResult:
        """Sync a single created or modified file.

        A path that no longer exists is handled like remove_path().
        """
        with self._write_lock:
            metadata = self._require_metadata()
            return self._run(SyncResult(mode="file"), metadata, scope=path)

    def remove_path(self, path: str) -> SyncResult:
        """Remove a deleted file from the index.

        If the file exists again by the time this runs, it is re-evaluated
        instead, so a stale delete event never removes a live document.
        """
        with self._write_lock:
            metadata = self._require_metadata()
            return self._run(SyncResult(mode="delete"), metadata, scope=path)

    # Cycle

    def _enumerate(self, scope: str | None) -> list[tuple[str, Path]]:
        if scope is None:
            return [(f.relative_path, f.path) for f in walk_vault(self.vault_root)]
        try:
            full_path = resolve_in_vault(self.vault_root, scope)
        except ValueError as e:
            logger.warning("Ignoring %s", e)
            return []
        if relative_to_vault(self.vault_root, full_path) is None:
            logger.debug("Ignoring %s: not a vault document", scope)
            return []
        if not full_path.is_file():
            return []
        return [(scope, full_path)]

    def _check_root(self, result: SyncResult) -> bool:
        # A missing root would otherwise look like every file was deleted
        if self.vault_root.is_dir():
            return True
        result.error = f"Vault root {self.vault_root} is not a directory"
        self._fail(result)
        return False

    def _run(
        self,
        result: SyncResult,
        metadata: dict[str, Metadata],
        scope: str | None,
    ) -> SyncResult:
        if not self._check_root(result):
            return result

        files: list[tuple[str, Path]] = []
        try:
            files = self._scan_and_submit(result, metadata, scope)
        except Exception as e:
            logger.exception("Unexpected error during %s indexing", result.mode)
            if result.error is None:
                result.error = f"Unexpected error: {e}"
        finally:
            self._enter(SyncPhase.PERSISTING)
            try:
                self.store.save(metadata)
            except OSError as e:
                logger.error("Failed to save metadata: %s", e)
                if result.error is None:
                    result.error = f"Failed to save metadata: {e}"

        if result.error is not None:
            self._fail(result)
            return result

        self._report(
            status="idle",
            phase=SyncPhase.IDLE,
            processed=len(files),
            current_item=None,
        )
        if result.added or result.updated or result.deleted or result.mode == "full":
            logger.info("Indexing completed: %s", result.summary())
        return result

    def _scan_and_submit(
        self,
        result: SyncResult,
        metadata: dict[str, Metadata],
        scope: str | None,
    ) -> list[tuple[str, Path]]:
        # Scan: read and hash, keep raw bytes only for changed files
        self._enter(SyncPhase.SCANNING)
        files = self._enumerate(scope)
        self._report(
            status="indexing",
            total=len(files),
            processed=0,
            current_item=None,
            error=None,
        )

        hashes: dict[str, str] = {}
        raw_changed: dict[str, bytes] = {}
        for processed, (path, full_path) in enumerate(files):
            self._report(processed=processed, current_item=path)
            try:
                raw = full_path.read_bytes()
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                result.skipped.append(path)
                continue
            file_hash = compute_hash(raw)
            hashes[path] = file_hash
            known = metadata.get(path)
            if known is None or known.hash != file_hash:
                raw_changed[path] = raw

        self._enter(SyncPhase.DIFFING)
        if scope is None:
            previous = metadata
        else:
            previous = {scope: metadata[scope]} if scope in metadata else {}
        # Unreadable files still exist; they must not be classified deleted
        unreadable = set(result.skipped)
        previous = {p: m for p, m in previous.items() if p not in unreadable}
        changes = classify(previous, hashes)
        if not changes.has_changes:
            logger.debug("No changes detected")
            return files

        additions = self._parse(changes.added, raw_changed, result)
        updates = self._parse(changes.modified, raw_changed, result)
        deletions = [previous[path] for path in changes.deleted]

        self._enter(SyncPhase.SUBMITTING)
        self._submit(result, metadata, deletions, additions, updates)
        return files

    def _parse(
        self, paths: list[str], raw_changed: dict[str, bytes], result: SyncResult
    ) -> list[Document]:
        documents = []
        for path in paths:
            try:
                documents.append(parse_document(path, raw_changed[path]))
            except UnicodeDecodeError as e:
                logger.warning("Skipping file with invalid UTF-8 encoding: %s (%s)", path, e)
                result.skipped.append(path)
            except Exception:
                logger.exception("Skipping file that could not be parsed: %s", path)
                result.skipped.append(path)
        return documents

    def _submit(
        self,
        result: SyncResult,
        metadata: dict[str, Metadata],
        deletions: list[Metadata],
        additions: list[Document],
        updates: list[Document],
    ) -> None:
        """
        Deletions first, then additions, then modifications. Each batch is
        confirmed before the next starts and only then written to metadata.
        The first failing batch stops the cycle; confirmed batches stay.
        """
        try:
            if deletions:
                logger.info("Removing %d deleted files from index...", len(deletions))
            for batch in _chunks(deletions, self.batch_size):
                self._confirm(self.client.delete([m.remote_id for m in batch]))
                for entry in batch:
                    metadata.pop(entry.path, None)
                    result.deleted.append(entry.path)

            if additions:
                logger.info("Adding %d new files to index...", len(additions))
            for batch in _chunks(additions, self.batch_size):
                self._confirm(self.client.add_or_update(batch))
                self._record(metadata, batch)
                result.added.extend(doc.path for doc in batch)

            if updates:
                logger.info("Updating %d modified files in index...", len(updates))
            for batch in _chunks(updates, self.batch_size):
                self._confirm(self.client.add_or_update(batch))
                self._record(metadata, batch)
                result.updated.extend(doc.path for doc in batch)
        except SyncError as e:
            result.error = str(e)

    def _confirm(self, handle: TaskHandle) -> None:
        self._enter(SyncPhase.WAITING)
        self.waiter.wait(handle)
        self._enter(SyncPhase.SUBMITTING)

    def _record(self, metadata: dict[str, Metadata], batch: Sequence[Document]) -> None:
        indexed_at = int(self._clock() * 1000)
        for doc in batch:
            metadata[doc.path] = Metadata(
                path=doc.path,
                hash=doc.hash,
                remote_id=doc.id,
                indexed_at=indexed_at,
            )

    def _fail(self, result: SyncResult) -> None:
        logger.error("%s indexing failed: %s", result.mode.capitalize(), result.error)
        self._report(status="error", phase=SyncPhase.ERROR, error=result.error)
        self._enter(SyncPhase.IDLE)
