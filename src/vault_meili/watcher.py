"""File watcher: push vault changes onto the sync queue."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change, watch

from vault_meili.indexer.walker import relative_to_vault

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vault_meili.sync import SyncManager

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500


def filter_changes(
    changes: Iterable[tuple[Change, str]],
    vault_root: Path,
) -> dict[str, Change]:
    """Keep Markdown changes inside the vault, latest change per path.

    Temp files (name starts with ``~`` or ends with ``.tmp``) and hidden
    paths are ignored.
    """
    result: dict[str, Change] = {}
    for change, path_str in changes:
        path = Path(path_str)
        if path.name.startswith("~") or path.name.endswith(".tmp"):
            continue
        relative = relative_to_vault(vault_root, path)
        if relative is None:
            continue
        result[relative] = change
    return result


def dispatch_changes(
    changes: Iterable[tuple[Change, str]],
    vault_root: Path,
    manager: SyncManager,
) -> int:
    """Turn one batch of watchfiles changes into sync requests.

    Returns:
        Number of requests queued.
    """
    relevant = filter_changes(changes, vault_root)
    for path, change in relevant.items():
        if change == Change.deleted:
            manager.notify_deleted(path)
        else:
            manager.notify_changed(path)
    if relevant:
        logger.debug("Queued %d file event(s)", len(relevant))
    return len(relevant)


class VaultWatcher:
    """Runs watchfiles in a daemon thread until stopped."""

    def __init__(
        self,
        vault_root: Path,
        manager: SyncManager,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ):
        self.vault_root = vault_root
        self._manager = manager
        self._debounce_ms = debounce_ms
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Watcher already running")
            return
        if not self.vault_root.is_dir():
            logger.warning("Vault root %s does not exist, not watching", self.vault_root)
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="vault-watch",
            daemon=True,
        )
        self._thread.start()
        logger.info("Watching %s (debounce: %dms)", self.vault_root, self._debounce_ms)

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=5.0)
        if self._thread.is_alive():
            logger.warning("Watcher thread did not stop cleanly")
        self._thread = None

    def _watch_loop(self) -> None:
        try:
            for batch in watch(
                self.vault_root,
                debounce=self._debounce_ms,
                stop_event=self._stop_event,
            ):
                dispatch_changes(batch, self.vault_root, self._manager)
        except Exception:
            logger.exception("File watcher stopped unexpectedly")
