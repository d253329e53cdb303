"""Debounced interactive search.

Queries go straight to Meilisearch and may run while a sync cycle is in
progress. Only the newest query's results are delivered.
"""

import logging
import sys
import threading
from collections.abc import Callable, Iterable, Iterator

from vault_meili.errors import SyncError
from vault_meili.indexer.client import MeilisearchClient
from vault_meili.indexer.models import SearchHit

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.3  # seconds
DEFAULT_LIMIT = 50
DEFAULT_CROP_LENGTH = 100


class SearchController:
    """Debounces keystrokes and drops stale responses.

    Every call to search() restarts the quiet-period timer and bumps a
    generation counter; a response is delivered only if no newer query was
    issued while it was in flight.
    """

    def __init__(
        self,
        client: MeilisearchClient,
        on_results: Callable[[list[SearchHit]], None],
        on_error: Callable[[str], None] | None = None,
        debounce: float = DEFAULT_DEBOUNCE,
        limit: int = DEFAULT_LIMIT,
        crop_length: int = DEFAULT_CROP_LENGTH,
    ):
        self._client = client
        self._on_results = on_results
        self._on_error = on_error
        self._debounce = debounce
        self._limit = limit
        self._crop_length = crop_length
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: threading.Timer | None = None
        self.query = ""

    def search(self, query: str) -> None:
        """Record a keystroke."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.query = query
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

            if not query.strip():
                deliver_empty = True
            else:
                deliver_empty = False
                self._timer = threading.Timer(
                    self._debounce, self._perform, args=(query, generation)
                )
                self._timer.daemon = True
                self._timer.start()

        if deliver_empty:
            self._on_results([])

    def cancel(self) -> None:
        """Drop the pending query and any in-flight response."""
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def join(self, timeout: float | None = None) -> None:
        """Wait for the pending query, if any, to be performed."""
        with self._lock:
            timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _perform(self, query: str, generation: int) -> None:
        if not self._is_current(generation):
            return
        try:
            response = self._client.search(
                query,
                limit=self._limit,
                attributes_to_highlight=("name", "content"),
                attributes_to_crop=("content",),
                crop_length=self._crop_length,
                show_ranking_score=True,
            )
        except SyncError as e:
            logger.error("Search failed: %s", e)
            if self._on_error is not None and self._is_current(generation):
                self._on_error(str(e))
            return

        if not self._is_current(generation):
            logger.debug("Discarding stale results for %r", query)
            return
        self._on_results(response.hits)


def format_hits(hits: list[SearchHit]) -> str:
    if not hits:
        return "No results."
    lines = []
    for hit in hits:
        score = f"{hit.ranking_score:.3f}" if hit.ranking_score is not None else "-"
        lines.append(f"[{score}] {hit.path}")
        snippet = " ".join(hit.snippet.split())
        if snippet:
            lines.append(f"    {snippet}")
    return "\n".join(lines)


def _stdin_lines() -> Iterator[str]:
    for line in sys.stdin:
        yield line.rstrip("\n")


def interactive_search(
    client: MeilisearchClient,
    lines: Iterable[str] | None = None,
    write: Callable[[str], None] = print,
    debounce: float = DEFAULT_DEBOUNCE,
) -> None:
    """
    Search-as-you-type prompt: every input line replaces the current query.

    Only the newest query's results are written; the last pending query is
    performed before returning.

    Args:
        client: Meilisearch client to query.
        lines: Query source, stdin when omitted.
        write: Output function for result listings and errors.
        debounce: Quiet period before a query is sent.
    """
    controller = SearchController(
        client,
        on_results=lambda hits: write(format_hits(hits)),
        on_error=lambda message: write(f"Search failed: {message}"),
        debounce=debounce,
    )
    for line in lines if lines is not None else _stdin_lines():
        controller.search(line)
    controller.join()
