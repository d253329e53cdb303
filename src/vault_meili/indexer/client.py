"""Meilisearch boundary: document submission, task lookup and search.

Every response is mapped to the typed models in ``indexer.models`` here, so
the rest of the package never touches raw Meilisearch JSON.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from vault_meili.config import Config
from vault_meili.errors import RemoteApiError, TransientRemoteError
from vault_meili.indexer.models import (
    Document,
    SearchHit,
    SearchResponse,
    TaskHandle,
    TaskInfo,
    TaskStatus,
)

if TYPE_CHECKING:
    from vault_meili.indexer.tasks import TaskWaiter

logger = logging.getLogger(__name__)

SEARCHABLE_ATTRIBUTES = ["name", "content", "frontmatter"]
FILTERABLE_ATTRIBUTES = ["path"]
RETRIEVED_ATTRIBUTES = ["id", "name", "path", "content", "frontmatter"]

EMBEDDER_NAME = "default"
EMBEDDER_SETTINGS = {
    "source": "huggingFace",
    "model": "Lajavaness/bilingual-embedding-small",
    "documentTemplate": "{{doc.name}}\n{{doc.content}}",
}

# Meilisearch task statuses mapped onto the three states the engine knows
_TASK_STATUS_MAP = {
    "enqueued": TaskStatus.PENDING,
    "processing": TaskStatus.PENDING,
    "succeeded": TaskStatus.SUCCEEDED,
    "failed": TaskStatus.FAILED,
    "canceled": TaskStatus.FAILED,
}


class RemoteIndexClient(Protocol):
    """Operations the sync engine needs from the remote index."""

    def add_or_update(self, documents: Sequence[Document]) -> TaskHandle: ...

    def delete(self, remote_ids: Sequence[str]) -> TaskHandle: ...

    def clear(self) -> TaskHandle: ...

    def status(self, handle: TaskHandle) -> TaskInfo: ...


class MeilisearchClient:
    """
    Thin synchronous client for the Meilisearch REST API.

    Submissions return as soon as Meilisearch has enqueued the task; use a
    TaskWaiter to know when the change is visible.
    """

    def __init__(self, config: Config, http_client: httpx.Client | None = None):
        """
        Args:
            config: Connection and search settings.
            http_client: Pre-built client, mainly for tests. When omitted one is
                created from the config and owned by this instance.
        """
        self._config = config
        self.index_name = config.index_name
        headers = {"Content-Type": "application/json"}
        if config.meili_api_key:
            headers["Authorization"] = f"Bearer {config.meili_api_key}"

        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.Client(
                base_url=config.meili_host,
                timeout=config.request_timeout,
            )
        http_client.headers.update(headers)
        self._http = http_client

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    # Low level

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientRemoteError(f"{method} {url} timed out") from e
        except httpx.RequestError as e:
            raise TransientRemoteError(f"{method} {url} failed: {e}") from e

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        code = None
        message = response.text[:200]
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or message
        raise RemoteApiError(
            f"HTTP {response.status_code}: {message}",
            status_code=response.status_code,
            code=code,
        )

    def _index_url(self, suffix: str = "") -> str:
        return f"/indexes/{self.index_name}{suffix}"

    @staticmethod
    def _handle(body: Any) -> TaskHandle:
        if not isinstance(body, dict) or not isinstance(body.get("taskUid"), int):
            raise RemoteApiError(f"Response carries no task uid: {body!r}")
        return TaskHandle(uid=body["taskUid"])

    # Document operations

    def add_or_update(self, documents: Sequence[Document]) -> TaskHandle:
        """Upsert documents keyed by id."""
        payload = [doc.to_payload() for doc in documents]
        body = self._request(
            "POST",
            self._index_url("/documents"),
            params={"primaryKey": "id"},
            json=payload,
        )
        handle = self._handle(body)
        logger.debug("Enqueued upsert of %d documents as task %d", len(payload), handle.uid)
        return handle

    def delete(self, remote_ids: Sequence[str]) -> TaskHandle:
        body = self._request(
            "POST",
            self._index_url("/documents/delete-batch"),
            json=list(remote_ids),
        )
        handle = self._handle(body)
        logger.debug("Enqueued deletion of %d documents as task %d", len(remote_ids), handle.uid)
        return handle

    def clear(self) -> TaskHandle:
        body = self._request("DELETE", self._index_url("/documents"))
        handle = self._handle(body)
        logger.debug("Enqueued index clear as task %d", handle.uid)
        return handle

    def status(self, handle: TaskHandle) -> TaskInfo:
        body = self._request("GET", f"/tasks/{handle.uid}")
        if not isinstance(body, dict):
            raise RemoteApiError(f"Unexpected task payload for task {handle.uid}")

        raw_status = body.get("status")
        status = _TASK_STATUS_MAP.get(raw_status)
        if status is None:
            raise RemoteApiError(f"Unknown status {raw_status!r} for task {handle.uid}")

        error = body.get("error") or {}
        if raw_status == "canceled" and not error:
            error = {"message": "Task was canceled"}
        return TaskInfo(
            uid=handle.uid,
            status=status,
            error_message=error.get("message") if isinstance(error, dict) else str(error),
            error_code=error.get("code") if isinstance(error, dict) else None,
        )

    # Index setup

    def health(self) -> bool:
        body = self._request("GET", "/health")
        return isinstance(body, dict) and body.get("status") == "available"

    def ensure_index(self, waiter: "TaskWaiter | None" = None) -> None:
        """
        Create the index if needed and apply its settings.

        Args:
            waiter: Optional TaskWaiter used to wait for index creation.
        """
        try:
            self._request("GET", self._index_url())
        except RemoteApiError as e:
            if e.code != "index_not_found":
                raise
            logger.info("Creating Meilisearch index %s", self.index_name)
            body = self._request(
                "POST", "/indexes", json={"uid": self.index_name, "primaryKey": "id"}
            )
            if waiter is not None:
                waiter.wait(self._handle(body))

        self._request(
            "PUT",
            self._index_url("/settings/searchable-attributes"),
            json=SEARCHABLE_ATTRIBUTES,
        )
        self._request(
            "PUT",
            self._index_url("/settings/filterable-attributes"),
            json=FILTERABLE_ATTRIBUTES,
        )
        self._configure_embedders()

    def _configure_embedders(self) -> None:
        # Embedders are optional: a failure here leaves keyword search working
        try:
            if self._config.hybrid_search:
                self._request(
                    "PATCH",
                    self._index_url("/settings"),
                    json={"embedders": {EMBEDDER_NAME: EMBEDDER_SETTINGS}},
                )
            else:
                self._request("DELETE", self._index_url("/settings/embedders"))
        except (RemoteApiError, TransientRemoteError) as e:
            logger.warning("Failed to configure embedders: %s", e)

    def test_connection(self, waiter: "TaskWaiter | None" = None) -> bool:
        """Check the server is reachable and the index usable."""
        try:
            if not self.health():
                logger.warning("Meilisearch at %s is not available", self._config.meili_host)
                return False
            self.ensure_index(waiter)
        except (RemoteApiError, TransientRemoteError) as e:
            logger.error("Failed to connect to Meilisearch: %s", e)
            return False
        return True

    # Search

    def search(
        self,
        query: str,
        limit: int = 20,
        attributes_to_highlight: Iterable[str] = ("name", "content"),
        attributes_to_crop: Iterable[str] | None = None,
        crop_length: int | None = None,
        show_ranking_score: bool = False,
    ) -> SearchResponse:
        params: dict[str, Any] = {
            "q": query,
            "limit": limit,
            "attributesToHighlight": list(attributes_to_highlight),
            "attributesToRetrieve": RETRIEVED_ATTRIBUTES,
        }
        if attributes_to_crop:
            params["attributesToCrop"] = list(attributes_to_crop)
        if crop_length is not None:
            params["cropLength"] = crop_length
        if show_ranking_score:
            params["showRankingScore"] = True
        if self._config.hybrid_search:
            params["hybrid"] = {
                "embedder": EMBEDDER_NAME,
                "semanticRatio": self._config.semantic_ratio,
            }

        body = self._request("POST", self._index_url("/search"), json=params)
        return _to_search_response(query, body)


def _to_search_response(query: str, body: Any) -> SearchResponse:
    if not isinstance(body, dict):
        raise RemoteApiError("Unexpected search payload")

    hits = []
    for hit in body.get("hits") or []:
        if not isinstance(hit, dict):
            continue
        hits.append(
            SearchHit(
                id=str(hit.get("id", "")),
                name=hit.get("name") or "",
                path=hit.get("path") or "",
                content=hit.get("content") or "",
                frontmatter=hit.get("frontmatter") or {},
                ranking_score=hit.get("_rankingScore"),
                formatted=hit.get("_formatted") or {},
            )
        )

    return SearchResponse(
        query=query,
        hits=hits,
        processing_time_ms=body.get("processingTimeMs") or 0,
        estimated_total_hits=body.get("estimatedTotalHits"),
    )
