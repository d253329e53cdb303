"""MCP tools for the vault-meili server.

This module defines the tools exposed by the MCP server:
- search: Full-text (or hybrid) search through Meilisearch
- reindex: Clear the index and upload every vault file
- sync: Incremental sync of new, modified and deleted files
- test_connection: Check Meilisearch is reachable and the index usable
- index_status: Current indexing progress
"""

import logging

from fastmcp import FastMCP

from vault_meili.config import Config
from vault_meili.errors import SyncError
from vault_meili.indexer import MeilisearchClient, TaskWaiter
from vault_meili.sync import SyncManager

logger = logging.getLogger(__name__)


def _wait_for(future, action: str) -> dict:
    try:
        result = future.result()
    except SyncError as e:
        logger.error("%s failed: %s", action, e)
        return {"ok": False, "error": str(e)}
    return result.to_dict()


def register_tools(
    mcp: FastMCP,
    config: Config,
    client: MeilisearchClient,
    manager: SyncManager,
) -> None:
    """Register all tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        config: Configuration instance
        client: Meilisearch client used for searches and connection tests
        manager: Sync manager that runs every indexing request
    """

    @mcp.tool()
    def search(query: str, limit: int = 20) -> list[dict]:
        """Search the vault.

        Ranking is done by Meilisearch; when hybrid search is enabled the
        results blend keyword and semantic matches.

        Args:
            query: Search query
            limit: Maximum number of results to return (default: 20)

        Returns:
            List of results with:
            - id: Document id in the index
            - name: File name without extension
            - path: Path relative to the vault root
            - snippet: Cropped content with matches highlighted
            - score: Ranking score (0-1, higher is better)
        """
        if not query.strip():
            return []
        try:
            response = client.search(
                query,
                limit=limit,
                attributes_to_highlight=("name", "content"),
                attributes_to_crop=("content",),
                crop_length=100,
                show_ranking_score=True,
            )
        except SyncError as e:
            logger.error("Search failed: %s", e)
            return [{"error": str(e)}]

        return [
            {
                "id": hit.id,
                "name": hit.name,
                "path": hit.path,
                "snippet": hit.snippet,
                "score": round(hit.ranking_score, 3) if hit.ranking_score is not None else None,
            }
            for hit in response.hits
        ]

    @mcp.tool()
    def reindex() -> dict:
        """Force a full re-index: clear the index, then upload every file.

        Also the way to recover when the local metadata file is corrupt.
        """
        logger.info("Full reindex requested")
        return _wait_for(manager.request_reindex(), "Full reindex")

    @mcp.tool()
    def sync() -> dict:
        """Index new or modified files and remove deleted ones."""
        return _wait_for(manager.request_sync(), "Incremental sync")

    @mcp.tool()
    def test_connection() -> dict:
        """Test the connection to Meilisearch."""
        waiter = TaskWaiter(
            client,
            poll_interval=config.task_poll_interval,
            max_attempts=config.task_max_attempts,
        )
        connected = client.test_connection(waiter)
        return {
            "connected": connected,
            "host": config.meili_host,
            "index": config.index_name,
        }

    @mcp.tool()
    def index_status() -> dict:
        """Report the current indexing status."""
        progress = manager.indexer.progress
        return {
            "status": progress.status,
            "phase": progress.phase.value,
            "description": progress.describe(),
            "total": progress.total,
            "processed": progress.processed,
            "current_item": progress.current_item,
            "error": progress.error,
            "indexed_documents": len(manager.indexer.metadata),
            "busy": manager.is_busy,
        }
