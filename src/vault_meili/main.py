"""Main entry point for the vault-meili MCP server."""

import argparse
import logging
import sys
from dataclasses import dataclass

from fastmcp import FastMCP

from vault_meili.config import Config
from vault_meili.errors import MetadataCorrupt
from vault_meili.indexer import Indexer, MeilisearchClient
from vault_meili.search import interactive_search
from vault_meili.sync import SyncManager
from vault_meili.tools import register_tools
from vault_meili.watcher import VaultWatcher

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived components shared by the server and the CLI."""

    client: MeilisearchClient
    indexer: Indexer
    manager: SyncManager
    watcher: VaultWatcher | None = None

    def shutdown(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
        self.manager.stop()
        self.client.close()


def create_services(config: Config, client: MeilisearchClient | None = None) -> Services:
    """Build and start the client, indexer, sync manager and watcher.

    Args:
        config: Configuration instance with all settings.
        client: Optional pre-built Meilisearch client.
    """
    client = client or MeilisearchClient(config)
    indexer = Indexer.from_config(config, client=client)

    logger.info("Connecting to Meilisearch at %s", config.meili_host)
    if not client.test_connection(indexer.waiter):
        logger.error("Failed to initialize Meilisearch. Check your settings.")

    metadata_ok = True
    try:
        indexer.load_metadata()
    except MetadataCorrupt as e:
        metadata_ok = False
        logger.error("%s. Run a full reindex to rebuild it.", e)

    manager = SyncManager(indexer, config.sync_interval)
    manager.start()

    if config.auto_index_on_startup and metadata_ok:
        logger.info("Queueing startup sync...")
        manager.request_sync()

    watcher = None
    if config.watch:
        watcher = VaultWatcher(config.vault_root, manager, config.watch_debounce_ms)
        watcher.start()
    else:
        logger.info("File watching disabled")

    return Services(client=client, indexer=indexer, manager=manager, watcher=watcher)


def create_server(config: Config, services: Services) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        config: Configuration instance with all settings.
        services: Running components the tools delegate to.
    """
    mcp = FastMCP(
        name="vault-meili",
        instructions=(
            "vault-meili keeps a Meilisearch index in sync with a vault of Markdown "
            "notes. Use the search tool to find notes, sync or reindex to refresh "
            "the index, and index_status to follow progress."
        ),
    )

    logger.info("Registering tools...")
    register_tools(mcp, config, services.client, services.manager)

    logger.info("Server configured successfully")
    return mcp


def run_search_prompt(config: Config) -> None:
    """Read queries from stdin and print debounced results."""
    client = MeilisearchClient(config)
    try:
        interactive_search(client)
    except KeyboardInterrupt:
        logger.info("Search stopped by user")
    finally:
        client.close()


def main() -> None:
    """Main function - starts the MCP server."""
    # Configure logging here to avoid side effects on import
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(
        description="vault-meili - keep a Meilisearch index in sync with a Markdown vault"
    )
    parser.add_argument(
        "--reindex",
        action="store_true",
        help="Force a full reindex before starting",
    )
    parser.add_argument(
        "--no-watch",
        action="store_true",
        help="Do not watch the vault for file changes",
    )
    parser.add_argument(
        "--search",
        action="store_true",
        help="Search the index interactively (one query per line) instead of serving",
    )
    args = parser.parse_args()

    try:
        config = Config.from_env()
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(2)
    if args.no_watch:
        config.watch = False

    if args.search:
        run_search_prompt(config)
        return

    # Print startup banner
    logger.info("=" * 50)
    logger.info("vault-meili starting...")
    logger.info("  VAULT_ROOT:     %s", config.vault_root)
    logger.info("  VAULT_METADATA: %s", config.metadata_path)
    logger.info("  VAULT_PORT:     %s", config.port)
    logger.info("  MEILI_HOST:     %s", config.meili_host)
    logger.info("  MEILI_INDEX:    %s", config.index_name)
    logger.info("  HYBRID:         %s", "enabled" if config.hybrid_search else "disabled")
    logger.info("  WATCH:          %s", "enabled" if config.watch else "disabled")
    logger.info("=" * 50)

    services = create_services(config)

    # Force reindex if requested (before server starts)
    if args.reindex:
        logger.info("Force reindex requested...")
        result = services.manager.request_reindex().result()
        if result.ok:
            logger.info("Reindex complete: %s", result.summary())
        else:
            logger.error("Reindex failed: %s", result.error)

    try:
        mcp = create_server(config, services)
        logger.info("Starting MCP server on port %s...", config.port)
        mcp.run(transport="sse", host="0.0.0.0", port=config.port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Server error")
        services.shutdown()
        sys.exit(1)
    services.shutdown()


if __name__ == "__main__":
    main()
