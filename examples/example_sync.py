"""Example one-shot sync of a vault, without the MCP server.

Reads the same environment variables as the server (VAULT_ROOT, MEILI_HOST, ...).
Run with: uv run python examples/example_sync.py [--full]
"""

import logging
import sys

from vault_meili.config import Config
from vault_meili.indexer import Indexer, MeilisearchClient


def report(progress):
    print(f"\r{progress.describe():<40}", end="", flush=True)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)

    config = Config.from_env()
    client = MeilisearchClient(config)
    indexer = Indexer.from_config(config, client=client, on_progress=report)

    if not client.test_connection(indexer.waiter):
        print(f"Cannot reach Meilisearch at {config.meili_host}")
        sys.exit(1)

    try:
        if "--full" in sys.argv:
            result = indexer.reindex()
        else:
            result = indexer.sync()
    finally:
        client.close()

    print()
    if result.ok:
        print(f"Done: {result.summary()}")
    else:
        print(f"Failed: {result.error}")
        sys.exit(1)
