"""
vault-meili - keep a Meilisearch index in sync with a Markdown vault.

Watches a folder of Markdown notes and pushes new, modified and deleted
files to Meilisearch, remembering what was already sent so restarts stay cheap.

Stack:
- Python + httpx (Meilisearch REST API)
- PyYAML (frontmatter)
- watchfiles (file events)
- FastMCP (search / reindex tools)
"""

__version__ = "0.1.0"
