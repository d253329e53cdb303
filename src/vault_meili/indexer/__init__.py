"""
Indexer module for vault-meili.

This module keeps a Meilisearch index in sync with the Markdown files of a vault.
It is the core component of the system - if it works well, everything else fits.
"""

from vault_meili.indexer.client import MeilisearchClient, RemoteIndexClient
from vault_meili.indexer.indexer import Indexer, classify
from vault_meili.indexer.metadata import MetadataStore
from vault_meili.indexer.models import (
    ChangeSet,
    Document,
    Metadata,
    SearchHit,
    SearchResponse,
    SyncPhase,
    SyncProgress,
    SyncResult,
    TaskHandle,
    TaskInfo,
    TaskStatus,
)
from vault_meili.indexer.parser import make_document_id, parse_document, parse_frontmatter
from vault_meili.indexer.tasks import TaskWaiter
from vault_meili.indexer.walker import FileInfo, compute_hash, walk_vault

__all__ = [
    "ChangeSet",
    "Document",
    "FileInfo",
    "Indexer",
    "MeilisearchClient",
    "Metadata",
    "MetadataStore",
    "RemoteIndexClient",
    "SearchHit",
    "SearchResponse",
    "SyncPhase",
    "SyncProgress",
    "SyncResult",
    "TaskHandle",
    "TaskInfo",
    "TaskStatus",
    "TaskWaiter",
    "classify",
    "compute_hash",
    "make_document_id",
    "parse_document",
    "parse_frontmatter",
    "walk_vault",
]
