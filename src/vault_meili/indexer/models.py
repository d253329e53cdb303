"""Data models for the indexer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class Document:
    """A parsed vault file, ready to be sent to Meilisearch."""

    id: str
    name: str
    path: str  # Relative to the vault root
    frontmatter: dict[str, Any] = field(default_factory=dict)
    content: str = ""
    hash: str = ""  # Of the full original bytes, frontmatter included
    parse_warnings: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Remote document body."""
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "frontmatter": self.frontmatter,
            "content": self.content,
        }


@dataclass
class Metadata:
    """Last confirmed sync state of one vault file."""

    path: str
    hash: str
    remote_id: str
    indexed_at: int  # Epoch milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "hash": self.hash,
            "remoteId": self.remote_id,
            "indexedAt": self.indexed_at,
        }


class SyncPhase(str, Enum):
    """Phases of one reconciliation cycle."""

    IDLE = "idle"
    SCANNING = "scanning"
    DIFFING = "diffing"
    SUBMITTING = "submitting"
    WAITING = "waiting"
    PERSISTING = "persisting"
    ERROR = "error"


@dataclass
class SyncProgress:
    """Transient progress of the running cycle. Never persisted."""

    status: str = "idle"  # idle, indexing, error
    phase: SyncPhase = SyncPhase.IDLE
    total: int = 0
    processed: int = 0
    current_item: str | None = None
    error: str | None = None

    def describe(self) -> str:
        if self.status == "indexing":
            return f"Indexing ({self.processed}/{self.total})"
        if self.status == "error":
            return f"Error: {self.error or 'Unknown error'}"
        return "Idle"


@dataclass
class ChangeSet:
    """Paths classified by comparing current hashes with stored metadata."""

    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)


@dataclass
class SyncResult:
    """Outcome of one reconciliation cycle."""

    mode: str  # incremental, full, file, delete
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        return (
            f"{len(self.added)} added, {len(self.updated)} updated, "
            f"{len(self.deleted)} removed"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "ok": self.ok,
            "added": self.added,
            "updated": self.updated,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "error": self.error,
        }


class TaskStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskHandle:
    """Reference to an enqueued Meilisearch task."""

    uid: int


@dataclass
class TaskInfo:
    """Typed view of a Meilisearch task lookup."""

    uid: int
    status: TaskStatus
    error_message: str | None = None
    error_code: str | None = None


@dataclass
class SearchHit:
    """One search result."""

    id: str
    name: str
    path: str
    content: str = ""
    frontmatter: dict[str, Any] = field(default_factory=dict)
    ranking_score: float | None = None
    formatted: dict[str, Any] = field(default_factory=dict)

    @property
    def snippet(self) -> str:
        """Highlighted, cropped content when available, else the start of the body."""
        return self.formatted.get("content") or self.content[:200]


@dataclass
class SearchResponse:
    query: str
    hits: list[SearchHit] = field(default_factory=list)
    processing_time_ms: int = 0
    estimated_total_hits: int | None = None
