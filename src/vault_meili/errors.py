"""Exceptions raised by the sync engine and the Meilisearch boundary."""


class SyncError(Exception):
    """Base class for all sync failures reported to the user."""


class TransientRemoteError(SyncError):
    """A network or connection failure on a single remote call."""


class RemoteApiError(SyncError):
    """Meilisearch answered a request with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class TaskFailed(SyncError):
    """Meilisearch reported a submitted task as failed."""

    def __init__(self, task_uid: int, reason: str, code: str | None = None):
        super().__init__(f"Task {task_uid} failed: {reason}")
        self.task_uid = task_uid
        self.reason = reason
        self.code = code


class TaskTimeout(SyncError):
    """A task did not reach a terminal state within the polling budget.

    The real outcome is unknown: the remote change may still be applied later.
    """

    def __init__(self, task_uid: int, attempts: int):
        super().__init__(f"Task {task_uid} did not complete after {attempts} attempts")
        self.task_uid = task_uid
        self.attempts = attempts


class MetadataCorrupt(SyncError):
    """The persisted metadata file exists but cannot be read.

    Incremental syncs refuse to run until a full reindex rebuilds the file.
    """


class ParseWarning(UserWarning):
    """Malformed frontmatter. Recorded on the document, never raised."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message
