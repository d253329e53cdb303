"""Waiting on asynchronous Meilisearch tasks."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from vault_meili.errors import RemoteApiError, TaskFailed, TaskTimeout, TransientRemoteError
from vault_meili.indexer.models import TaskHandle, TaskInfo, TaskStatus

if TYPE_CHECKING:
    from vault_meili.indexer.client import RemoteIndexClient

logger = logging.getLogger(__name__)


class TaskWaiter:
    """
    Polls a task until it succeeds, fails, or the attempt budget runs out.

    Each status lookup counts as one attempt, including lookups that fail
    with a network or API error; those are treated as "still pending". The
    worst-case wait is therefore ``poll_interval * max_attempts``.
    """

    def __init__(
        self,
        client: RemoteIndexClient,
        poll_interval: float = 1.0,
        max_attempts: int = 600,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if poll_interval < 0:
            raise ValueError(f"Poll interval must be >= 0, got {poll_interval}")
        if max_attempts <= 0:
            raise ValueError(f"Max attempts must be positive, got {max_attempts}")

        self._client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    def wait(self, handle: TaskHandle) -> TaskInfo:
        """
        Block until the task reaches a terminal state.

        Raises:
            TaskFailed: Meilisearch reported the task as failed.
            TaskTimeout: No terminal state after max_attempts polls.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                info = self._client.status(handle)
            except (TransientRemoteError, RemoteApiError) as e:
                logger.warning(
                    "Error checking task %d (attempt %d/%d): %s",
                    handle.uid,
                    attempt,
                    self.max_attempts,
                    e,
                )
            else:
                if info.status is TaskStatus.SUCCEEDED:
                    logger.debug("Task %d succeeded after %d attempts", handle.uid, attempt)
                    return info
                if info.status is TaskStatus.FAILED:
                    reason = info.error_message or "Unknown error"
                    logger.error("Task %d failed: %s", handle.uid, reason)
                    raise TaskFailed(handle.uid, reason, info.error_code)

            if attempt < self.max_attempts:
                self._sleep(self.poll_interval)

        raise TaskTimeout(handle.uid, self.max_attempts)
