"""Task queue for attachment transfers.

This module provides:
- TransferTask: an upload or download request for one message
- TaskQueue: thread-safe unbounded FIFO queue

Any number of producer threads may put tasks; a single worker takes them
in submission order. There is no deduplication, priority or persistence:
a task lives only until the worker has processed it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from attachsync.core.errors import QueueClosedError
from attachsync.core.types import TransferType

if TYPE_CHECKING:
    from attachsync.core.model import TransferMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class TransferTask:
    """A transfer of the attachment of exactly one message.

    Attributes:
        kind: Direction of the transfer.
        message: The message whose attachment is transferred.
    """

    kind: TransferType
    message: TransferMessage

    @classmethod
    def upload(cls, message: TransferMessage) -> TransferTask:
        """Create an upload task."""
        return cls(TransferType.UPLOAD, message)

    @classmethod
    def download(cls, message: TransferMessage) -> TransferTask:
        """Create a download task."""
        return cls(TransferType.DOWNLOAD, message)

    def __repr__(self) -> str:
        return f"TransferTask({self.kind.name}, message={self.message.id})"


class TaskQueue:
    """Thread-safe unbounded FIFO queue of transfer tasks."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._not_empty = threading.Condition(self._lock)
        self._all_done = threading.Condition(self._lock)
        self._tasks: deque[TransferTask] = deque()
        self._unfinished = 0
        self._closed = False

    def put(self, task: TransferTask) -> bool:
        """Append a task. Never blocks.

        Args:
            task: The task to add

        Returns:
            True if the task was accepted, False if the queue is closed
        """
        with self._lock:
            if self._closed:
                logger.warning("Task queue closed, dropping %s", task)
                return False

            self._tasks.append(task)
            self._unfinished += 1
            self._not_empty.notify()
            logger.debug("Queued %s (queue size: %d)", task, len(self._tasks))
            return True

    def get(self, timeout: float | None = None) -> TransferTask | None:
        """Take the oldest task from the queue.

        Blocks until a task is available or timeout expires.

        Args:
            timeout: Maximum seconds to wait (None = wait forever)

        Returns:
            The oldest task, or None if timeout expired

        Raises:
            QueueClosedError: If the queue is closed
        """
        with self._not_empty:
            deadline = None if timeout is None else time.monotonic() + timeout

            while not self._tasks and not self._closed:
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._not_empty.wait(timeout=remaining)
                else:
                    self._not_empty.wait()

            if self._closed:
                raise QueueClosedError("Task queue is closed")

            task = self._tasks.popleft()
            logger.debug("Dequeued %s (queue size: %d)", task, len(self._tasks))
            return task

    def close(self) -> int:
        """Close the queue and wake up waiting threads.

        Pending tasks are discarded.

        Returns:
            Number of discarded tasks
        """
        with self._lock:
            self._closed = True
            dropped = len(self._tasks)
            self._tasks.clear()
            self._unfinished -= dropped
            self._not_empty.notify_all()
            self._all_done.notify_all()
            if dropped:
                logger.info("Task queue closed, %d pending tasks discarded", dropped)
            else:
                logger.debug("Task queue closed")
            return dropped

    def task_done(self) -> None:
        """Mark a task taken with get() as processed."""
        with self._lock:
            if self._unfinished <= 0:
                raise ValueError("task_done() called too many times")
            self._unfinished -= 1
            if self._unfinished == 0:
                self._all_done.notify_all()

    def join(self, timeout: float | None = None) -> bool:
        """Wait until every queued task has been processed.

        Args:
            timeout: Maximum seconds to wait (None = wait forever)

        Returns:
            True if all tasks are done, False if timeout expired
        """
        with self._all_done:
            return self._all_done.wait_for(lambda: self._unfinished == 0, timeout=timeout)

    def __len__(self) -> int:
        """Get number of pending tasks."""
        with self._lock:
            return len(self._tasks)

    @property
    def is_closed(self) -> bool:
        """Check if queue is closed."""
        return self._closed
