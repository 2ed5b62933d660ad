"""Background worker processing the transfer queue.

This module provides:
- WorkerState: Enum for worker lifecycle states
- TransferWorker: single thread taking tasks from a TaskQueue

Tasks are processed one at a time, in submission order. A slow transfer
blocks every task queued after it, uploads and downloads alike. Failed
tasks are logged and dropped, never retried.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum, auto
from typing import TYPE_CHECKING

from attachsync.core.errors import QueueClosedError
from attachsync.core.types import TransferType

if TYPE_CHECKING:
    from attachsync.client.transfer.download import AttachmentDownloader
    from attachsync.client.transfer.queue import TaskQueue, TransferTask
    from attachsync.client.transfer.upload import AttachmentUploader

logger = logging.getLogger(__name__)

THREAD_NAME = "Attachment Transfer"


class WorkerState(Enum):
    """State of the transfer worker."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


class TransferWorker:
    """Dedicated thread running uploads and downloads.

    Usage:
        worker = TransferWorker(queue, uploader, downloader)
        worker.start()
        queue.put(TransferTask.upload(message))
        worker.stop()
    """

    def __init__(
        self,
        queue: TaskQueue,
        uploader: AttachmentUploader,
        downloader: AttachmentDownloader,
    ) -> None:
        self._queue = queue
        self._uploader = uploader
        self._downloader = downloader
        self._state = WorkerState.STOPPED
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

        # Statistics
        self._processed_count = 0
        self._error_count = 0

    @property
    def state(self) -> WorkerState:
        """Get current worker state."""
        return self._state

    @property
    def processed_count(self) -> int:
        """Get number of tasks taken from the queue."""
        return self._processed_count

    @property
    def error_count(self) -> int:
        """Get number of tasks that raised an unexpected error."""
        return self._error_count

    def start(self) -> None:
        """Start the worker thread."""
        with self._lock:
            if self._state != WorkerState.STOPPED:
                logger.warning("Transfer worker already running")
                return
            if self._queue.is_closed:
                raise RuntimeError("Can't start worker on a closed queue")

            self._state = WorkerState.RUNNING
            self._thread = threading.Thread(
                target=self.run,
                name=THREAD_NAME,
                daemon=True,
            )
            self._thread.start()
            logger.info("Transfer worker started")

    def stop(self, timeout: float = 5.0) -> bool:
        """Stop the worker.

        Closes the queue, so no new tasks are accepted and pending tasks are
        dropped. A task already in progress is not interrupted; this waits
        at most timeout seconds for it.

        Returns:
            True if the worker thread has exited.
        """
        with self._lock:
            if self._state == WorkerState.STOPPED:
                return True
            self._state = WorkerState.STOPPING

        self._queue.close()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Transfer worker still busy after {timeout:.1f}s, not waiting")
                return False

        with self._lock:
            self._state = WorkerState.STOPPED
            self._thread = None
        logger.info("Transfer worker stopped")
        return True

    def run(self) -> None:
        """Main loop: take tasks until the queue is closed."""
        while True:
            try:
                # Blocking
                task = self._queue.get()
            except QueueClosedError:
                logger.debug("Queue closed, transfer worker exiting")
                break

            if task is None:
                continue
            try:
                self.process(task)
            finally:
                self._queue.task_done()

        with self._lock:
            self._state = WorkerState.STOPPED

    def process(self, task: TransferTask) -> None:
        """Process a single task.

        Unexpected errors are logged; they never stop the loop.
        """
        self._processed_count += 1
        logger.debug(f"Processing {task}")
        try:
            if task.kind == TransferType.UPLOAD:
                self._uploader.upload(task.message)
            elif task.kind == TransferType.DOWNLOAD:
                self._downloader.download(task.message)
            else:
                raise ValueError(f"Unknown transfer type: {task.kind}")
        except Exception:
            self._error_count += 1
            logger.exception(f"Task error: {task}")
