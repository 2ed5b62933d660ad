"""Attachment manager: entry point for attachment transfers.

Wires the task queue, the transfer worker and the upload/download
orchestrators together for one application directory.

Usage:
    manager = AttachmentManager.create(control, client, app_dir, config)
    manager.queue_upload(message)
    ...
    manager.stop()
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from attachsync.client.transfer import (
    AttachmentDirs,
    AttachmentDownloader,
    AttachmentUploader,
    PreviewStore,
    TaskQueue,
    TransferTask,
    TransferWorker,
)
from attachsync.core.config import TransferConfig
from attachsync.core.crypto import AttachmentCoder
from attachsync.core.media import mime_for_file
from attachsync.core.model import Attachment

if TYPE_CHECKING:
    from attachsync.client.api import FileTransferClient
    from attachsync.client.control import CryptoBridge, TransferControl
    from attachsync.core.model import TransferMessage

logger = logging.getLogger(__name__)

MAX_ATT_SIZE = 20 * 1024 * 1024


class AttachmentManager:
    """Up- and download service for attachment files.

    Also takes care of encrypting and decrypting attachments and of
    creating image previews.
    """

    def __init__(
        self,
        dirs: AttachmentDirs,
        queue: TaskQueue,
        worker: TransferWorker,
        previews: PreviewStore,
    ) -> None:
        """Initialize the manager (use create() instead)."""
        self._dirs = dirs
        self._queue = queue
        self._worker = worker
        self._previews = previews

    @classmethod
    def create(
        cls,
        control: TransferControl,
        client: FileTransferClient,
        app_dir: Path,
        config: TransferConfig | None = None,
        coder: CryptoBridge | None = None,
    ) -> AttachmentManager:
        """Create the directories and start the transfer worker.

        Args:
            control: Key provider, failure sink and message sender.
            client: Transfer client for the file-hosting service.
            app_dir: Application base directory.
            config: Transfer settings (max image size).
            coder: Crypto bridge, defaults to AES-GCM AttachmentCoder.

        Raises:
            OSError: If the directories can't be created.
        """
        config = config or TransferConfig()
        coder = coder or AttachmentCoder()

        dirs = AttachmentDirs.create(app_dir)
        queue = TaskQueue()
        previews = PreviewStore(dirs)
        uploader = AttachmentUploader(control, client, coder, dirs, config.max_image_size)
        downloader = AttachmentDownloader(control, client, coder, dirs, previews)
        worker = TransferWorker(queue, uploader, downloader)

        manager = cls(dirs, queue, worker, previews)
        worker.start()
        return manager

    @property
    def dirs(self) -> AttachmentDirs:
        """Get the directory layout."""
        return self._dirs

    @property
    def attachment_dir(self) -> Path:
        """Get the attachment directory."""
        return self._dirs.attachment_dir

    @property
    def preview_dir(self) -> Path:
        """Get the preview directory."""
        return self._dirs.preview_dir

    @property
    def pending_count(self) -> int:
        """Get number of queued tasks."""
        return len(self._queue)

    def queue_upload(self, message: TransferMessage) -> None:
        """Queue the attachment of an outgoing message for upload."""
        if not self._queue.put(TransferTask.upload(message)):
            logger.warning(f"Can't add upload of message {message.id} to queue")

    def queue_download(self, message: TransferMessage) -> None:
        """Queue the attachment of an incoming message for download."""
        if not self._queue.put(TransferTask.download(message)):
            logger.warning(f"Can't add download of message {message.id} to queue")

    def save_preview(self, message: TransferMessage) -> None:
        """Save a preview received with the message."""
        self._previews.save_preview(message)

    def may_create_image_preview(self, message: TransferMessage) -> bool:
        """Create a preview for an image attachment if it is large enough."""
        return self._previews.may_create_image_preview(message)

    def absolute_file_path(self, attachment: Attachment) -> Path:
        """Resolve the file path of an attachment against the attachment directory."""
        return self._dirs.absolute_file_path(attachment)

    def image_preview_path(self, message: TransferMessage) -> Path | None:
        """Get the preview file of a message, None if it has no image preview."""
        return self._dirs.image_preview_path(message)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait until all queued transfers have been processed.

        Returns:
            True if the queue is idle, False if timeout expired.
        """
        return self._queue.join(timeout=timeout)

    def stop(self, timeout: float = 5.0) -> bool:
        """Stop the transfer worker, dropping queued tasks.

        Returns:
            True if the worker exited within timeout.
        """
        return self._worker.stop(timeout=timeout)


def create_attachment(path: Path) -> Attachment | None:
    """Create a new attachment for a file.

    Returns:
        The attachment, or None if the file is not readable, too large or
        its MIME type can't be determined.
    """
    if not path.is_file() or not os.access(path, os.R_OK):
        logger.warning(f"File not readable: {path}")
        return None

    size = path.stat().st_size
    if size > MAX_ATT_SIZE:
        logger.warning(f"File too large ({size} bytes): {path}")
        return None

    mime = mime_for_file(path)
    if not mime:
        logger.warning(f"No MIME type for file: {path}")
        return None

    return Attachment(file_path=path, mime_type=mime)
