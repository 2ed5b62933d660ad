"""Attachment transfer queue, worker and orchestration.

Architecture:
    producers -> TaskQueue -> TransferWorker -> AttachmentUploader / AttachmentDownloader

Components:
- **TaskQueue**: Thread-safe FIFO of TransferTask objects
- **TransferWorker**: Single background thread consuming the queue
- **AttachmentUploader**: Resize, encrypt and upload outgoing attachments
- **AttachmentDownloader**: Download, decrypt and preview incoming attachments
- **PreviewStore**: Thumbnail creation and preview files
- **AttachmentDirs**: Attachment and preview directory layout
"""

from attachsync.client.transfer.download import AttachmentDownloader
from attachsync.client.transfer.preview import THUMBNAIL_DIM, THUMBNAIL_MIME, PreviewStore
from attachsync.client.transfer.queue import TaskQueue, TransferTask
from attachsync.client.transfer.storage import AttachmentDirs
from attachsync.client.transfer.upload import (
    ENCRYPT_MIME,
    RESIZED_IMG_MIME,
    AttachmentUploader,
)
from attachsync.client.transfer.worker import TransferWorker, WorkerState

__all__ = [
    # Constants
    "ENCRYPT_MIME",
    "RESIZED_IMG_MIME",
    "THUMBNAIL_DIM",
    "THUMBNAIL_MIME",
    # Queue
    "TaskQueue",
    "TransferTask",
    # Orchestration
    "AttachmentDirs",
    "AttachmentDownloader",
    "AttachmentUploader",
    "PreviewStore",
    # Worker
    "TransferWorker",
    "WorkerState",
]
