"""Exception hierarchy for attachsync."""

from __future__ import annotations


class AttachmentError(Exception):
    """Base exception for attachment errors."""


class TransferError(AttachmentError):
    """Upload or download failed at the transport level."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MediaError(AttachmentError):
    """Image could not be decoded or encoded."""


class CryptoError(AttachmentError):
    """Attachment could not be encrypted or decrypted."""


class QueueClosedError(AttachmentError):
    """Raised when waiting on a queue that has been closed."""
