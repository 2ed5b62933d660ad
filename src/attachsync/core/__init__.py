"""Core module - Shared model, crypto, media and configuration."""

from attachsync.core.config import TransferConfig
from attachsync.core.crypto import (
    AttachmentCoder,
    IdentityKey,
    decrypt_bytes,
    encrypt_bytes,
)
from attachsync.core.errors import (
    AttachmentError,
    CryptoError,
    MediaError,
    QueueClosedError,
    TransferError,
)
from attachsync.core.model import (
    Attachment,
    ChatMessage,
    MessageContent,
    Preview,
    TransferMessage,
)
from attachsync.core.types import CoderStatus, Encryption, MessageStatus, TransferType

__all__ = [
    # Config
    "TransferConfig",
    # Crypto
    "AttachmentCoder",
    "IdentityKey",
    "decrypt_bytes",
    "encrypt_bytes",
    # Errors
    "AttachmentError",
    "CryptoError",
    "MediaError",
    "QueueClosedError",
    "TransferError",
    # Model
    "Attachment",
    "ChatMessage",
    "MessageContent",
    "Preview",
    "TransferMessage",
    # Types
    "CoderStatus",
    "Encryption",
    "MessageStatus",
    "TransferType",
]
