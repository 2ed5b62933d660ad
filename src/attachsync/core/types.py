"""Shared types for attachsync.

This module defines enums used by the message model, the crypto bridge
and the transfer worker.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class Encryption(Enum):
    """Encryption state of message content or an attachment file."""

    PLAIN = auto()  # Never encrypted
    DECRYPTED = auto()  # Plaintext, to be encrypted before sending
    ENCRYPTED = auto()  # Ciphertext


@dataclass(frozen=True)
class CoderStatus:
    """Encryption status of a message or an attachment."""

    encryption: Encryption = Encryption.PLAIN

    @property
    def is_encrypted(self) -> bool:
        """Check if the payload is currently ciphertext."""
        return self.encryption == Encryption.ENCRYPTED


class MessageStatus(str, Enum):
    """Transfer status of a message."""

    PENDING = "pending"
    SENT = "sent"
    RECEIVED = "received"
    ERROR = "error"


class TransferType(Enum):
    """Direction of an attachment transfer."""

    UPLOAD = auto()
    DOWNLOAD = auto()
