"""Collaborator protocols for the transfer service.

The transfer service never owns key material or sends messages itself.
It reaches the rest of the client through these interfaces.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from attachsync.core.crypto import IdentityKey
    from attachsync.core.model import TransferMessage


class TransferControl(Protocol):
    """Mediates key access, error reporting and resend requests."""

    def current_identity_key(self) -> IdentityKey | None:
        """Get the active identity key, None if not available."""
        ...

    def report_failure(self, error: Exception) -> None:
        """Report a transfer failure to the user."""
        ...

    def resend_message(self, message: TransferMessage) -> None:
        """Send a message (again) after its attachment was uploaded."""
        ...


class CryptoBridge(Protocol):
    """Encrypts and decrypts attachment files."""

    def encrypt_attachment(
        self, key: IdentityKey, message: TransferMessage, file: Path
    ) -> Path | None:
        """Encrypt file into a new file, None on failure."""
        ...

    def decrypt_attachment(
        self, key: IdentityKey, message: TransferMessage, directory: Path
    ) -> None:
        """Decrypt the message attachment in place. Failures are only logged."""
        ...
