"""Attachment encryption for attachsync.

This module provides:
- Authenticated encryption using AES-256-GCM
- Whole-file encryption/decryption of attachments (AttachmentCoder)

Key material is supplied by the caller; nothing here generates or stores
identity keys.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from attachsync.core.errors import CryptoError

if TYPE_CHECKING:
    from attachsync.core.model import TransferMessage

logger = logging.getLogger(__name__)

# AES-GCM constants
KEY_SIZE = 32  # 256 bits
NONCE_SIZE = 12  # 96 bits (recommended for AES-GCM)

ENCRYPTED_FILE_PREFIX = "attachsync_enc_att"


@dataclass(frozen=True)
class IdentityKey:
    """Active identity key of the local user.

    Attributes:
        key: 32-byte symmetric key for attachment encryption.
    """

    key: bytes

    def __post_init__(self) -> None:
        if len(self.key) != KEY_SIZE:
            raise CryptoError(f"Identity key must be {KEY_SIZE} bytes, got {len(self.key)}")

    @classmethod
    def from_base64(cls, encoded: str) -> IdentityKey:
        """Load a key from its base64 representation."""
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError(f"Invalid identity key encoding: {e}") from e
        return cls(key=raw)

    def __repr__(self) -> str:
        return "IdentityKey(key=<redacted>)"


def encrypt_bytes(data: bytes, key: bytes) -> bytes:
    """Encrypt data using AES-256-GCM with a random nonce.

    Args:
        data: Plaintext data to encrypt.
        key: 32-byte encryption key.

    Returns:
        Encrypted data in format: nonce (12 bytes) || ciphertext || auth_tag (16 bytes)
    """
    nonce = os.urandom(NONCE_SIZE)
    aesgcm = AESGCM(key)
    ciphertext = aesgcm.encrypt(nonce, data, None)
    return nonce + ciphertext


def decrypt_bytes(encrypted: bytes, key: bytes) -> bytes:
    """Decrypt data encrypted with encrypt_bytes.

    Args:
        encrypted: Data in format: nonce (12 bytes) || ciphertext || auth_tag (16 bytes)
        key: 32-byte encryption key.

    Returns:
        Decrypted plaintext data.

    Raises:
        cryptography.exceptions.InvalidTag: If authentication fails (wrong key or tampered data).
    """
    nonce = encrypted[:NONCE_SIZE]
    ciphertext = encrypted[NONCE_SIZE:]
    aesgcm = AESGCM(key)
    return aesgcm.decrypt(nonce, ciphertext, None)


class AttachmentCoder:
    """Encrypts outgoing and decrypts incoming attachment files."""

    def encrypt_attachment(
        self,
        key: IdentityKey,
        message: TransferMessage,
        file: Path,
    ) -> Path | None:
        """Encrypt a file into a new temporary file.

        The source file is left untouched.

        Args:
            key: Identity key to encrypt with.
            message: Message owning the attachment (for logging).
            file: Plaintext file.

        Returns:
            Path of the encrypted temporary file, or None on failure.
        """
        try:
            plaintext = file.read_bytes()
        except OSError as e:
            logger.warning(f"Can't read attachment of message {message.id}: {e}")
            return None

        fd, name = tempfile.mkstemp(prefix=ENCRYPTED_FILE_PREFIX, suffix=".dat")
        encrypted_path = Path(name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(encrypt_bytes(plaintext, key.key))
        except OSError as e:
            logger.warning(f"Can't write encrypted attachment of message {message.id}: {e}")
            encrypted_path.unlink(missing_ok=True)
            return None

        logger.debug("Encrypted attachment of message %d to %s", message.id, encrypted_path)
        return encrypted_path

    def decrypt_attachment(
        self,
        key: IdentityKey,
        message: TransferMessage,
        directory: Path,
    ) -> None:
        """Decrypt a downloaded attachment in place.

        Failures are logged; the encrypted file is kept and the attachment
        stays marked as encrypted.

        Args:
            key: Identity key to decrypt with.
            message: Message whose attachment file should be decrypted.
            directory: Directory holding the attachment file.
        """
        attachment = message.content.attachment
        if attachment is None:
            logger.warning(f"No attachment to decrypt in message {message.id}")
            return

        path = directory / attachment.file_path
        try:
            plaintext = decrypt_bytes(path.read_bytes(), key.key)
        except InvalidTag:
            logger.warning(f"Can't decrypt attachment {path}: authentication failed")
            return
        except OSError as e:
            logger.warning(f"Can't read encrypted attachment {path}: {e}")
            return

        fd, name = tempfile.mkstemp(prefix=".decrypt_", dir=directory)
        tmp_path = Path(name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(plaintext)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.warning(f"Can't write decrypted attachment {path}: {e}")
            tmp_path.unlink(missing_ok=True)
            return

        message.set_attachment_decrypted()
        logger.info(f"Decrypted attachment {path}")
