"""Upload of outgoing attachments.

This module provides:
- AttachmentUploader: resizes, encrypts and uploads the attachment of a message

Upload pipeline for one message:
    source file -> [resized temp file] -> [encrypted temp file] -> slot -> PUT

Every intermediate file is derived from the user's source file and removed
once the upload is over. The source file itself is never touched.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from attachsync.core.errors import TransferError
from attachsync.core.media import (
    extension_for_mime,
    is_image,
    read_image,
    scale_to_area,
    write_image,
)
from attachsync.core.types import Encryption, MessageStatus

if TYPE_CHECKING:
    from attachsync.client.api import FileTransferClient
    from attachsync.client.control import CryptoBridge, TransferControl
    from attachsync.client.transfer.storage import AttachmentDirs
    from attachsync.core.model import TransferMessage

logger = logging.getLogger(__name__)

RESIZED_IMG_MIME = "image/jpeg"
ENCRYPT_MIME = "application/octet-stream"
RESIZED_FILE_PREFIX = "attachsync_resized_img_att"


class _Payload:
    """The file to upload, tracking which files are derived temp files."""

    def __init__(self, original: Path, mime_type: str) -> None:
        self.original = original
        self.file = original
        self.mime_type = mime_type
        self._derived: list[Path] = []

    def replace(self, file: Path, mime_type: str) -> None:
        """Make a derived file the new payload."""
        self._derived.append(file)
        self.file = file
        self.mime_type = mime_type

    def discard_derived(self) -> None:
        """Delete derived temp files. The original file is never deleted."""
        for path in list(self._derived):
            if path == self.original:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Can't delete temporary file {path}: {e}")
            self._derived.remove(path)


class AttachmentUploader:
    """Uploads the attachment of an outgoing message.

    Usage:
        uploader = AttachmentUploader(control, client, coder, dirs, max_image_size)
        uploader.upload(message)
    """

    def __init__(
        self,
        control: TransferControl,
        client: FileTransferClient,
        coder: CryptoBridge,
        dirs: AttachmentDirs,
        max_image_size: int = 0,
    ) -> None:
        """Initialize the uploader.

        Args:
            control: Provides the identity key, receives failures and resend requests.
            client: Transfer client for slot requests and uploads.
            coder: Encrypts the payload.
            dirs: Directory layout for resolving relative attachment paths.
            max_image_size: Maximum pixel area of images, 0 disables resizing.
        """
        self._control = control
        self._client = client
        self._coder = coder
        self._dirs = dirs
        self._max_image_size = max_image_size

    def upload(self, message: TransferMessage) -> None:
        """Upload the attachment of a message.

        On success the message gets the download URL, MIME type and length
        of the uploaded payload. Failures abort the upload; only transport
        failures mark the message as erroneous.
        """
        attachment = message.content.attachment
        if attachment is None:
            logger.warning(f"No attachment in message {message.id} to upload")
            return

        payload = _Payload(self._dirs.absolute_file_path(attachment), attachment.mime_type)
        try:
            self._upload(message, payload, had_url=attachment.has_url)
        finally:
            payload.discard_derived()

    def _upload(self, message: TransferMessage, payload: _Payload, had_url: bool) -> None:
        if is_image(payload.mime_type) and self._max_image_size > 0:
            if not self._resize_image(payload):
                return

        # If text will be encrypted, always encrypt attachment too
        encrypt = message.coder_status.encryption == Encryption.DECRYPTED
        if encrypt and not self._encrypt(message, payload):
            return

        try:
            length = payload.file.stat().st_size
        except OSError as e:
            logger.warning(f"Can't read upload file {payload.file}: {e}")
            return

        try:
            slot = self._client.request_upload_slot(payload.file.name, length, payload.mime_type)
            self._client.upload(payload.file, slot.upload_url, payload.mime_type, encrypt)
        except TransferError as e:
            logger.warning(f"Upload failed, message {message.id}: {e}")
            message.set_status(MessageStatus.ERROR)
            self._control.report_failure(e)
            return

        payload.discard_derived()

        if not slot.download_url:
            logger.warning(f"Download URL empty for message {message.id}")
            return

        message.set_upload(slot.download_url, payload.mime_type, length)
        logger.info(f"Upload successful, URL={slot.download_url}")

        # Only resend re-uploads, a first upload is sent by the caller
        if had_url:
            self._control.resend_message(message)

    def _resize_image(self, payload: _Payload) -> bool:
        """Scale the image down if it exceeds the maximum pixel area.

        Returns:
            False if the upload must be aborted.
        """
        image = read_image(payload.file)
        if image is None:
            logger.warning(f"Can't load image {payload.file}")
            return False

        if image.width * image.height <= self._max_image_size:
            return True

        resized = scale_to_area(image, self._max_image_size)
        try:
            fd, name = tempfile.mkstemp(prefix=RESIZED_FILE_PREFIX, suffix=".dat")
            os.close(fd)
        except OSError as e:
            logger.warning(f"Can't create temporary file: {e}")
            return False

        payload.replace(Path(name), RESIZED_IMG_MIME)
        if not write_image(resized, extension_for_mime(RESIZED_IMG_MIME), payload.file):
            return False

        logger.info(
            f"Resized image {image.width}x{image.height} -> {resized.width}x{resized.height}"
        )
        return True

    def _encrypt(self, message: TransferMessage, payload: _Payload) -> bool:
        """Encrypt the payload with the identity key.

        Returns:
            False if the upload must be aborted.
        """
        key = self._control.current_identity_key()
        if key is None:
            logger.warning(f"No identity key, can't encrypt attachment of message {message.id}")
            return False

        encrypted = self._coder.encrypt_attachment(key, message, payload.file)
        payload.discard_derived()
        if encrypted is None:
            logger.warning(f"Encryption failed for attachment of message {message.id}")
            return False

        payload.replace(encrypted, ENCRYPT_MIME)
        return True
