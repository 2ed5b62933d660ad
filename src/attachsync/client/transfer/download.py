"""Download of incoming attachments.

This module provides:
- AttachmentDownloader: downloads, decrypts and previews the attachment of a message
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from attachsync.core.errors import TransferError

if TYPE_CHECKING:
    from attachsync.client.api import FileTransferClient
    from attachsync.client.control import CryptoBridge, TransferControl
    from attachsync.client.transfer.preview import PreviewStore
    from attachsync.client.transfer.storage import AttachmentDirs
    from attachsync.core.model import TransferMessage

logger = logging.getLogger(__name__)


class AttachmentDownloader:
    """Downloads the attachment of an incoming message.

    Usage:
        downloader = AttachmentDownloader(control, client, coder, dirs, previews)
        downloader.download(message)
    """

    def __init__(
        self,
        control: TransferControl,
        client: FileTransferClient,
        coder: CryptoBridge,
        dirs: AttachmentDirs,
        previews: PreviewStore,
    ) -> None:
        """Initialize the downloader.

        Args:
            control: Provides the identity key and receives failures.
            client: Transfer client for downloads.
            coder: Decrypts encrypted attachments.
            dirs: Directory layout, files are saved to the attachment directory.
            previews: Creates previews for downloaded images.
        """
        self._control = control
        self._client = client
        self._coder = coder
        self._dirs = dirs
        self._previews = previews

    def download(self, message: TransferMessage) -> None:
        """Download the attachment of a message into the attachment directory."""
        attachment = message.content.attachment
        if attachment is None:
            logger.warning(f"No attachment in message {message.id} to download")
            return

        last_percent = -1

        def on_progress(percent: int) -> None:
            nonlocal last_percent
            percent = max(0, min(100, percent))
            if percent > last_percent:
                last_percent = percent
                message.set_download_progress(percent)

        try:
            path = self._client.download(attachment.url, self._dirs.attachment_dir, on_progress)
        except TransferError as e:
            logger.warning(f"Download failed, URL={attachment.url}: {e}")
            self._control.report_failure(e)
            return

        if str(path) in ("", "."):
            logger.warning("Downloaded file path is empty")
            return

        logger.info(f"Download successful, saved to file: {path}")

        message.set_attachment_filename(path.name)

        if attachment.coder_status.is_encrypted:
            key = self._control.current_identity_key()
            if key is not None:
                self._coder.decrypt_attachment(key, message, self._dirs.attachment_dir)

        # Create preview if not in message
        if message.content.preview is None:
            self._previews.may_create_image_preview(message)
