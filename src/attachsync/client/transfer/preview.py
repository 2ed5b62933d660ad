"""Preview (thumbnail) creation and storage.

Previews are small JPEG renderings of image attachments, stored in the
preview directory under a name derived from the message id:

    <id>_bob_.jpg   generated locally from the attachment
    <id>_bob.<ext>  received inline with the message
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from attachsync.core.media import (
    extension_for_mime,
    image_to_bytes,
    is_image,
    mime_for_file,
    read_image,
    scale_to_fit,
)
from attachsync.core.model import Preview

if TYPE_CHECKING:
    from attachsync.client.transfer.storage import AttachmentDirs
    from attachsync.core.model import TransferMessage

logger = logging.getLogger(__name__)

THUMBNAIL_DIM = (300, 200)
THUMBNAIL_MIME = "image/jpeg"


class PreviewStore:
    """Creates and saves message previews."""

    def __init__(self, dirs: AttachmentDirs) -> None:
        self._dirs = dirs

    def save_preview(self, message: TransferMessage) -> None:
        """Save a preview received with the message to the preview directory."""
        preview = message.content.preview
        if preview is None:
            logger.warning(f"No preview in message {message.id}")
            return

        ext = extension_for_mime(preview.mime_type)
        filename = f"{message.id}_bob.{ext}"
        self._write_preview(preview, filename)

        message.set_preview_filename(filename)

    def may_create_image_preview(self, message: TransferMessage) -> bool:
        """Create a preview if the message attachment is a large image.

        Returns:
            True if a preview was created and set on the message. False if
            the attachment is not an image, already fits the thumbnail
            bounds, or anything failed along the way.
        """
        attachment = message.content.attachment
        if attachment is None:
            logger.warning(f"No attachment in message {message.id}")
            return False

        path = self._dirs.absolute_file_path(attachment)

        mime = attachment.mime_type
        if not mime:
            mime = mime_for_file(path)

        if not is_image(mime):
            return False

        image = read_image(path)
        if image is None:
            return False

        max_width, max_height = THUMBNAIL_DIM
        if image.width <= max_width and image.height <= max_height:
            return False

        thumb = scale_to_fit(image, max_width, max_height)
        ext = extension_for_mime(THUMBNAIL_MIME)

        data = image_to_bytes(thumb, ext)
        if not data:
            return False

        filename = f"{message.id}_bob_.{ext}"
        preview = Preview(data=data, filename=filename, mime_type=THUMBNAIL_MIME)
        logger.info(f"Created {preview}")

        if not self._write_preview(preview, filename):
            return False

        message.set_preview(preview)
        return True

    def _write_preview(self, preview: Preview, filename: str) -> bool:
        path = self._dirs.preview_dir / filename
        try:
            path.write_bytes(preview.data)
        except OSError as e:
            logger.warning(f"Can't save preview file {path}: {e}")
            return False

        logger.debug(f"Preview written to {path}")
        return True
