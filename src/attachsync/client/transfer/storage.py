"""Directory layout for attachment and preview files.

Both directories live under the application base directory:

    <app_dir>/attachments/   sent and received attachment files
    <app_dir>/preview/       generated and received preview images
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from attachsync.core.media import is_image

if TYPE_CHECKING:
    from attachsync.core.model import Attachment, TransferMessage

logger = logging.getLogger(__name__)

ATT_DIRNAME = "attachments"
PREVIEW_DIRNAME = "preview"


@dataclass(frozen=True)
class AttachmentDirs:
    """Attachment and preview directories of one application directory."""

    attachment_dir: Path
    preview_dir: Path

    @classmethod
    def create(cls, base_dir: Path) -> AttachmentDirs:
        """Create (if needed) the directories under base_dir.

        Raises:
            OSError: If a directory can't be created.
        """
        dirs = cls(
            attachment_dir=base_dir / ATT_DIRNAME,
            preview_dir=base_dir / PREVIEW_DIRNAME,
        )
        for name, path in (("attachment", dirs.attachment_dir), ("preview", dirs.preview_dir)):
            if not path.is_dir():
                path.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created {name} directory {path}")
        return dirs

    def absolute_file_path(self, attachment: Attachment) -> Path:
        """Resolve the file path of an attachment.

        Empty and absolute paths are returned unchanged, relative paths are
        resolved against the attachment directory.
        """
        path = attachment.file_path
        if str(path) in ("", ".") or path.is_absolute():
            return path
        return self.attachment_dir / path

    def image_preview_path(self, message: TransferMessage) -> Path | None:
        """Get the preview file of a message.

        Returns:
            Path in the preview directory, or None if the message has no
            preview, the preview has no filename or is not an image.
        """
        preview = message.content.preview
        if preview is None:
            return None
        if not preview.filename or not is_image(preview.mime_type):
            return None
        return self.preview_dir / preview.filename
