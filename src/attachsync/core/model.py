"""Message and attachment model consumed by the transfer service.

The chat message itself lives outside this package. The transfer service
only talks to it through the TransferMessage protocol; ChatMessage is a
plain in-memory implementation.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from attachsync.core.types import CoderStatus, Encryption, MessageStatus


@dataclass(frozen=True)
class Preview:
    """Small encoded image shown in place of the full attachment."""

    data: bytes
    filename: str
    mime_type: str

    def __repr__(self) -> str:
        return f"Preview(filename={self.filename!r}, mime={self.mime_type!r}, size={len(self.data)})"


@dataclass(frozen=True)
class Attachment:
    """File payload of a message and its metadata.

    Attributes:
        file_path: Path of the file, relative to the attachment directory
            or absolute. Empty if not downloaded yet.
        mime_type: MIME type, may be empty if unknown.
        url: Download URL on the file-hosting service, empty if not uploaded.
        length: Size in bytes of the uploaded payload, -1 if unknown.
        coder_status: Encryption state of the file.
        download_progress: Download progress in percent, -1 if not started.
    """

    file_path: Path = Path("")
    mime_type: str = ""
    url: str = ""
    length: int = -1
    coder_status: CoderStatus = field(default_factory=CoderStatus)
    download_progress: int = -1

    @property
    def has_url(self) -> bool:
        """Check if the attachment was uploaded."""
        return bool(self.url)


@dataclass
class MessageContent:
    """Content of a message."""

    text: str = ""
    attachment: Attachment | None = None
    preview: Preview | None = None


class TransferMessage(Protocol):
    """Message interface used by the transfer service.

    All mutations go through the setters below.
    """

    @property
    def id(self) -> int: ...

    @property
    def content(self) -> MessageContent: ...

    @property
    def coder_status(self) -> CoderStatus: ...

    def set_status(self, status: MessageStatus) -> None: ...

    def set_upload(self, url: str, mime_type: str, length: int) -> None: ...

    def set_download_progress(self, percent: int) -> None: ...

    def set_attachment_filename(self, filename: str) -> None: ...

    def set_attachment_decrypted(self) -> None: ...

    def set_preview(self, preview: Preview) -> None: ...

    def set_preview_filename(self, filename: str) -> None: ...


@dataclass
class ChatMessage:
    """In-memory message implementing TransferMessage."""

    id: int
    content: MessageContent = field(default_factory=MessageContent)
    coder_status: CoderStatus = field(default_factory=CoderStatus)
    status: MessageStatus = MessageStatus.PENDING

    def _update_attachment(self, **changes: object) -> None:
        attachment = self.content.attachment
        if attachment is None:
            raise ValueError(f"Message {self.id} has no attachment")
        self.content.attachment = dataclasses.replace(attachment, **changes)  # type: ignore[arg-type]

    def set_status(self, status: MessageStatus) -> None:
        self.status = status

    def set_upload(self, url: str, mime_type: str, length: int) -> None:
        self._update_attachment(url=url, mime_type=mime_type, length=length)

    def set_download_progress(self, percent: int) -> None:
        self._update_attachment(download_progress=percent)

    def set_attachment_filename(self, filename: str) -> None:
        self._update_attachment(file_path=Path(filename))

    def set_attachment_decrypted(self) -> None:
        self._update_attachment(coder_status=CoderStatus(Encryption.DECRYPTED))

    def set_preview(self, preview: Preview) -> None:
        self.content.preview = preview

    def set_preview_filename(self, filename: str) -> None:
        preview = self.content.preview
        if preview is None:
            raise ValueError(f"Message {self.id} has no preview")
        self.content.preview = dataclasses.replace(preview, filename=filename)
