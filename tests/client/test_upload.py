"""Tests for attachment upload orchestration."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import Image

from attachsync.client.api import Slot
from attachsync.client.transfer import (
    ENCRYPT_MIME,
    RESIZED_IMG_MIME,
    AttachmentDirs,
    AttachmentUploader,
)
from attachsync.core import (
    Attachment,
    AttachmentCoder,
    ChatMessage,
    CoderStatus,
    Encryption,
    MessageContent,
    MessageStatus,
    TransferError,
    decrypt_bytes,
)


def make_message(
    file_path: Path,
    mime_type: str,
    url: str = "",
    encryption: Encryption = Encryption.PLAIN,
) -> ChatMessage:
    """Create an outgoing message with an attachment."""
    return ChatMessage(
        id=11,
        content=MessageContent(
            attachment=Attachment(file_path=file_path, mime_type=mime_type, url=url)
        ),
        coder_status=CoderStatus(encryption),
    )


def temp_files() -> set[Path]:
    """Temporary files created by the upload pipeline."""
    tmp = Path(tempfile.gettempdir())
    return set(tmp.glob("attachsync_resized_img_att*")) | set(tmp.glob("attachsync_enc_att*"))


@pytest.fixture
def make_uploader(control, transfer_client, dirs):  # type: ignore[no-untyped-def]
    """Build an uploader with fakes, overridable per test."""

    def _make(max_image_size: int = 0, coder=None) -> AttachmentUploader:  # type: ignore[no-untyped-def]
        return AttachmentUploader(
            control, transfer_client, coder or AttachmentCoder(), dirs, max_image_size
        )

    return _make


class TestUploadPlain:
    """Uploads without resizing or encryption."""

    def test_pdf_upload(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A PDF is uploaded as-is and the message records the result."""
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"%PDF-1.4 content")
        message = make_message(pdf, "application/pdf")

        make_uploader(max_image_size=10).upload(message)

        assert transfer_client.slot_requests == [("doc.pdf", 16, "application/pdf")]
        file, url, mime, encrypted, data = transfer_client.uploads[0]
        assert file == pdf
        assert url == "http://up/slot"
        assert mime == "application/pdf"
        assert encrypted is False
        assert data == b"%PDF-1.4 content"

        attachment = message.content.attachment
        assert attachment.url == "http://down/file"
        assert attachment.mime_type == "application/pdf"
        assert attachment.length == 16
        assert pdf.exists()
        assert control.resent == []

    def test_pdf_never_resized(self, control, transfer_client, dirs, tmp_path: Path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
        """Non-image files skip the resize step entirely."""
        from attachsync.client.transfer import upload as upload_module

        read_image = MagicMock()
        monkeypatch.setattr(upload_module, "read_image", read_image)
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"%PDF")

        AttachmentUploader(control, transfer_client, AttachmentCoder(), dirs, 1).upload(
            make_message(pdf, "application/pdf")
        )

        read_image.assert_not_called()
        assert len(transfer_client.uploads) == 1

    def test_relative_path_resolved(self, make_uploader, transfer_client, dirs: AttachmentDirs) -> None:  # type: ignore[no-untyped-def]
        """Relative paths are read from the attachment directory."""
        (dirs.attachment_dir / "notes.txt").write_text("hello")
        make_uploader().upload(make_message(Path("notes.txt"), "text/plain"))
        assert transfer_client.uploads[0][4] == b"hello"

    def test_no_attachment(self, make_uploader, transfer_client) -> None:  # type: ignore[no-untyped-def]
        """Messages without attachment are ignored."""
        make_uploader().upload(ChatMessage(id=1))
        assert transfer_client.slot_requests == []

    def test_missing_file(self, make_uploader, transfer_client, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Unreadable files abort without touching the message."""
        message = make_message(tmp_path / "gone.pdf", "application/pdf")
        make_uploader().upload(message)
        assert transfer_client.uploads == []
        assert message.status == MessageStatus.PENDING
        assert not message.content.attachment.has_url


class TestUploadResize:
    """Image resizing before upload."""

    def test_large_image_resized(self, make_uploader, transfer_client, image_factory) -> None:  # type: ignore[no-untyped-def]
        """Images above the pixel limit are scaled down and sent as JPEG."""
        source = image_factory("big.png", size=(800, 600))
        before = temp_files()
        max_area = 40_000

        make_uploader(max_image_size=max_area).upload(make_message(source, "image/png"))

        file, _, mime, _, data = transfer_client.uploads[0]
        assert mime == RESIZED_IMG_MIME
        assert file != source
        with Image.open(io.BytesIO(data)) as uploaded:
            assert uploaded.format == "JPEG"
            assert uploaded.width * uploaded.height <= max_area
        assert source.exists()
        assert temp_files() - before == set()

    def test_thin_image_within_limit(self, make_uploader, transfer_client, image_factory) -> None:  # type: ignore[no-untyped-def]
        """Very thin images are scaled to stay within the pixel limit too."""
        source = image_factory("strip.png", size=(5000, 3))

        make_uploader(max_image_size=1000).upload(make_message(source, "image/png"))

        data = transfer_client.uploads[0][4]
        with Image.open(io.BytesIO(data)) as uploaded:
            assert uploaded.width * uploaded.height <= 1000
            assert uploaded.size == (1000, 1)

    def test_small_image_not_resized(self, make_uploader, transfer_client, image_factory) -> None:  # type: ignore[no-untyped-def]
        """Images within the limit are uploaded unchanged."""
        source = image_factory("small.png", size=(100, 100))
        make_uploader(max_image_size=10_000).upload(make_message(source, "image/png"))

        file, _, mime, _, _ = transfer_client.uploads[0]
        assert file == source
        assert mime == "image/png"

    def test_resize_disabled(self, make_uploader, transfer_client, image_factory) -> None:  # type: ignore[no-untyped-def]
        """A maximum of 0 disables resizing."""
        source = image_factory("big.png", size=(800, 600))
        make_uploader(max_image_size=0).upload(make_message(source, "image/png"))
        assert transfer_client.uploads[0][0] == source

    def test_undecodable_image_aborts(self, make_uploader, transfer_client, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A broken image aborts the upload without mutating the message."""
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"garbage")
        message = make_message(broken, "image/png")

        make_uploader(max_image_size=100).upload(message)

        assert transfer_client.uploads == []
        assert message.status == MessageStatus.PENDING
        assert not message.content.attachment.has_url


class TestUploadEncrypted:
    """Encryption before upload."""

    def test_encrypted_upload(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Payload is encrypted and sent as octet-stream."""
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"secret pdf")
        before = temp_files()
        message = make_message(pdf, "application/pdf", encryption=Encryption.DECRYPTED)

        make_uploader().upload(message)

        file, _, mime, encrypted, data = transfer_client.uploads[0]
        assert mime == ENCRYPT_MIME
        assert encrypted is True
        assert file != pdf
        assert decrypt_bytes(data, control.key.key) == b"secret pdf"
        assert message.content.attachment.mime_type == ENCRYPT_MIME
        assert message.content.attachment.length == len(data)
        assert pdf.read_bytes() == b"secret pdf"
        assert temp_files() - before == set()

    def test_resized_and_encrypted(self, make_uploader, transfer_client, image_factory) -> None:  # type: ignore[no-untyped-def]
        """Resized temp file is removed once encrypted."""
        source = image_factory("big.png", size=(800, 600))
        before = temp_files()

        make_uploader(max_image_size=10_000).upload(
            make_message(source, "image/png", encryption=Encryption.DECRYPTED)
        )

        assert transfer_client.uploads[0][2] == ENCRYPT_MIME
        assert source.exists()
        assert temp_files() - before == set()

    def test_no_key_aborts(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Without identity key nothing is uploaded."""
        control.key = None
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")

        make_uploader().upload(make_message(pdf, "application/pdf", encryption=Encryption.DECRYPTED))

        assert transfer_client.slot_requests == []
        assert pdf.exists()

    def test_encryption_failure_cleans_up(self, make_uploader, transfer_client, image_factory) -> None:  # type: ignore[no-untyped-def]
        """Failed encryption removes the resized file and keeps the source."""
        coder = MagicMock()
        coder.encrypt_attachment.return_value = None
        source = image_factory("big.png", size=(800, 600))
        before = temp_files()

        make_uploader(max_image_size=10_000, coder=coder).upload(
            make_message(source, "image/png", encryption=Encryption.DECRYPTED)
        )

        coder.encrypt_attachment.assert_called_once()
        assert transfer_client.uploads == []
        assert source.exists()
        assert temp_files() - before == set()

    def test_plain_message_not_encrypted(self, make_uploader, transfer_client, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Already encrypted or plain messages are not encrypted again."""
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")
        make_uploader().upload(make_message(pdf, "application/pdf", encryption=Encryption.ENCRYPTED))
        assert transfer_client.uploads[0][3] is False


class TestUploadFailures:
    """Transport failures and resend behavior."""

    def test_failed_upload(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Transport errors mark the message and report the failure."""
        error = TransferError("connection reset")
        transfer_client.upload_error = error
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")
        message = make_message(pdf, "application/pdf")

        make_uploader().upload(message)

        assert message.status == MessageStatus.ERROR
        assert not message.content.attachment.has_url
        assert control.failures == [error]
        assert control.resent == []
        assert pdf.exists()

    def test_failed_slot_request(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A slot request raising a transport error is handled like a failed upload."""
        error = TransferError("slot service unavailable", status_code=503)
        transfer_client.slot_error = error
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")
        message = make_message(pdf, "application/pdf")

        make_uploader().upload(message)

        assert transfer_client.uploads == []
        assert message.status == MessageStatus.ERROR
        assert control.failures == [error]
        assert not message.content.attachment.has_url
        assert pdf.exists()

    def test_failed_reupload_no_resend(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A failing re-upload never triggers a resend."""
        transfer_client.upload_error = TransferError("down")
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")
        message = make_message(pdf, "application/pdf", url="http://down/old")

        make_uploader().upload(message)

        assert control.resent == []
        assert message.content.attachment.url == "http://down/old"

    def test_failed_encrypted_upload_cleans_up(self, make_uploader, transfer_client, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """Encrypted temp file is removed after a transport failure."""
        transfer_client.upload_error = TransferError("down")
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")
        before = temp_files()

        make_uploader().upload(make_message(pdf, "application/pdf", encryption=Encryption.DECRYPTED))

        assert temp_files() - before == set()
        assert pdf.exists()

    def test_empty_download_url(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """An empty download URL leaves the message unchanged."""
        transfer_client.slot = Slot("http://up/slot", "")
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")
        message = make_message(pdf, "application/pdf")

        make_uploader().upload(message)

        assert len(transfer_client.uploads) == 1
        assert not message.content.attachment.has_url
        assert message.status == MessageStatus.PENDING
        assert control.resent == []

    def test_reupload_triggers_one_resend(self, make_uploader, transfer_client, control, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        """A successful re-upload resends the message exactly once."""
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(b"x")
        message = make_message(pdf, "application/pdf", url="http://down/old")

        make_uploader().upload(message)

        assert control.resent == [message]
        assert message.content.attachment.url == "http://down/file"
