"""Shared pytest fixtures for attachsync tests."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from PIL import Image

from attachsync.client.api import ProgressListener, Slot
from attachsync.client.transfer import AttachmentDirs
from attachsync.core.crypto import IdentityKey
from attachsync.core.errors import TransferError
from attachsync.core.model import TransferMessage

ImageFactory = Callable[..., Path]


@pytest.fixture
def image_factory(tmp_path: Path) -> ImageFactory:
    """Create image files of a given size."""

    def _make(
        name: str = "image.png",
        size: tuple[int, int] = (640, 480),
        mode: str = "RGB",
        color: str | tuple[int, ...] = "red",
        directory: Path | None = None,
    ) -> Path:
        path = (directory or tmp_path) / name
        Image.new(mode, size, color).save(path)
        return path

    return _make


@pytest.fixture
def dirs(tmp_path: Path) -> AttachmentDirs:
    """Attachment and preview directories in a temp app dir."""
    return AttachmentDirs.create(tmp_path / "app")


@pytest.fixture
def identity_key() -> IdentityKey:
    """Random identity key."""
    return IdentityKey(key=os.urandom(32))


@dataclass
class FakeTransferClient:
    """In-memory FileTransferClient recording every call."""

    slot: Slot = field(default_factory=lambda: Slot("http://up/slot", "http://down/file"))
    slot_error: TransferError | None = None
    upload_error: TransferError | None = None
    download_error: TransferError | None = None
    download_content: bytes = b"downloaded"
    download_name: str = "received.dat"
    progress_steps: tuple[int, ...] = (0, 50, 100)
    slot_requests: list[tuple[str, int, str]] = field(default_factory=list)
    uploads: list[tuple[Path, str, str, bool, bytes]] = field(default_factory=list)
    downloads: list[str] = field(default_factory=list)

    def request_upload_slot(self, filename: str, length: int, mime_type: str) -> Slot:
        self.slot_requests.append((filename, length, mime_type))
        if self.slot_error is not None:
            raise self.slot_error
        return self.slot

    def upload(self, file: Path, url: str, mime_type: str, encrypted: bool) -> None:
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((file, url, mime_type, encrypted, file.read_bytes()))

    def download(self, url: str, directory: Path, on_progress: ProgressListener) -> Path:
        self.downloads.append(url)
        if self.download_error is not None:
            raise self.download_error
        for step in self.progress_steps:
            on_progress(step)
        path = directory / self.download_name
        path.write_bytes(self.download_content)
        return path


@dataclass
class FakeControl:
    """TransferControl recording failures and resend requests."""

    key: IdentityKey | None = None
    failures: list[Exception] = field(default_factory=list)
    resent: list[TransferMessage] = field(default_factory=list)

    def current_identity_key(self) -> IdentityKey | None:
        return self.key

    def report_failure(self, error: Exception) -> None:
        self.failures.append(error)

    def resend_message(self, message: TransferMessage) -> None:
        self.resent.append(message)


@pytest.fixture
def transfer_client() -> FakeTransferClient:
    """Fake transfer client."""
    return FakeTransferClient()


@pytest.fixture
def control(identity_key: IdentityKey) -> FakeControl:
    """Fake control collaborator holding an identity key."""
    return FakeControl(key=identity_key)
