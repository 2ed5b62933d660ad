"""HTTP client for the attachment file-hosting service.

This module provides:
- Slot: upload/download URL pair issued for one transfer
- FileTransferClient: protocol consumed by the transfer worker
- HTTPFileClient: httpx-based implementation (streamed PUT/GET)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import unquote, urlparse

import httpx

from attachsync.core.config import TransferConfig
from attachsync.core.errors import TransferError

logger = logging.getLogger(__name__)

# Size of streamed upload/download blocks
BLOCK_SIZE = 64 * 1024

DEFAULT_DOWNLOAD_NAME = "attachment.dat"

ProgressListener = Callable[[int], None]

_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


@dataclass(frozen=True)
class Slot:
    """Upload and download URL pair for one transfer."""

    upload_url: str = ""
    download_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Slot:
        """Create from API response dictionary."""
        return cls(
            upload_url=data.get("upload_url") or "",
            download_url=data.get("download_url") or "",
        )


class FileTransferClient(Protocol):
    """Protocol for the file-hosting transfer client."""

    def request_upload_slot(self, filename: str, length: int, mime_type: str) -> Slot:
        """Request an upload slot for a file.

        Raises:
            TransferError: If the transport failed.
        """
        ...

    def upload(self, file: Path, url: str, mime_type: str, encrypted: bool) -> None:
        """Upload a file to a slot URL.

        Raises:
            TransferError: If the upload failed.
        """
        ...

    def download(self, url: str, directory: Path, on_progress: ProgressListener) -> Path:
        """Download a file into a directory.

        Returns:
            Path of the downloaded file.

        Raises:
            TransferError: If the download failed.
        """
        ...


def filename_from_response(url: str, content_disposition: str | None) -> str:
    """Pick a local file name for a download.

    Uses the Content-Disposition header if present, else the last URL
    path segment. Directory components are stripped.
    """
    name = ""
    if content_disposition:
        match = _FILENAME_RE.search(content_disposition)
        if match:
            name = unquote(match.group(1).strip())
    if not name:
        name = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    name = Path(name.replace("\\", "/")).name
    if name in ("", ".", ".."):
        return DEFAULT_DOWNLOAD_NAME
    return name


def unique_path(directory: Path, filename: str) -> Path:
    """Get a path in directory that does not exist yet.

    "photo.jpg" becomes "photo_1.jpg", "photo_2.jpg", ... on collisions.
    """
    path = directory / filename
    stem, suffix = path.stem, path.suffix
    counter = 1
    while path.exists():
        path = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return path


def _discard(path: Path | None) -> None:
    """Remove a partially written download."""
    if path is not None:
        path.unlink(missing_ok=True)


class HTTPFileClient:
    """HTTP client for the file-hosting service."""

    def __init__(self, config: TransferConfig) -> None:
        """Initialize the transfer client.

        Args:
            config: Server URL, token and connection settings.
        """
        self._config = config
        headers = {}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers=headers,
            follow_redirects=True,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPFileClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _check_status(self, response: httpx.Response, action: str) -> None:
        """Raise TransferError for error responses."""
        if response.status_code >= 400:
            raise TransferError(
                f"{action} failed: HTTP {response.status_code}",
                response.status_code,
            )

    def request_upload_slot(self, filename: str, length: int, mime_type: str) -> Slot:
        """Request an upload slot.

        Args:
            filename: Name of the file to upload.
            length: Size in bytes.
            mime_type: MIME type of the payload.

        Returns:
            The slot. An empty slot is returned if the service rejected
            the request; the upload then fails on the empty URL.
        """
        try:
            response = self._client.post(
                "/upload/slot",
                json={"filename": filename, "size": length, "mime": mime_type},
            )
            self._check_status(response, "Slot request")
            return Slot.from_dict(response.json())
        except (httpx.HTTPError, TransferError, ValueError) as e:
            logger.warning(f"Can't get upload slot for {filename}: {e}")
            return Slot()

    def upload(self, file: Path, url: str, mime_type: str, encrypted: bool) -> None:
        """Upload a file with a streamed PUT.

        Args:
            file: File to upload.
            url: Upload URL from the slot.
            mime_type: Content type sent to the server.
            encrypted: Whether the payload is encrypted.

        Raises:
            TransferError: If the upload failed.
        """
        if not url:
            raise TransferError("No upload URL")

        def read_blocks() -> Iterator[bytes]:
            with open(file, "rb") as f:
                for block in iter(lambda: f.read(BLOCK_SIZE), b""):
                    yield block

        try:
            size = file.stat().st_size
            response = self._client.put(
                url,
                content=read_blocks(),
                headers={
                    "Content-Type": mime_type,
                    "Content-Length": str(size),
                    "X-Encrypted": "1" if encrypted else "0",
                },
            )
        except OSError as e:
            raise TransferError(f"Can't read upload file {file}: {e}") from e
        except httpx.HTTPError as e:
            raise TransferError(f"Upload failed: {e}") from e

        self._check_status(response, "Upload")
        logger.debug(f"Uploaded {file} ({size} bytes) to {url}")

    def download(self, url: str, directory: Path, on_progress: ProgressListener) -> Path:
        """Download a file with a streamed GET.

        Args:
            url: Download URL.
            directory: Target directory.
            on_progress: Called with the progress in percent (0-100).

        Returns:
            Path of the downloaded file.

        Raises:
            TransferError: If the download failed. The partial file is removed.
        """
        path: Path | None = None
        try:
            with self._client.stream("GET", url) as response:
                self._check_status(response, "Download")

                filename = filename_from_response(url, response.headers.get("Content-Disposition"))
                path = unique_path(directory, filename)
                total = int(response.headers.get("Content-Length") or 0)

                on_progress(0)
                with open(path, "wb") as f:
                    for block in response.iter_bytes(BLOCK_SIZE):
                        f.write(block)
                        if total > 0:
                            on_progress(min(100, response.num_bytes_downloaded * 100 // total))
                on_progress(100)
        except TransferError:
            _discard(path)
            raise
        except (httpx.HTTPError, OSError) as e:
            _discard(path)
            raise TransferError(f"Download failed: {e}") from e

        logger.debug(f"Downloaded {url} to {path}")
        return path
