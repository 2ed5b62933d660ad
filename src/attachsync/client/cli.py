"""Command-line interface for attachsync.

Commands:
- configure: Store server URL, token, identity key and image settings
- upload: Upload a file as an attachment
- download: Download an attachment URL
- thumbnail: Create a preview image for a file
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from attachsync.core.config import (
    TransferConfig,
    get_config_dir,
    load_config,
    save_config,
)
from attachsync.core.crypto import IdentityKey
from attachsync.core.errors import CryptoError
from attachsync.core.model import Attachment, ChatMessage, MessageContent, TransferMessage
from attachsync.core.types import CoderStatus, Encryption, MessageStatus

# Id used for messages created on the command line
CLI_MESSAGE_ID = 0


def setup_logging(verbose: bool = False, log_path: Path | None = None) -> None:
    """Configure logging to output to stdout and optionally to a file.

    Args:
        verbose: Log debug messages.
        log_path: Optional path to a log file.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger("attachsync")
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


class ConsoleControl:
    """Transfer control backed by the config file, reporting to the terminal."""

    def __init__(self, key: IdentityKey | None) -> None:
        self._key = key
        self.failures: list[Exception] = []

    def current_identity_key(self) -> IdentityKey | None:
        return self._key

    def report_failure(self, error: Exception) -> None:
        self.failures.append(error)
        click.echo(f"Error: {error}", err=True)

    def resend_message(self, message: TransferMessage) -> None:
        click.echo(f"Message {message.id} ready to be sent again")


def _load_settings() -> tuple[TransferConfig, IdentityKey | None]:
    """Load transfer config and identity key from the config file."""
    data = load_config()
    config = TransferConfig.from_dict(data)
    key = None
    if data.get("identity_key"):
        try:
            key = IdentityKey.from_base64(data["identity_key"])
        except CryptoError as e:
            click.echo(f"Warning: ignoring identity key: {e}", err=True)
    return config, key


def _app_dir(app_dir: str | None) -> Path:
    return Path(app_dir).expanduser() if app_dir else get_config_dir()


@click.group()
@click.version_option(package_name="attachsync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug log messages.")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also log to this file.")
def cli(verbose: bool, log_file: str | None) -> None:
    """attachsync - Encrypted attachment transfers."""
    setup_logging(verbose, Path(log_file) if log_file else None)


@cli.command()
@click.option("--server", default=None, help="File-hosting service URL.")
@click.option("--token", default=None, help="Authentication token.")
@click.option("--key", "identity_key", default=None, help="Identity key (base64, 32 bytes).")
@click.option("--max-image-size", type=int, default=None, help="Maximum image pixel area, 0 disables resizing.")
@click.option("--insecure", is_flag=True, default=False, help="Disable SSL certificate validation.")
def configure(
    server: str | None,
    token: str | None,
    identity_key: str | None,
    max_image_size: int | None,
    insecure: bool,
) -> None:
    """Store transfer settings in the config file."""
    config = load_config()
    if server is not None:
        config["server_url"] = server.rstrip("/")
    if token is not None:
        config["token"] = token
    if identity_key is not None:
        try:
            IdentityKey.from_base64(identity_key)
        except CryptoError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        config["identity_key"] = identity_key
    if max_image_size is not None:
        config["max_image_size"] = max_image_size
    if insecure:
        config["verify_ssl"] = False
    save_config(config)

    effective = TransferConfig.from_dict(config)
    click.echo(f"Server:         {effective.server_url or '(not set)'}")
    click.echo(f"Max image size: {effective.max_image_size}")
    click.echo(f"Identity key:   {'set' if config.get('identity_key') else 'not set'}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--encrypt/--no-encrypt", default=True, help="Encrypt the attachment (default: yes).")
@click.option("--app-dir", default=None, help="Application directory (default: ~/.attachsync).")
@click.option("--timeout", type=float, default=300.0, help="Seconds to wait for the upload.")
def upload(file: Path, encrypt: bool, app_dir: str | None, timeout: float) -> None:
    """Upload FILE and print its download URL."""
    from attachsync.client.api import HTTPFileClient
    from attachsync.client.manager import AttachmentManager, create_attachment

    config, key = _load_settings()
    if not config.server_url:
        click.echo("Error: no server configured. Run 'attachsync configure --server URL' first.", err=True)
        sys.exit(1)

    attachment = create_attachment(file.resolve())
    if attachment is None:
        click.echo(f"Error: can't attach {file}", err=True)
        sys.exit(1)

    encryption = Encryption.DECRYPTED if encrypt else Encryption.PLAIN
    message = ChatMessage(
        id=CLI_MESSAGE_ID,
        content=MessageContent(attachment=attachment),
        coder_status=CoderStatus(encryption),
    )

    control = ConsoleControl(key)
    with HTTPFileClient(config) as client:
        manager = AttachmentManager.create(control, client, _app_dir(app_dir), config)
        manager.queue_upload(message)
        done = manager.wait_idle(timeout=timeout)
        manager.stop()

    uploaded = message.content.attachment
    if not done or uploaded is None or not uploaded.has_url:
        click.echo("Upload failed.", err=True)
        sys.exit(1)
    click.echo(uploaded.url)


@cli.command()
@click.argument("url")
@click.option("--encrypted", is_flag=True, help="The file is encrypted with the identity key.")
@click.option("--app-dir", default=None, help="Application directory (default: ~/.attachsync).")
@click.option("--timeout", type=float, default=300.0, help="Seconds to wait for the download.")
def download(url: str, encrypted: bool, app_dir: str | None, timeout: float) -> None:
    """Download URL into the attachment directory."""
    from attachsync.client.api import HTTPFileClient
    from attachsync.client.manager import AttachmentManager

    config, key = _load_settings()
    encryption = Encryption.ENCRYPTED if encrypted else Encryption.PLAIN
    message = ChatMessage(
        id=CLI_MESSAGE_ID,
        content=MessageContent(attachment=Attachment(url=url, coder_status=CoderStatus(encryption))),
        status=MessageStatus.RECEIVED,
    )

    control = ConsoleControl(key)
    with HTTPFileClient(config) as client:
        manager = AttachmentManager.create(control, client, _app_dir(app_dir), config)
        manager.queue_download(message)
        done = manager.wait_idle(timeout=timeout)
        manager.stop()

    attachment = message.content.attachment
    if not done or control.failures or attachment is None or str(attachment.file_path) in ("", "."):
        click.echo("Download failed.", err=True)
        sys.exit(1)
    click.echo(manager.absolute_file_path(attachment))
    preview = manager.image_preview_path(message)
    if preview is not None:
        click.echo(f"Preview: {preview}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--app-dir", default=None, help="Application directory (default: ~/.attachsync).")
def thumbnail(file: Path, app_dir: str | None) -> None:
    """Create a preview image for FILE."""
    from attachsync.client.transfer import AttachmentDirs, PreviewStore

    dirs = AttachmentDirs.create(_app_dir(app_dir))
    message = ChatMessage(
        id=CLI_MESSAGE_ID,
        content=MessageContent(attachment=Attachment(file_path=file.resolve())),
    )
    if not PreviewStore(dirs).may_create_image_preview(message):
        click.echo("No preview created (not an image, or already small enough).")
        return
    click.echo(dirs.image_preview_path(message))


def main() -> None:
    """Entry point for the CLI."""
    cli()
