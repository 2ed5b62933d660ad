"""Configuration for attachsync.

This module provides:
- TransferConfig: settings for the file-hosting service and image handling
- Config file helpers (~/.attachsync/config.json)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Default maximum pixel area for uploaded images (0 disables resizing)
DEFAULT_MAX_IMAGE_SIZE = 1920 * 1080


@dataclass
class TransferConfig:
    """Configuration for attachment transfers.

    Attributes:
        server_url: Base URL of the file-hosting service (e.g., "https://upload.example.com").
        token: Authentication token sent as a bearer token.
        timeout: Request/connection timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
        max_image_size: Maximum pixel area of uploaded images. Larger images
            are scaled down before upload. 0 disables resizing.
    """

    server_url: str = ""
    token: str = ""
    timeout: float = 30.0
    verify_ssl: bool = True
    max_image_size: int = DEFAULT_MAX_IMAGE_SIZE

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransferConfig:
        """Create from a config file dictionary, ignoring unknown keys."""
        return cls(
            server_url=str(data.get("server_url", "")),
            token=str(data.get("token", "")),
            timeout=float(data.get("timeout", 30.0)),
            verify_ssl=bool(data.get("verify_ssl", True)),
            max_image_size=int(data.get("max_image_size", DEFAULT_MAX_IMAGE_SIZE)),
        )


def get_config_dir() -> Path:
    """Get the configuration directory for attachsync.

    Returns:
        Path to ~/.attachsync.
    """
    return Path.home() / ".attachsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))
