"""Client side of attachsync: transfer client, worker and manager."""

from attachsync.client.api import FileTransferClient, HTTPFileClient, Slot
from attachsync.client.control import CryptoBridge, TransferControl
from attachsync.client.manager import AttachmentManager, create_attachment

__all__ = [
    "AttachmentManager",
    "CryptoBridge",
    "FileTransferClient",
    "HTTPFileClient",
    "Slot",
    "TransferControl",
    "create_attachment",
]
