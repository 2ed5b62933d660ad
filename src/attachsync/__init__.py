"""attachsync - Attachment transfer service for messaging clients."""

__version__ = "0.1.0"
