"""Image handling for attachments and previews.

This module provides:
- Reading and writing images with Pillow
- Scaling to a maximum pixel area or into bounding dimensions
- MIME type helpers (detection, extension lookup)
"""

from __future__ import annotations

import io
import logging
import math
import mimetypes
from pathlib import Path

from PIL import Image

from attachsync.core.errors import MediaError

logger = logging.getLogger(__name__)

JPEG_QUALITY = 85

# Preferred extensions; mimetypes.guess_extension() is platform dependent
_MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/webp": "webp",
    "image/tiff": "tiff",
}


def is_image(mime: str) -> bool:
    """Check if a MIME type denotes an image."""
    return mime.startswith("image")


def extension_for_mime(mime: str) -> str:
    """Get the file extension (without dot) for a MIME type.

    Returns:
        Extension like "jpg", or an empty string if unknown.
    """
    ext = _MIME_EXTENSIONS.get(mime)
    if ext:
        return ext
    guessed = mimetypes.guess_extension(mime)
    return guessed.lstrip(".") if guessed else ""


def mime_for_file(path: Path) -> str:
    """Detect the MIME type of a file.

    The file name is checked first, then the content is sniffed with Pillow.

    Returns:
        MIME type, or an empty string if it can't be determined.
    """
    mime, _ = mimetypes.guess_type(path.name)
    if mime:
        return mime

    try:
        with Image.open(path) as img:
            return Image.MIME.get(img.format or "", "")
    except (OSError, ValueError) as e:
        logger.debug(f"Can't probe type of {path}: {e}")
        return ""


def read_image(path: Path) -> Image.Image | None:
    """Decode an image file.

    Returns:
        The loaded image, or None if the file can't be decoded.
    """
    try:
        with Image.open(path) as img:
            img.load()
            return img.copy()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Can't read image {path}: {e}")
        return None


def scale_to_area(image: Image.Image, max_area: int) -> Image.Image:
    """Scale an image down so that width * height <= max_area.

    Aspect ratio is preserved. Images already within the limit are returned
    unchanged.
    """
    width, height = image.size
    if width * height <= max_area:
        return image

    factor = math.sqrt(max_area / (width * height))
    new_width = max(1, int(width * factor))
    new_height = max(1, int(height * factor))
    # A side clamped to one pixel: shrink the other side to stay within the area
    if new_width * new_height > max_area:
        if new_height <= new_width:
            new_width = max(1, max_area // new_height)
        else:
            new_height = max(1, max_area // new_width)

    logger.debug(f"Scaling image {width}x{height} -> {new_width}x{new_height}")
    return image.resize((new_width, new_height), Image.Resampling.LANCZOS)


def scale_to_fit(image: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """Scale an image to fit within the given bounds, preserving aspect ratio."""
    scaled = image.copy()
    scaled.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
    return scaled


def _pil_format(ext: str) -> str:
    """Map a file extension to a Pillow format name."""
    fmt = Image.registered_extensions().get(f".{ext.lower()}")
    if fmt is None:
        raise MediaError(f"Unsupported image format: {ext}")
    return fmt


def _prepare_for_format(image: Image.Image, fmt: str) -> Image.Image:
    """Convert modes the target format can't store (JPEG has no alpha)."""
    if fmt != "JPEG":
        return image
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if image.mode not in ("RGB", "L"):
        return image.convert("RGB")
    return image


def _save(image: Image.Image, fp: Path | io.BytesIO, ext: str) -> None:
    fmt = _pil_format(ext)
    image = _prepare_for_format(image, fmt)
    if fmt == "JPEG":
        image.save(fp, fmt, quality=JPEG_QUALITY, optimize=True)
    else:
        image.save(fp, fmt)


def write_image(image: Image.Image, ext: str, path: Path) -> bool:
    """Encode an image to a file.

    Args:
        image: Image to encode.
        ext: Target format as file extension (e.g., "jpg").
        path: Destination file.

    Returns:
        True if the file was written.
    """
    try:
        _save(image, path, ext)
    except (OSError, ValueError, MediaError) as e:
        logger.warning(f"Can't write image to {path}: {e}")
        return False
    return True


def image_to_bytes(image: Image.Image, ext: str) -> bytes:
    """Encode an image in memory.

    Returns:
        Encoded bytes, empty if encoding failed.
    """
    buffer = io.BytesIO()
    try:
        _save(image, buffer, ext)
    except (OSError, ValueError, MediaError) as e:
        logger.warning(f"Can't encode image as {ext}: {e}")
        return b""
    return buffer.getvalue()
