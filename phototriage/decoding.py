"""
Pixel-buffer provider for the photo triage engine.

Decodes an image file into the fixed-size RGB raster the engine expects
(256x256 by default). The buffer size and color depth are part of the
fingerprint contract: changing them requires an ALGORITHM_VERSION bump.

Decode failures never raise; they return None so the caller can skip the
image before it reaches the engine.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import DEFAULT_BUFFER_SIZE
from .models import ImageSample
from .scanner.dependencies import np, Image, RESAMPLE_FILTER

logger = logging.getLogger(__name__)

# Register HEIC/HEIF support via pillow-heif
# This must be done before opening any HEIC files
HAS_HEIF_SUPPORT = False
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    HAS_HEIF_SUPPORT = True
    logger.debug("HEIC/HEIF support enabled via pillow-heif")
except ImportError:
    logger.debug(
        "pillow-heif not installed - HEIC/HEIF files will not be decoded. "
        "Install with: pip install pillow-heif"
    )

# EXIF tags holding capture time, most specific first
_EXIF_IFD = 0x8769
_DATETIME_ORIGINAL = 36867
_DATETIME = 306
_EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


def _capture_timestamp(img) -> Optional[float]:
    """Capture time from EXIF as seconds since the epoch, if present."""
    try:
        exif = img.getexif()
        value = exif.get_ifd(_EXIF_IFD).get(_DATETIME_ORIGINAL) or exif.get(_DATETIME)
        if not value:
            return None
        if isinstance(value, bytes):
            value = value.decode('ascii', errors='ignore')
        return datetime.strptime(value.strip('\x00 ').strip(), _EXIF_DATETIME_FORMAT).timestamp()
    except (ValueError, TypeError, AttributeError, KeyError) as e:
        logger.debug(f"Unreadable EXIF date: {e}")
        return None


def _to_buffer(img, size: int) -> np.ndarray:
    """Convert to RGB (alpha dropped) and resize to size x size."""
    if img.mode != 'RGB':
        img = img.convert('RGB')
    return np.asarray(img.resize((size, size), RESAMPLE_FILTER), dtype=np.uint8)


def load_pixel_buffer(filepath: str | Path, size: int = DEFAULT_BUFFER_SIZE) -> Optional[np.ndarray]:
    """
    Decode an image into a (size, size, 3) uint8 array.

    Args:
        filepath: Path to the image file
        size: Edge length of the square output raster

    Returns:
        The raster, or None if the file cannot be decoded
    """
    sample = load_sample(filepath, size=size)
    return sample.pixels if sample is not None else None


def load_sample(
    filepath: str | Path,
    identifier: Optional[str] = None,
    timestamp: Optional[float] = None,
    size: int = DEFAULT_BUFFER_SIZE,
) -> Optional[ImageSample]:
    """
    Decode an image file into an ImageSample.

    Args:
        filepath: Path to the image file
        identifier: Identifier to use (defaults to the path)
        timestamp: Capture time; read from EXIF, then file mtime, when omitted
        size: Edge length of the square raster

    Returns:
        ImageSample with original width/height and file size, or None if
        the file cannot be decoded
    """
    filepath = str(filepath)

    ext = os.path.splitext(filepath)[1].lower()
    if ext in {'.heic', '.heif'} and not HAS_HEIF_SUPPORT:
        logger.warning(f"Skipping {filepath}: HEIC/HEIF support not installed (pip install pillow-heif)")
        return None

    try:
        file_size = os.path.getsize(filepath)
        with Image.open(filepath) as img:
            # Force load to detect truncated images early
            img.load()
            width, height = img.size
            if timestamp is None:
                timestamp = _capture_timestamp(img)
            pixels = _to_buffer(img, size)
    except Image.UnidentifiedImageError as e:
        logger.warning(f"Skipping {filepath}: not a valid image file ({e})")
        return None
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Skipping {filepath}: failed to decode ({e})")
        return None

    if timestamp is None:
        timestamp = os.path.getmtime(filepath)

    return ImageSample(
        identifier=identifier or filepath,
        pixels=pixels,
        timestamp=timestamp,
        file_size=file_size,
        width=width,
        height=height,
    )


__all__ = ['HAS_HEIF_SUPPORT', 'load_pixel_buffer', 'load_sample']
