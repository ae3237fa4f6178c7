"""
Luminance extraction for the scanner package.

Every downstream consumer (fingerprints, quality) works on the same
single-channel array, extracted once per image in one vectorized pass.
"""

from __future__ import annotations

from typing import Optional

from .dependencies import np


# ITU-R 601 luma weights
_LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def as_rgb_array(pixel_buffer, size: Optional[tuple[int, int]] = None) -> np.ndarray:
    """
    Normalize a pixel buffer to a (height, width, 3) uint8 array.

    Args:
        pixel_buffer: numpy array of shape (H, W, 3|4), or flat RGB/RGBA bytes
        size: (width, height), required when the buffer is flat

    Returns:
        View or copy of the buffer with the alpha channel dropped

    Raises:
        ValueError: If the buffer shape does not describe an RGB(A) raster
    """
    pixels = np.asarray(pixel_buffer)

    if pixels.ndim == 1:
        if size is None:
            raise ValueError("size is required for a flat pixel buffer")
        width, height = size
        if width * height == 0 or pixels.size % (width * height) != 0:
            raise ValueError(f"buffer of {pixels.size} values does not match size {size}")
        channels = pixels.size // (width * height)
        pixels = pixels.reshape(height, width, channels)
    elif size is not None and (pixels.shape[1], pixels.shape[0]) != tuple(size):
        raise ValueError(
            f"buffer shape {pixels.shape[:2]} does not match size {tuple(size)} (width, height)"
        )

    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(f"expected an RGB or RGBA raster, got shape {pixels.shape}")

    if pixels.dtype != np.uint8:
        pixels = np.clip(pixels, 0, 255).astype(np.uint8)

    return pixels[:, :, :3]


def extract_luminance(rgb: np.ndarray) -> np.ndarray:
    """
    Convert an RGB raster to per-pixel luminance.

    Uses 0.299 R + 0.587 G + 0.114 B, truncated and clamped to 0-255.

    Args:
        rgb: (H, W, 3) uint8 array from as_rgb_array

    Returns:
        (H, W) uint8 luminance array
    """
    channels = rgb.astype(np.float64)
    lum = (
        _LUMA_WEIGHTS[0] * channels[:, :, 0]
        + _LUMA_WEIGHTS[1] * channels[:, :, 1]
        + _LUMA_WEIGHTS[2] * channels[:, :, 2]
    )
    # Small epsilon keeps pure white at 255 despite float rounding
    return np.clip(np.floor(lum + 1e-9), 0, 255).astype(np.uint8)


__all__ = ['as_rgb_array', 'extract_luminance']
