"""
Fingerprint engine for the scanner package.

Computes the four fingerprints of an image from its luminance and color data:
- dHash: 9x8 gradient-difference hash, permissive first pass
- pHash: DCT low-frequency hash, strict confirmation
- edgeHash: Sobel edge-structure hash, brightness-invariant second path
- color histogram: 4x4x4 normalized RGB buckets, cheap pre-filter

All three bit fingerprints are unsigned 64-bit ints compared by Hamming
distance.
"""

from __future__ import annotations

from typing import Optional

from ..config import (
    DHASH_HEIGHT,
    DHASH_WIDTH,
    PHASH_SIZE,
    PHASH_BITS,
    EDGE_HASH_SIZE,
    HISTOGRAM_BINS_PER_CHANNEL,
    MIN_FINGERPRINT_DIMENSION,
)
from ..models import FingerprintRecord
from .dependencies import np, Image, imagehash, RESAMPLE_FILTER
from .luminance import as_rgb_array, extract_luminance


def _dct_matrix(n: int) -> np.ndarray:
    """Orthonormal DCT-II basis: row k holds the k-th cosine."""
    k = np.arange(n).reshape(-1, 1)
    i = np.arange(n).reshape(1, -1)
    matrix = np.cos(np.pi * (2 * i + 1) * k / (2 * n)) * np.sqrt(2.0 / n)
    matrix[0, :] = np.sqrt(1.0 / n)
    return matrix


_DCT = _dct_matrix(PHASH_SIZE)

# Lowest-frequency coefficients first (by u + v, then u), DC excluded
_PHASH_COEFFICIENTS = sorted(
    ((u, v) for u in range(PHASH_SIZE) for v in range(PHASH_SIZE)),
    key=lambda uv: (uv[0] + uv[1], uv[0]),
)[1:PHASH_BITS + 1]
_PHASH_ROWS = np.array([u for u, _ in _PHASH_COEFFICIENTS])
_PHASH_COLS = np.array([v for _, v in _PHASH_COEFFICIENTS])


def hamming_distance(hash1: int, hash2: int) -> int:
    """
    Count the bit positions where two fingerprints differ.

    Args:
        hash1: First hash value
        hash2: Second hash value

    Returns:
        Number of different bits (0-64). Lower = more similar.
    """
    return bin(hash1 ^ hash2).count('1')


def histogram_distance(hist1, hist2) -> float:
    """
    Half the L1 distance between two normalized color histograms.

    Returns 0.0 for identical distributions and 1.0 for disjoint ones; a
    missing histogram counts as disjoint.
    """
    if not hist1 or not hist2 or len(hist1) != len(hist2):
        return 1.0
    a = np.asarray(hist1, dtype=np.float64)
    b = np.asarray(hist2, dtype=np.float64)
    return float(np.abs(a - b).sum() / 2.0)


def _bits_to_int(bits) -> int:
    """Pack a boolean array (row-major, first bit = most significant) into an int."""
    value = 0
    for bit in np.asarray(bits).flatten():
        value = (value << 1) | int(bool(bit))
    return value


def _imagehash_to_int(image_hash) -> int:
    """Convert an imagehash.ImageHash to an unsigned int."""
    return int(str(image_hash), 16)


def compute_dhash(lum: np.ndarray) -> int:
    """
    Gradient-difference hash of a luminance array.

    Resizes to 9x8 and sets one bit per row for each pixel whose right
    neighbour is brighter.
    """
    image = Image.fromarray(lum)
    return _imagehash_to_int(imagehash.dhash(image, hash_size=DHASH_HEIGHT))


def compute_phash(lum: np.ndarray) -> int:
    """
    DCT perceptual hash of a luminance array.

    1. Resize to 32x32
    2. Apply a 2D DCT-II
    3. Keep the 64 lowest-frequency coefficients, DC excluded
    4. Set a bit for each coefficient above their median
    """
    small = Image.fromarray(lum).resize((PHASH_SIZE, PHASH_SIZE), RESAMPLE_FILTER)
    pixels = np.asarray(small, dtype=np.float64)

    dct = _DCT @ pixels @ _DCT.T
    # Rounding removes float noise so flat images hash to zero
    coefficients = np.round(dct[_PHASH_ROWS, _PHASH_COLS], 6)
    median = np.median(coefficients)

    return _bits_to_int(coefficients > median)


def sobel_gradients(lum: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Horizontal and vertical Sobel responses over the interior of a
    luminance array.

    Returns:
        (gx, gy), each an (H-2, W-2) float array
    """
    p = lum.astype(np.float64)
    top_left, top, top_right = p[:-2, :-2], p[:-2, 1:-1], p[:-2, 2:]
    left, right = p[1:-1, :-2], p[1:-1, 2:]
    bottom_left, bottom, bottom_right = p[2:, :-2], p[2:, 1:-1], p[2:, 2:]

    gx = (top_right + 2 * right + bottom_right) - (top_left + 2 * left + bottom_left)
    gy = (bottom_left + 2 * bottom + bottom_right) - (top_left + 2 * top + top_right)
    return gx, gy


def sobel_magnitude(lum: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude, (H-2, W-2)."""
    return np.hypot(*sobel_gradients(lum))


def compute_edge_hash(lum: np.ndarray) -> int:
    """
    Edge-structure hash of a luminance array.

    The Sobel magnitude map is scaled to its own maximum, so a uniform
    brightness or contrast change leaves the hash unchanged. The map is then
    reduced to 8x8 and thresholded against its mean.
    """
    magnitude = sobel_magnitude(lum)
    peak = magnitude.max() if magnitude.size else 0.0
    if peak <= 0:
        return 0

    scaled = np.clip(np.round(magnitude * (255.0 / peak)), 0, 255).astype(np.uint8)
    image = Image.fromarray(scaled)
    return _imagehash_to_int(imagehash.average_hash(image, hash_size=EDGE_HASH_SIZE))


def compute_color_histogram(rgb: np.ndarray) -> tuple:
    """
    Normalized RGB histogram with 4 bins per channel (64 buckets).

    Returns:
        Tuple of 64 floats summing to 1.0
    """
    shift = 8 - int(np.log2(HISTOGRAM_BINS_PER_CHANNEL))
    quantized = (rgb >> shift).astype(np.int64)
    bins = HISTOGRAM_BINS_PER_CHANNEL
    index = (quantized[:, :, 0] * bins + quantized[:, :, 1]) * bins + quantized[:, :, 2]

    counts = np.bincount(index.ravel(), minlength=bins ** 3)
    total = counts.sum()
    if total == 0:
        return ()
    return tuple(round(float(c), 6) for c in counts / total)


def fingerprint_from_arrays(rgb: np.ndarray, lum: np.ndarray) -> FingerprintRecord:
    """
    Compute all four fingerprints from pre-extracted arrays.

    A buffer smaller than the dHash grid yields FingerprintRecord.blank().
    """
    height, width = lum.shape
    if width < MIN_FINGERPRINT_DIMENSION or height < MIN_FINGERPRINT_DIMENSION:
        return FingerprintRecord.blank()

    return FingerprintRecord(
        dhash=compute_dhash(lum),
        phash=compute_phash(lum),
        edge_hash=compute_edge_hash(lum),
        color_histogram=compute_color_histogram(rgb),
    )


def compute_fingerprint(
    pixel_buffer,
    size: Optional[tuple[int, int]] = None,
) -> FingerprintRecord:
    """
    Compute the fingerprint record of one decoded image.

    Pure function: identical buffers always produce identical records.

    Args:
        pixel_buffer: RGB(A) raster, (H, W, C) array or flat buffer
        size: (width, height), required for flat buffers

    Returns:
        FingerprintRecord tagged with the current algorithm version
    """
    rgb = as_rgb_array(pixel_buffer, size)
    return fingerprint_from_arrays(rgb, extract_luminance(rgb))


__all__ = [
    'hamming_distance',
    'histogram_distance',
    'compute_dhash',
    'compute_phash',
    'compute_edge_hash',
    'compute_color_histogram',
    'sobel_gradients',
    'sobel_magnitude',
    'fingerprint_from_arrays',
    'compute_fingerprint',
]
