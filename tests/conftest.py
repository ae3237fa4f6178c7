"""
Pytest configuration and shared fixtures for test suite.
"""

import pytest
import tempfile
import shutil
from pathlib import Path

import numpy as np

from phototriage.models import FingerprintRecord


UNIFORM_HISTOGRAM = (1.0,) + (0.0,) * 63

# Non-zero edge hash so hand-built records are not mistaken for featureless frames
EDGE_SIGNAL = 0xFFFF000000000000


def make_record(dhash=0, phash=0, edge_hash=EDGE_SIGNAL, histogram=UNIFORM_HISTOGRAM, version=None):
    """Build a FingerprintRecord by hand."""
    if version is None:
        return FingerprintRecord(dhash, phash, edge_hash, tuple(histogram))
    return FingerprintRecord(dhash, phash, edge_hash, tuple(histogram), version)


def bits(*positions):
    """Integer with the given bit positions set."""
    value = 0
    for position in positions:
        value |= 1 << position
    return value


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def temp_cache_db(temp_dir):
    """Create a temporary database file for cache tests."""
    db_path = temp_dir / "test_cache.db"
    return str(db_path)


@pytest.fixture
def rng():
    """Seeded random generator so synthetic rasters are reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def noise_image(rng):
    """256x256 RGB uniform noise: sharp, mid brightness, full palette."""
    return rng.integers(0, 256, size=(256, 256, 3), dtype=np.uint8)


@pytest.fixture
def other_noise_image():
    """A second, unrelated noise raster."""
    return np.random.default_rng(98765).integers(0, 256, size=(256, 256, 3), dtype=np.uint8)


@pytest.fixture
def gray_image():
    """Uniform mid-gray raster with no edges at all."""
    return np.full((256, 256, 3), 128, dtype=np.uint8)


@pytest.fixture
def dark_image():
    """Near-black raster."""
    return np.full((256, 256, 3), 5, dtype=np.uint8)


@pytest.fixture
def document_screenshot():
    """
    White page with 16 thin black text bars.

    About 94% white, so a photo this bright would be flagged overexposed.
    """
    img = np.full((256, 256, 3), 255, dtype=np.uint8)
    for y in range(8, 256, 16):
        img[y:y + 2, 64:192] = 0
    return img


@pytest.fixture
def dark_mode_screenshot():
    """Black page with white text bars."""
    img = np.zeros((256, 256, 3), dtype=np.uint8)
    for y in range(8, 256, 16):
        img[y:y + 2, 32:224] = 255
    return img


@pytest.fixture
def motion_blurred_image():
    """
    Gray raster that varies smoothly along y and barely along x.

    Vertical gradients dominate horizontal ones, as in a vertical smear.
    """
    y, x = np.mgrid[0:256, 0:256]
    values = 128 + 40 * np.sin(2 * np.pi * y / 40) + 3 * np.sin(2 * np.pi * x / 40)
    gray = np.clip(np.round(values), 0, 255).astype(np.uint8)
    return np.stack([gray, gray, gray], axis=2)


@pytest.fixture
def block_pattern():
    """Factory for a large-block two-level pattern (structured, not noise)."""
    def _make(high, low):
        img = np.full((256, 256, 3), low, dtype=np.uint8)
        img[32:96, 32:160] = high
        img[128:224, 96:224] = high
        img[160:200, 16:64] = high
        return img
    return _make
