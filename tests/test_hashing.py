"""
Unit tests for the fingerprint engine.
"""

import pytest
import numpy as np

from phototriage.config import (
    ALGORITHM_VERSION,
    DHASH_THRESHOLD,
    PHASH_THRESHOLD,
    EDGE_HASH_THRESHOLD,
)
from phototriage.models import FingerprintRecord
from phototriage.scanner.hashing import (
    compute_fingerprint,
    compute_color_histogram,
    compute_dhash,
    hamming_distance,
    histogram_distance,
    sobel_gradients,
    sobel_magnitude,
)
from phototriage.scanner.luminance import extract_luminance


class TestHammingDistance:
    """Test Hamming distance on 64-bit fingerprints."""

    def test_identical(self):
        """Test distance to itself is zero."""
        assert hamming_distance(0xDEADBEEFCAFEBABE, 0xDEADBEEFCAFEBABE) == 0

    def test_all_bits(self):
        """Test complementary 64-bit values differ everywhere."""
        assert hamming_distance(0, 2 ** 64 - 1) == 64

    def test_symmetric(self, rng):
        """Test distance(X, Y) == distance(Y, X) for random pairs."""
        for _ in range(50):
            x = int(rng.integers(0, 2 ** 62)) << 2
            y = int(rng.integers(0, 2 ** 62))
            assert hamming_distance(x, y) == hamming_distance(y, x)
            assert hamming_distance(x, x) == 0

    def test_single_bit(self):
        """Test one flipped bit."""
        assert hamming_distance(0b1000, 0b0000) == 1


class TestHistogramDistance:
    """Test color histogram distance."""

    def test_identical(self, noise_image):
        """Test identical histograms have distance 0."""
        hist = compute_color_histogram(noise_image)
        assert histogram_distance(hist, hist) == pytest.approx(0.0)

    def test_disjoint(self):
        """Test pure red vs pure blue is maximally distant."""
        red = np.zeros((16, 16, 3), dtype=np.uint8)
        red[:, :, 0] = 255
        blue = np.zeros((16, 16, 3), dtype=np.uint8)
        blue[:, :, 2] = 255
        distance = histogram_distance(compute_color_histogram(red), compute_color_histogram(blue))
        assert distance == pytest.approx(1.0)

    def test_missing_histogram(self):
        """Test an empty histogram counts as disjoint."""
        assert histogram_distance((), (1.0,)) == 1.0
        assert histogram_distance((1.0, 0.0), (1.0,)) == 1.0


class TestColorHistogram:
    """Test the 4x4x4 color histogram."""

    def test_normalized(self, noise_image):
        """Test 64 buckets summing to 1."""
        hist = compute_color_histogram(noise_image)
        assert len(hist) == 64
        assert sum(hist) == pytest.approx(1.0, abs=1e-4)

    def test_single_color(self, gray_image):
        """Test a uniform image fills exactly one bucket."""
        hist = compute_color_histogram(gray_image)
        assert sorted(hist)[-1] == pytest.approx(1.0)
        assert sum(1 for v in hist if v > 0) == 1


class TestSobel:
    """Test the shared Sobel operator."""

    def test_horizontal_ramp(self):
        """Test a left-to-right ramp responds in x only."""
        lum = np.tile(np.arange(0, 100, 10, dtype=np.uint8), (6, 1))
        gx, gy = sobel_gradients(lum)
        assert gx.shape == gy.shape == (4, 8)
        assert np.all(gx == 80.0)
        assert np.all(gy == 0.0)

    def test_magnitude_combines_gradients(self, rng):
        """Test the magnitude is built from the same gx and gy."""
        lum = rng.integers(0, 256, size=(16, 16), dtype=np.uint8)
        gx, gy = sobel_gradients(lum)
        assert np.allclose(sobel_magnitude(lum), np.hypot(gx, gy))


class TestComputeFingerprint:
    """Test compute_fingerprint."""

    def test_deterministic(self, noise_image):
        """Test identical buffers give bit-identical records."""
        assert compute_fingerprint(noise_image) == compute_fingerprint(noise_image.copy())

    def test_versioned(self, noise_image):
        """Test records carry the running algorithm version."""
        record = compute_fingerprint(noise_image)
        assert record.version == ALGORITHM_VERSION
        assert record.is_current

    def test_hashes_are_64_bit(self, noise_image):
        """Test every hash fits in an unsigned 64-bit int."""
        record = compute_fingerprint(noise_image)
        for value in (record.dhash, record.phash, record.edge_hash):
            assert 0 <= value < 2 ** 64

    def test_self_similarity(self, noise_image):
        """Test an image matches itself at every threshold."""
        a = compute_fingerprint(noise_image)
        b = compute_fingerprint(noise_image)
        assert hamming_distance(a.dhash, b.dhash) == 0 <= DHASH_THRESHOLD
        assert hamming_distance(a.phash, b.phash) == 0 <= PHASH_THRESHOLD
        assert hamming_distance(a.edge_hash, b.edge_hash) == 0 <= EDGE_HASH_THRESHOLD
        assert histogram_distance(a.color_histogram, b.color_histogram) == pytest.approx(0.0)

    def test_different_images_differ(self, noise_image, other_noise_image):
        """Test unrelated images are far apart in dHash and pHash."""
        a = compute_fingerprint(noise_image)
        b = compute_fingerprint(other_noise_image)
        assert hamming_distance(a.dhash, b.dhash) > DHASH_THRESHOLD
        assert hamming_distance(a.phash, b.phash) > PHASH_THRESHOLD

    def test_flat_buffer(self, noise_image):
        """Test a flat buffer plus size gives the same record as the array."""
        flat = compute_fingerprint(noise_image.ravel(), size=(256, 256))
        assert flat == compute_fingerprint(noise_image)

    def test_alpha_ignored(self, noise_image):
        """Test RGBA and RGB versions of an image fingerprint the same."""
        alpha = np.full((256, 256, 1), 255, dtype=np.uint8)
        rgba = np.concatenate([noise_image, alpha], axis=2)
        assert compute_fingerprint(rgba) == compute_fingerprint(noise_image)

    def test_uniform_image(self, gray_image):
        """Test a flat image hashes to zero and carries no signal."""
        record = compute_fingerprint(gray_image)
        assert record.dhash == 0
        assert record.phash == 0
        assert record.edge_hash == 0
        assert record.is_blank

    def test_too_small_is_blank(self):
        """Test buffers below the dHash grid give the blank record."""
        record = compute_fingerprint(np.full((5, 5, 3), 100, dtype=np.uint8))
        assert record == FingerprintRecord.blank()
        assert record.is_blank

    def test_minimum_size(self, rng):
        """Test a 9x9 buffer is fingerprinted."""
        tiny = rng.integers(0, 256, size=(9, 9, 3), dtype=np.uint8)
        assert not compute_fingerprint(tiny).is_blank

    def test_malformed_buffer(self):
        """Test a buffer that is not an RGB raster raises ValueError."""
        with pytest.raises(ValueError):
            compute_fingerprint(np.zeros((10, 10), dtype=np.uint8))

    def test_edge_hash_ignores_contrast_scaling(self, block_pattern):
        """Test halving every luminance value leaves the edge hash (nearly) unchanged."""
        bright = compute_fingerprint(block_pattern(200, 40))
        dim = compute_fingerprint(block_pattern(100, 20))
        assert hamming_distance(bright.edge_hash, dim.edge_hash) <= 2

    def test_dhash_gradient_direction(self):
        """Test a left-to-right brightening ramp sets every dHash bit."""
        ramp = np.tile(np.arange(0, 256, 1, dtype=np.uint8), (256, 1))
        assert compute_dhash(ramp) == 2 ** 64 - 1

    def test_dhash_gradient_reversed(self):
        """Test a right-to-left ramp clears every dHash bit."""
        ramp = np.tile(np.arange(255, -1, -1).astype(np.uint8), (256, 1))
        assert compute_dhash(ramp) == 0

    def test_luminance_roundtrip(self, noise_image):
        """Test dHash computed from extracted luminance matches the record."""
        record = compute_fingerprint(noise_image)
        assert compute_dhash(extract_luminance(noise_image)) == record.dhash
