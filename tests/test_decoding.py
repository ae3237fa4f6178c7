"""
Unit tests for the pixel-buffer provider.
"""

import os

import numpy as np
from PIL import Image

from phototriage.decoding import load_pixel_buffer, load_sample


class TestLoadSample:
    """Test decoding files into ImageSample."""

    def test_png(self, temp_dir):
        """Test a PNG is decoded to a 256x256 RGB raster with original metadata."""
        path = temp_dir / "wide.png"
        Image.new('RGB', (100, 50), color='red').save(path, 'PNG')

        sample = load_sample(path)
        assert sample is not None
        assert sample.pixels.shape == (256, 256, 3)
        assert sample.pixels.dtype == np.uint8
        assert (sample.width, sample.height) == (100, 50)
        assert sample.file_size == os.path.getsize(path)
        assert sample.identifier == str(path)

    def test_rgba_and_grayscale(self, temp_dir):
        """Test non-RGB modes are converted."""
        for mode, color in (('RGBA', (0, 0, 255, 128)), ('L', 90)):
            path = temp_dir / f"{mode}.png"
            Image.new(mode, (20, 20), color=color).save(path, 'PNG')
            assert load_sample(path).pixels.shape == (256, 256, 3)

    def test_custom_size_and_identifier(self, temp_dir):
        """Test buffer size and identifier can be chosen."""
        path = temp_dir / "img.png"
        Image.new('RGB', (40, 40), color='blue').save(path, 'PNG')
        sample = load_sample(path, identifier="content://media/42", size=64)
        assert sample.pixels.shape == (64, 64, 3)
        assert sample.identifier == "content://media/42"

    def test_timestamp_defaults_to_mtime(self, temp_dir):
        """Test the file mtime is used without EXIF."""
        path = temp_dir / "img.png"
        Image.new('RGB', (10, 10)).save(path, 'PNG')
        os.utime(path, (1_600_000_000, 1_600_000_000))
        assert load_sample(path).timestamp == 1_600_000_000

    def test_explicit_timestamp(self, temp_dir):
        """Test a caller-supplied timestamp wins."""
        path = temp_dir / "img.png"
        Image.new('RGB', (10, 10)).save(path, 'PNG')
        assert load_sample(path, timestamp=42.0).timestamp == 42.0

    def test_exif_timestamp(self, temp_dir):
        """Test the EXIF capture date is used when present."""
        path = temp_dir / "img.jpg"
        exif = Image.Exif()
        exif[306] = "2021:06:01 12:30:00"
        Image.new('RGB', (10, 10)).save(path, 'JPEG', exif=exif)
        os.utime(path, (1_600_000_000, 1_600_000_000))
        assert load_sample(path).timestamp != 1_600_000_000

    def test_not_an_image(self, temp_dir):
        """Test an undecodable file is skipped."""
        path = temp_dir / "notes.txt"
        path.write_text("not an image")
        assert load_sample(path) is None

    def test_missing_file(self, temp_dir):
        """Test a missing file is skipped."""
        assert load_sample(temp_dir / "missing.png") is None


class TestLoadPixelBuffer:
    """Test load_pixel_buffer."""

    def test_buffer(self, temp_dir):
        """Test the raster alone is returned."""
        path = temp_dir / "img.png"
        Image.new('RGB', (30, 30), color=(10, 200, 30)).save(path, 'PNG')
        buffer = load_pixel_buffer(path)
        assert buffer.shape == (256, 256, 3)
        assert tuple(buffer[128, 128]) == (10, 200, 30)

    def test_failure(self, temp_dir):
        """Test failure returns None."""
        path = temp_dir / "broken.jpg"
        path.write_bytes(b"\xff\xd8\xff garbage")
        assert load_pixel_buffer(path) is None
