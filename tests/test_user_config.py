"""
Unit tests for engine configuration.
"""

import json
import os

import pytest

from phototriage.config import DHASH_THRESHOLD, WINDOW_DENSITY_BANDS, SPARSE_WINDOW_SECONDS
from phototriage.user_config import EngineConfig, UserConfig, DEFAULT_CONFIG


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep PHOTOTRIAGE_* variables from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("PHOTOTRIAGE_"):
            monkeypatch.delenv(key)


class TestEngineConfig:
    """Test EngineConfig."""

    def test_defaults(self):
        """Test documented default values."""
        assert DEFAULT_CONFIG.dhash_threshold == DHASH_THRESHOLD == 12
        assert DEFAULT_CONFIG.phash_threshold == 10
        assert DEFAULT_CONFIG.edge_hash_threshold == 10
        assert DEFAULT_CONFIG.representative_threshold == 22
        assert DEFAULT_CONFIG.window_density_bands == WINDOW_DENSITY_BANDS
        assert not DEFAULT_CONFIG.flag_noise
        assert 1 <= DEFAULT_CONFIG.max_workers <= 8

    def test_defaults_are_valid(self):
        """Test the defaults pass validation."""
        assert DEFAULT_CONFIG.validate() is DEFAULT_CONFIG

    @pytest.mark.parametrize("rate,width", [
        (150, 900),
        (101, 900),
        (100, 1800),
        (60, 1800),
        (30, 3600),
        (20, SPARSE_WINDOW_SECONDS),
        (0, SPARSE_WINDOW_SECONDS),
    ])
    def test_window_seconds_for_rate(self, rate, width):
        """Test band selection; each band needs a rate strictly above its minimum."""
        assert DEFAULT_CONFIG.window_seconds_for_rate(rate) == width

    def test_max_window_seconds(self):
        """Test the widest window."""
        assert DEFAULT_CONFIG.max_window_seconds == SPARSE_WINDOW_SECONDS

    @pytest.mark.parametrize("overrides", [
        dict(dhash_threshold=-1),
        dict(dhash_threshold=65),
        dict(phash_threshold=12),
        dict(color_histogram_max_distance=1.5),
        dict(aspect_ratio_tolerance=0.9),
        dict(max_workers=0),
        dict(progress_interval=0),
        dict(top_tile_count=0),
        dict(window_density_bands=((20, 3600), (100, 900))),
        dict(window_density_bands=((100, 3600), (50, 900))),
        dict(window_density_bands=((100, 900),), sparse_window_seconds=600),
    ])
    def test_invalid(self, overrides):
        """Test impossible values are rejected."""
        with pytest.raises(ValueError):
            EngineConfig(**overrides).validate()

    def test_frozen(self):
        """Test configurations are immutable."""
        with pytest.raises(AttributeError):
            DEFAULT_CONFIG.dhash_threshold = 3


class TestUserConfig:
    """Test UserConfig loading."""

    def test_defaults_without_file(self, temp_dir):
        """Test a missing file yields the defaults."""
        config = UserConfig(config_dir=temp_dir).engine_config()
        assert config == DEFAULT_CONFIG

    def test_file_values(self, temp_dir):
        """Test values from config.json are used."""
        (temp_dir / "config.json").write_text(json.dumps({
            "dhash_threshold": 14,
            "flag_noise": True,
            "window_density_bands": [[200, 600], [50, 1800]],
        }))
        config = UserConfig(config_dir=temp_dir).engine_config()
        assert config.dhash_threshold == 14
        assert config.flag_noise is True
        assert config.window_density_bands == ((200, 600), (50, 1800))

    def test_env_overrides_file(self, temp_dir, monkeypatch):
        """Test environment variables win over the file."""
        (temp_dir / "config.json").write_text(json.dumps({"dhash_threshold": 14}))
        monkeypatch.setenv("PHOTOTRIAGE_DHASH_THRESHOLD", "16")
        assert UserConfig(config_dir=temp_dir).engine_config().dhash_threshold == 16

    def test_runtime_overrides_win(self, temp_dir, monkeypatch):
        """Test keyword overrides win over every other source."""
        monkeypatch.setenv("PHOTOTRIAGE_MAX_WORKERS", "2")
        config = UserConfig(config_dir=temp_dir).engine_config(max_workers=5)
        assert config.max_workers == 5

    def test_invalid_values_raise(self, temp_dir):
        """Test an impossible file value is reported."""
        (temp_dir / "config.json").write_text(json.dumps({"max_workers": 0}))
        with pytest.raises(ValueError):
            UserConfig(config_dir=temp_dir).engine_config()

    def test_corrupt_file_ignored(self, temp_dir):
        """Test an unreadable file falls back to defaults."""
        (temp_dir / "config.json").write_text("{not json")
        assert UserConfig(config_dir=temp_dir).engine_config() == DEFAULT_CONFIG

    def test_config_dir_from_env(self, temp_dir, monkeypatch):
        """Test the directory can come from the environment."""
        monkeypatch.setenv("PHOTOTRIAGE_CONFIG_DIR", str(temp_dir))
        assert UserConfig().config_file_path == temp_dir / "config.json"

    def test_cache_db_file(self, temp_dir, monkeypatch):
        """Test the cache path can be overridden."""
        user_config = UserConfig(config_dir=temp_dir)
        assert user_config.cache_db_file.endswith("fingerprints.db")
        monkeypatch.setenv("PHOTOTRIAGE_CACHE_DB", str(temp_dir / "other.db"))
        assert user_config.cache_db_file == str(temp_dir / "other.db")

    def test_reload(self, temp_dir):
        """Test reload picks up file changes."""
        user_config = UserConfig(config_dir=temp_dir)
        assert user_config.get("dhash_threshold") is None
        (temp_dir / "config.json").write_text(json.dumps({"dhash_threshold": 13}))
        assert user_config.get("dhash_threshold") is None
        user_config.reload()
        assert user_config.get("dhash_threshold") == 13

    def test_create_example_config(self, temp_dir):
        """Test the example file round-trips to the defaults."""
        user_config = UserConfig(config_dir=temp_dir / "new")
        assert user_config.create_example_config()
        assert user_config.config_file_path.exists()
        assert user_config.engine_config() == DEFAULT_CONFIG
