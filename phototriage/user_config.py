"""
User configuration management for the photo triage engine.

Every tunable lives on an EngineConfig that callers pass explicitly into the
engine. UserConfig builds one from multiple sources (in order of priority):
1. Environment variables (PHOTOTRIAGE_*)
2. User config file (~/.phototriage/config.json)
3. Default values from config.py (lowest priority)

Example config.json:
{
    "dhash_threshold": 12,
    "phash_threshold": 10,
    "edge_hash_threshold": 10,
    "representative_slack": 10,
    "max_workers": 4,
    "flag_noise": false,
    "window_density_bands": [[100, 900], [50, 1800], [20, 3600]],
    "sparse_window_seconds": 7200
}
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from .config import (
    DHASH_THRESHOLD,
    PHASH_THRESHOLD,
    EDGE_HASH_THRESHOLD,
    REPRESENTATIVE_SLACK,
    COLOR_HISTOGRAM_MAX_DISTANCE,
    ASPECT_RATIO_TOLERANCE,
    FILE_SIZE_TOLERANCE,
    WINDOW_DENSITY_BANDS,
    SPARSE_WINDOW_SECONDS,
    DENSITY_PROBE_SECONDS,
    DEFAULT_WORKERS,
    PROGRESS_INTERVAL,
    PERSIST_BATCH_SIZE,
    TOP_TILE_COUNT,
    SCREENSHOT_MAX_PALETTE_COLORS,
    CONFIG_DIR,
    CACHE_DB_FILE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """
    Tunable parameters of the engine.

    The numeric defaults are empirically tuned; they are consistent with each
    other, not canonical.
    """
    dhash_threshold: int = DHASH_THRESHOLD
    phash_threshold: int = PHASH_THRESHOLD
    edge_hash_threshold: int = EDGE_HASH_THRESHOLD
    representative_slack: int = REPRESENTATIVE_SLACK
    color_histogram_max_distance: float = COLOR_HISTOGRAM_MAX_DISTANCE
    aspect_ratio_tolerance: float = ASPECT_RATIO_TOLERANCE
    file_size_tolerance: float = FILE_SIZE_TOLERANCE
    window_density_bands: tuple = WINDOW_DENSITY_BANDS
    sparse_window_seconds: float = SPARSE_WINDOW_SECONDS
    density_probe_seconds: float = DENSITY_PROBE_SECONDS
    max_workers: int = DEFAULT_WORKERS
    progress_interval: int = PROGRESS_INTERVAL
    persist_batch_size: int = PERSIST_BATCH_SIZE
    top_tile_count: int = TOP_TILE_COUNT
    screenshot_max_palette_colors: int = SCREENSHOT_MAX_PALETTE_COLORS
    flag_noise: bool = False

    @property
    def representative_threshold(self) -> int:
        """Relaxed dHash threshold used against group representatives."""
        return self.dhash_threshold + self.representative_slack

    @property
    def max_window_seconds(self) -> float:
        """Widest window any density can produce."""
        widths = [width for _, width in self.window_density_bands]
        return max([self.sparse_window_seconds] + widths)

    def window_seconds_for_rate(self, photos_per_hour: float) -> float:
        """Pick the window width for a local capture rate."""
        for min_rate, width in self.window_density_bands:
            if photos_per_hour > min_rate:
                return width
        return self.sparse_window_seconds

    def validate(self) -> 'EngineConfig':
        """
        Check the configuration for impossible values.

        Returns:
            self, so calls can be chained

        Raises:
            ValueError: If any value is out of range
        """
        for name in ('dhash_threshold', 'phash_threshold', 'edge_hash_threshold',
                     'representative_slack'):
            value = getattr(self, name)
            if not 0 <= value <= 64:
                raise ValueError(f"{name} must be between 0 and 64, got {value}")
        if self.phash_threshold >= self.dhash_threshold:
            raise ValueError(
                f"phash_threshold ({self.phash_threshold}) must be stricter than "
                f"dhash_threshold ({self.dhash_threshold})"
            )
        if not 0.0 <= self.color_histogram_max_distance <= 1.0:
            raise ValueError("color_histogram_max_distance must be between 0 and 1")
        if self.aspect_ratio_tolerance < 1.0 or self.file_size_tolerance < 1.0:
            raise ValueError("aspect/file size tolerances must be >= 1.0")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.progress_interval < 1 or self.persist_batch_size < 1:
            raise ValueError("progress_interval and persist_batch_size must be >= 1")
        if self.top_tile_count < 1:
            raise ValueError("top_tile_count must be >= 1")
        if self.sparse_window_seconds <= 0 or self.density_probe_seconds <= 0:
            raise ValueError("window widths must be positive")

        rates = [rate for rate, _ in self.window_density_bands]
        widths = [width for _, width in self.window_density_bands]
        if rates != sorted(rates, reverse=True):
            raise ValueError("window_density_bands must be ordered from densest to sparsest")
        if any(width <= 0 for width in widths):
            raise ValueError("window widths must be positive")
        if widths != sorted(widths) or (widths and widths[-1] > self.sparse_window_seconds):
            raise ValueError("denser bands must not have wider windows")
        return self


DEFAULT_CONFIG = EngineConfig()


# Environment variable suffix for each EngineConfig field
_ENV_PREFIX = 'PHOTOTRIAGE_'


class UserConfig:
    """
    Loads engine configuration from file and environment variables.

    The file is read lazily and cached per instance.
    """

    def __init__(self, config_dir: Optional[str | Path] = None):
        self._config_dir = Path(config_dir) if config_dir else None
        self._config_data: Optional[dict] = None

    @property
    def config_dir(self) -> Path:
        """Explicit directory, then $PHOTOTRIAGE_CONFIG_DIR, then ~/.phototriage."""
        if self._config_dir is not None:
            return self._config_dir
        return Path(os.getenv(_ENV_PREFIX + "CONFIG_DIR") or CONFIG_DIR)

    @property
    def config_file_path(self) -> Path:
        return self.config_dir / 'config.json'

    def _file_values(self) -> dict:
        """Parsed config.json, read once per instance; missing or unreadable files give {}."""
        if self._config_data is not None:
            return self._config_data

        self._config_data = {}
        path = self.config_file_path
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable config file {path}: {e}")
            else:
                if isinstance(data, dict):
                    self._config_data = data
                    logger.debug(f"Loaded configuration from {path}")
                else:
                    logger.warning(f"Ignoring config file {path}: top level is not an object")
        return self._config_data

    def reload(self):
        """Forget the cached file contents; the next lookup rereads config.json."""
        self._config_data = None

    def get(self, key: str, default: Any = None, env_var: Optional[str] = None) -> Any:
        """
        Look up key: env_var (if given) wins over config.json, which wins
        over default. Environment values are parsed as JSON when possible,
        so "14", "true" and "[[100, 900]]" arrive typed.
        """
        raw = os.getenv(env_var) if env_var else None
        if raw is not None:
            try:
                return json.loads(raw)
            except ValueError:
                return raw
        return self._file_values().get(key, default)

    @property
    def cache_db_file(self) -> str:
        """Path to the fingerprint cache database."""
        custom = self.get('cache_db_file', env_var='PHOTOTRIAGE_CACHE_DB')
        if custom:
            return custom
        return CACHE_DB_FILE

    def engine_config(self, **overrides) -> EngineConfig:
        """
        Build a validated EngineConfig.

        Args:
            **overrides: Runtime values that win over every other source

        Returns:
            EngineConfig
        """
        values = {}
        for f in fields(EngineConfig):
            default = getattr(DEFAULT_CONFIG, f.name)
            value = self.get(f.name, default=default, env_var=_ENV_PREFIX + f.name.upper())
            if f.name == 'window_density_bands':
                value = tuple((band[0], band[1]) for band in value)
            values[f.name] = value

        config = replace(EngineConfig(**values), **overrides)
        return config.validate()

    def create_example_config(self) -> bool:
        """Create an example configuration file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        example_config = {"_comment": "Photo triage engine configuration"}
        for f in fields(EngineConfig):
            value = getattr(DEFAULT_CONFIG, f.name)
            if f.name == 'window_density_bands':
                value = [list(band) for band in value]
            example_config[f.name] = value
        example_config['cache_db_file'] = None

        try:
            with open(self.config_file_path, 'w', encoding='utf-8') as f:
                json.dump(example_config, f, indent=2)
            logger.info(f"Created example config file at {self.config_file_path}")
            return True
        except OSError as e:
            logger.error(f"Failed to create example config: {e}")
            return False
