"""
Data models for the photo triage engine.

Contains dataclasses for engine inputs (ImageSample), per-image outputs
(FingerprintRecord, QualityRecord) and duplicate grouping results.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

from .config import (
    ALGORITHM_VERSION,
    NEUTRAL_SHARPNESS,
    NEUTRAL_EXPOSURE,
    NEUTRAL_NOISE,
    NEUTRAL_QUALITY,
)


@dataclass(frozen=True)
class ImageSample:
    """
    One image handed to the engine by the caller.

    Attributes:
        identifier: Opaque identifier (URI, path, database key)
        pixels: Decoded RGB or RGBA raster, numpy array of shape (H, W, C),
            or flat RGB/RGBA bytes of a DEFAULT_BUFFER_SIZE square
        timestamp: Capture time in seconds since the epoch
        file_size: Size of the original file in bytes (0 = unknown)
        width: Raw pixel width of the original image (0 = unknown)
        height: Raw pixel height of the original image (0 = unknown)
    """
    identifier: str
    pixels: Any
    timestamp: float = 0.0
    file_size: int = 0
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class FingerprintRecord:
    """
    The four fingerprints of one image, computed together.

    Attributes:
        dhash: 64-bit gradient-difference hash
        phash: 64-bit DCT perceptual hash
        edge_hash: 64-bit edge-structure hash
        color_histogram: Normalized 4x4x4 RGB bucket frequencies
        version: Algorithm version that produced the record
    """
    dhash: int = 0
    phash: int = 0
    edge_hash: int = 0
    color_histogram: tuple = ()
    version: int = ALGORITHM_VERSION

    @classmethod
    def blank(cls) -> 'FingerprintRecord':
        """Neutral record for buffers too small to fingerprint."""
        return cls()

    @property
    def is_blank(self) -> bool:
        """
        True when the record carries no signal: degenerate input, or a
        featureless frame whose three hashes are all zero.
        """
        if not any(self.color_histogram):
            return True
        return not (self.dhash or self.phash or self.edge_hash)

    @property
    def is_current(self) -> bool:
        """True when the record was produced by the running algorithm version."""
        return self.version == ALGORITHM_VERSION

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'dhash': f"{self.dhash:016x}",
            'phash': f"{self.phash:016x}",
            'edge_hash': f"{self.edge_hash:016x}",
            'color_histogram': list(self.color_histogram),
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'FingerprintRecord':
        """Create FingerprintRecord from dictionary."""
        return cls(
            dhash=int(data.get('dhash', '0'), 16),
            phash=int(data.get('phash', '0'), 16),
            edge_hash=int(data.get('edge_hash', '0'), 16),
            color_histogram=tuple(data.get('color_histogram', ())),
            version=data.get('version', 0),
        )


class QualityIssue(enum.Enum):
    """Closed set of quality problems, in no particular order."""
    VERY_DARK = "very_dark"
    VERY_BRIGHT = "very_bright"
    UNDEREXPOSED = "underexposed"
    OVEREXPOSED = "overexposed"
    BLURRY = "blurry"
    MOTION_BLUR = "motion_blur"
    MISFOCUSED = "misfocused"
    NOISY = "noisy"
    LOW_CONTRAST = "low_contrast"

    @property
    def label(self) -> str:
        """Human-readable label for display."""
        return ISSUE_LABELS[self]


ISSUE_LABELS = {
    QualityIssue.VERY_DARK: "Too Dark",
    QualityIssue.VERY_BRIGHT: "White",
    QualityIssue.UNDEREXPOSED: "Too Dark",
    QualityIssue.OVEREXPOSED: "Overexposed",
    QualityIssue.BLURRY: "Blurry",
    QualityIssue.MOTION_BLUR: "Motion Blur",
    QualityIssue.MISFOCUSED: "Out of Focus",
    QualityIssue.NOISY: "Noisy",
    QualityIssue.LOW_CONTRAST: "Low Contrast",
}


@dataclass(frozen=True)
class QualityRecord:
    """
    Quality scores of one image.

    Attributes:
        sharpness: Top-quartile tiled sharpness (0-1)
        exposure: Exposure score (0-1)
        noise: Block-variance noise estimate (0-1, higher = noisier)
        overall: Weighted quality minus issue penalties (0-1)
        issues: Detected issues in detection order (first = primary)
        is_screenshot: Whether the screenshot heuristic fired
        analyzed: False when the buffer was too small and neutral values were used
    """
    sharpness: float
    exposure: float
    noise: float
    overall: float
    issues: tuple = ()
    is_screenshot: bool = False
    analyzed: bool = True

    @classmethod
    def neutral(cls) -> 'QualityRecord':
        """Neutral record for buffers too small to tile."""
        return cls(
            sharpness=NEUTRAL_SHARPNESS,
            exposure=NEUTRAL_EXPOSURE,
            noise=NEUTRAL_NOISE,
            overall=NEUTRAL_QUALITY,
            analyzed=False,
        )

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    @property
    def primary_issue(self) -> Optional[QualityIssue]:
        """The issue shown first in a UI, if any."""
        return self.issues[0] if self.issues else None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'sharpness': round(self.sharpness, 3),
            'exposure': round(self.exposure, 3),
            'noise': round(self.noise, 3),
            'overall': round(self.overall, 3),
            'issues': [issue.value for issue in self.issues],
            'is_screenshot': self.is_screenshot,
            'analyzed': self.analyzed,
        }


class CandidatePair(NamedTuple):
    """Two identifiers judged similar enough to group. Never persisted."""
    first: str
    second: str


@dataclass
class DuplicateGroup:
    """
    A group of duplicate images.

    Attributes:
        id: Unique identifier for this group within one scan
        members: Identifiers in insertion order; the first one is kept
    """
    id: int
    members: list = field(default_factory=list)

    @property
    def representative(self) -> Optional[str]:
        """The member kept by default (first inserted)."""
        return self.members[0] if self.members else None

    @property
    def deletion_candidates(self) -> list:
        """Every member except the representative."""
        return self.members[1:]

    @property
    def image_count(self) -> int:
        """Number of images in this group."""
        return len(self.members)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'image_count': self.image_count,
            'members': list(self.members),
            'representative': self.representative,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'DuplicateGroup':
        """Create DuplicateGroup from dictionary."""
        return cls(id=data['id'], members=list(data.get('members', [])))


class ScanPhase(enum.Enum):
    """Phase tag attached to progress reports."""
    HASHING = "hashing"
    COMPARING = "comparing"
    COMPLETE = "complete"


@dataclass
class ScanStats:
    """Counters collected during one batch scan."""
    total_images: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    computed: int = 0
    skipped: int = 0
    failed: int = 0
    persisted: int = 0
    windows: int = 0
    comparisons: int = 0
    candidate_pairs: int = 0

    @property
    def hit_rate(self) -> float:
        """Return cache hit rate as percentage."""
        if self.total_images == 0:
            return 0.0
        return (self.cache_hits / self.total_images) * 100


@dataclass
class ScanResult:
    """
    Everything a batch scan produces.

    Attributes:
        fingerprints: identifier -> FingerprintRecord (cached or computed)
        quality: identifier -> QualityRecord
        groups: Duplicate groups (empty when the scan was cancelled)
        failed: identifier -> error message for images whose work raised
        stats: ScanStats counters
        cancelled: True when the scan stopped early
    """
    fingerprints: dict = field(default_factory=dict)
    quality: dict = field(default_factory=dict)
    groups: list = field(default_factory=list)
    failed: dict = field(default_factory=dict)
    stats: ScanStats = field(default_factory=ScanStats)
    cancelled: bool = False

    @property
    def duplicate_count(self) -> int:
        """Number of images that are deletion candidates."""
        return sum(len(group.deletion_candidates) for group in self.groups)

    def group_of(self, identifier: str) -> Optional[DuplicateGroup]:
        """Return the group containing identifier, if any."""
        for group in self.groups:
            if identifier in group.members:
                return group
        return None
