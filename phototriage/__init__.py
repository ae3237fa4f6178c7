"""
Photo Triage
============
Duplicate grouping and quality triage for photo libraries.

Features:
- Four fingerprints per image: dHash, pHash, edgeHash, color histogram
- Adaptive time windows instead of all-pairs comparison
- Representative-checked grouping that resists chain errors
- Quality scoring: blur, motion blur, misfocus, exposure, contrast, noise
- Screenshot detection to suppress false quality flags
- SQLite fingerprint cache with algorithm versioning
"""

__version__ = "1.0.0"

from .models import (
    ImageSample,
    FingerprintRecord,
    QualityIssue,
    QualityRecord,
    CandidatePair,
    DuplicateGroup,
    ScanPhase,
    ScanStats,
    ScanResult,
)
from .config import ALGORITHM_VERSION
from .user_config import EngineConfig, UserConfig, DEFAULT_CONFIG
from .scanner import (
    compute_fingerprint,
    compute_quality,
    find_candidate_pairs,
    assemble_groups,
    build_duplicate_groups,
    hamming_distance,
    histogram_distance,
    scan_batch,
)
from .database import FingerprintCache, InMemoryFingerprintStore
from .decoding import load_pixel_buffer, load_sample

__all__ = [
    "ImageSample",
    "FingerprintRecord",
    "QualityIssue",
    "QualityRecord",
    "CandidatePair",
    "DuplicateGroup",
    "ScanPhase",
    "ScanStats",
    "ScanResult",
    "ALGORITHM_VERSION",
    "EngineConfig",
    "UserConfig",
    "DEFAULT_CONFIG",
    "compute_fingerprint",
    "compute_quality",
    "find_candidate_pairs",
    "assemble_groups",
    "build_duplicate_groups",
    "hamming_distance",
    "histogram_distance",
    "scan_batch",
    "FingerprintCache",
    "InMemoryFingerprintStore",
    "load_pixel_buffer",
    "load_sample",
]
