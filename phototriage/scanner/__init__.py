"""
Scanner package for the photo triage engine.

Provides the computation core: fingerprints, quality scores, candidate
clustering and group assembly, plus a parallel batch driver.

Public API:
- compute_fingerprint: dHash, pHash, edgeHash and color histogram of a raster
- compute_quality: Sharpness, exposure, noise and issue list of a raster
- find_candidate_pairs: Similar pairs inside adaptive time windows
- assemble_groups: Representative-checked grouping of candidate pairs
- scan_batch: All of the above over a worker pool, with caching and progress
"""

from __future__ import annotations

from .luminance import as_rgb_array, extract_luminance
from .hashing import (
    compute_fingerprint,
    hamming_distance,
    histogram_distance,
)
from .quality import compute_quality
from .clustering import ClusterItem, build_time_windows, find_candidate_pairs
from .grouping import assemble_groups, build_duplicate_groups
from .parallel import ProgressReporter, scan_batch


__all__ = [
    # Luminance
    'as_rgb_array',
    'extract_luminance',
    # Fingerprints
    'compute_fingerprint',
    'hamming_distance',
    'histogram_distance',
    # Quality
    'compute_quality',
    # Clustering and grouping
    'ClusterItem',
    'build_time_windows',
    'find_candidate_pairs',
    'assemble_groups',
    'build_duplicate_groups',
    # Batch
    'ProgressReporter',
    'scan_batch',
]
