"""
Candidate clustering for the scanner package.

Finds pairs of similar images without comparing every image to every other
one. Images are sorted by capture time and cut into adaptive time windows:
bursts get narrow windows, sparse periods get wide ones. Pairs are only
evaluated inside a window, never across a window boundary.

Each pair goes through a cascade of increasingly expensive checks:
1. Aspect ratio and file size (only when both images carry the metadata)
2. Color histogram distance
3. dHash distance (permissive first pass)
4. pHash distance (strict confirmation) or edgeHash distance (independent path)
"""

from __future__ import annotations

import bisect
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, NamedTuple, Optional

from ..models import CandidatePair, FingerprintRecord, ScanStats
from ..user_config import EngineConfig, DEFAULT_CONFIG
from .hashing import hamming_distance, histogram_distance

logger = logging.getLogger(__name__)


class ClusterItem(NamedTuple):
    """One image as seen by the clusterer."""
    identifier: str
    fingerprint: FingerprintRecord
    timestamp: float
    width: int = 0
    height: int = 0
    file_size: int = 0


def _as_items(images: Iterable) -> list[ClusterItem]:
    """Accept ClusterItems or plain (identifier, fingerprint, timestamp) tuples."""
    return [item if isinstance(item, ClusterItem) else ClusterItem(*item) for item in images]


def build_time_windows(
    images: Iterable,
    config: Optional[EngineConfig] = None,
) -> list[list[ClusterItem]]:
    """
    Partition images into non-overlapping adaptive time windows.

    A window starts at the earliest image not yet assigned. Its width comes
    from the capture rate measured over the following density probe period
    (one hour by default), and it holds every image captured before
    start + width. The next window starts at the next image.

    Args:
        images: ClusterItems or (identifier, fingerprint, timestamp) tuples
        config: Engine configuration (defaults when omitted)

    Returns:
        Windows in chronological order, each sorted by timestamp
    """
    config = config or DEFAULT_CONFIG
    items = sorted(_as_items(images), key=lambda item: item.timestamp)
    timestamps = [item.timestamp for item in items]

    windows: list[list[ClusterItem]] = []
    start = 0
    while start < len(items):
        t0 = timestamps[start]
        probe_end = bisect.bisect_left(timestamps, t0 + config.density_probe_seconds, lo=start)
        photos_per_hour = (probe_end - start) * 3600.0 / config.density_probe_seconds

        width = config.window_seconds_for_rate(photos_per_hour)
        end = bisect.bisect_left(timestamps, t0 + width, lo=start + 1)

        windows.append(items[start:end])
        start = end

    return windows


def _match_path(a: ClusterItem, b: ClusterItem, config: EngineConfig) -> Optional[str]:
    """
    Run the comparison cascade on one pair.

    Returns:
        'phash' or 'edge' for the confirmation path that accepted the pair,
        None if the pair was rejected
    """
    fp_a, fp_b = a.fingerprint, b.fingerprint
    if fp_a.is_blank or fp_b.is_blank:
        return None

    if a.width and a.height and b.width and b.height:
        ratio_a = a.width / a.height
        ratio_b = b.width / b.height
        if max(ratio_a, ratio_b) / min(ratio_a, ratio_b) > config.aspect_ratio_tolerance:
            logger.debug(f"Rejected (aspect ratio): {a.identifier} vs {b.identifier}")
            return None

    if a.file_size > 0 and b.file_size > 0:
        if max(a.file_size, b.file_size) / min(a.file_size, b.file_size) > config.file_size_tolerance:
            logger.debug(f"Rejected (file size): {a.identifier} vs {b.identifier}")
            return None

    color_distance = histogram_distance(fp_a.color_histogram, fp_b.color_histogram)
    if color_distance > config.color_histogram_max_distance:
        logger.debug(
            f"Rejected (color): {a.identifier} vs {b.identifier}, distance={color_distance:.3f}"
        )
        return None

    dhash_distance = hamming_distance(fp_a.dhash, fp_b.dhash)
    if dhash_distance > config.dhash_threshold:
        if dhash_distance <= config.dhash_threshold + 3:
            logger.debug(
                f"Near miss: {a.identifier} vs {b.identifier}, dHash={dhash_distance} "
                f"(threshold={config.dhash_threshold})"
            )
        return None

    phash_distance = hamming_distance(fp_a.phash, fp_b.phash)
    if phash_distance <= config.phash_threshold:
        logger.debug(
            f"Match (pHash): {a.identifier} vs {b.identifier}, "
            f"dHash={dhash_distance}, pHash={phash_distance}"
        )
        return 'phash'

    edge_distance = hamming_distance(fp_a.edge_hash, fp_b.edge_hash)
    if edge_distance <= config.edge_hash_threshold:
        logger.debug(
            f"Match (edge): {a.identifier} vs {b.identifier}, "
            f"dHash={dhash_distance}, pHash={phash_distance}, edge={edge_distance}"
        )
        return 'edge'

    logger.debug(
        f"Rejected (confirmation): {a.identifier} vs {b.identifier}, "
        f"pHash={phash_distance}, edge={edge_distance}"
    )
    return None


def is_candidate_pair(
    a: ClusterItem,
    b: ClusterItem,
    config: Optional[EngineConfig] = None,
) -> bool:
    """Check whether two images pass the full comparison cascade."""
    return _match_path(a, b, config or DEFAULT_CONFIG) is not None


def _scan_window(
    window: list[ClusterItem],
    config: EngineConfig,
) -> tuple[list[CandidatePair], int]:
    """Compare every pair inside one window; earlier capture comes first."""
    pairs: list[CandidatePair] = []
    comparisons = 0
    for i in range(len(window)):
        for j in range(i + 1, len(window)):
            comparisons += 1
            if _match_path(window[i], window[j], config) is not None:
                pairs.append(CandidatePair(window[i].identifier, window[j].identifier))
    return pairs, comparisons


def find_candidate_pairs(
    images: Iterable,
    config: Optional[EngineConfig] = None,
    max_workers: int = 1,
    stats: Optional[ScanStats] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> list[CandidatePair]:
    """
    Find similar image pairs inside adaptive time windows.

    Windows are independent, so they can be evaluated on a thread pool;
    pairs are merged back in window order and the result is the same
    whatever the worker count.

    Args:
        images: ClusterItems or (identifier, fingerprint, timestamp) tuples
        config: Engine configuration (defaults when omitted)
        max_workers: Threads used to evaluate windows (1 = inline)
        stats: Optional ScanStats updated with window/comparison/pair counts
        progress_callback: Optional callback(windows_done, total_windows)

    Returns:
        List of CandidatePair in chronological window order
    """
    config = config or DEFAULT_CONFIG
    windows = [w for w in build_time_windows(images, config) if len(w) > 1]
    total = len(windows)

    results: list[tuple[list[CandidatePair], int]] = []
    if max_workers > 1 and total > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            # map() yields in submission order
            for done, result in enumerate(executor.map(lambda w: _scan_window(w, config), windows), 1):
                results.append(result)
                if progress_callback:
                    progress_callback(done, total)
    else:
        for done, window in enumerate(windows, 1):
            results.append(_scan_window(window, config))
            if progress_callback:
                progress_callback(done, total)

    pairs = [pair for window_pairs, _ in results for pair in window_pairs]
    comparisons = sum(count for _, count in results)

    if stats is not None:
        stats.windows += total
        stats.comparisons += comparisons
        stats.candidate_pairs += len(pairs)

    logger.debug(f"Clustering: {total} windows, {comparisons:,} comparisons, {len(pairs)} pairs")
    return pairs


__all__ = [
    'ClusterItem',
    'build_time_windows',
    'is_candidate_pair',
    'find_candidate_pairs',
]
