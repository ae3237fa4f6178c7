"""
Parallel processing module for the scanner package.

Runs a whole batch through the engine: cached fingerprint lookup, parallel
per-image fingerprinting and quality scoring, batched persistence, then
candidate clustering and group assembly.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, Callable, Any

from ..config import DEFAULT_BUFFER_SIZE
from ..models import (
    FingerprintRecord,
    ImageSample,
    QualityRecord,
    ScanPhase,
    ScanResult,
    ScanStats,
)
from ..user_config import EngineConfig, DEFAULT_CONFIG
from .clustering import ClusterItem, find_candidate_pairs
from .dependencies import np, HAS_TQDM, _tqdm_class, _logger
from .grouping import build_duplicate_groups
from .hashing import fingerprint_from_arrays
from .luminance import as_rgb_array, extract_luminance
from .quality import quality_from_arrays

ProgressCallback = Callable[[int, int, ScanPhase], None]


class ProgressReporter:
    """
    Thread-safe progress counter.

    Reports every `interval` completions and always on the last one, so a
    slow consumer is not flooded. Reported counts never decrease.
    """

    def __init__(
        self,
        total: int,
        phase: ScanPhase,
        callback: Optional[ProgressCallback] = None,
        interval: int = 10,
    ):
        self.total = total
        self.phase = phase
        self.callback = callback
        self.interval = max(1, interval)
        self._current = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        return self._current

    def advance(self, count: int = 1) -> int:
        """Record completed units and report if a batch boundary was crossed."""
        with self._lock:
            previous = self._current
            self._current = min(self.total, self._current + count)
            current = self._current
            should_report = (
                current // self.interval > previous // self.interval
                or current == self.total
            )
            # Report under the lock so consumers see counts in order
            if should_report and current != previous and self.callback:
                self.callback(current, self.total, self.phase)
        return current


def _process_sample(
    sample: ImageSample,
    cached: Optional[FingerprintRecord],
    config: EngineConfig,
    score_quality: bool,
    cancel_event: Optional[threading.Event],
) -> Optional[tuple[FingerprintRecord, Optional[QualityRecord], bool]]:
    """
    One unit of work: fingerprint (unless cached) and quality of one image.

    Returns:
        (fingerprint, quality, computed) or None if cancelled before starting
    """
    if cancel_event is not None and cancel_event.is_set():
        return None

    # Flat buffers are assumed to be the standard square raster
    size = (DEFAULT_BUFFER_SIZE, DEFAULT_BUFFER_SIZE) if np.ndim(sample.pixels) == 1 else None
    rgb = as_rgb_array(sample.pixels, size)
    lum = extract_luminance(rgb)

    fingerprint = cached if cached is not None else fingerprint_from_arrays(rgb, lum)
    quality = quality_from_arrays(rgb, lum, label=sample.identifier, config=config) if score_quality else None
    return fingerprint, quality, cached is None


def _lookup_cache(
    samples: list[ImageSample],
    store: Any,
    stats: ScanStats,
) -> dict[str, FingerprintRecord]:
    """Read current-version fingerprints from the store; stale versions count as misses."""
    if store is None:
        stats.cache_misses = len(samples)
        return {}

    found = store.get_batch([s.identifier for s in samples])
    cached: dict[str, FingerprintRecord] = {}
    for sample in samples:
        record = found.get(sample.identifier)
        if record is not None and not record.is_current:
            _logger.debug(
                f"Cache version mismatch for {sample.identifier}: "
                f"v{record.version}, recomputing"
            )
            record = None
        if record is not None:
            cached[sample.identifier] = record
            stats.cache_hits += 1
        else:
            stats.cache_misses += 1
    return cached


def _persist(
    fingerprints: dict[str, FingerprintRecord],
    store: Any,
    batch_size: int,
) -> int:
    """Save new fingerprints in bounded chunks."""
    if store is None or not fingerprints:
        return 0
    items = list(fingerprints.items())
    saved = 0
    for i in range(0, len(items), batch_size):
        saved += store.save_fingerprints(dict(items[i:i + batch_size]))
    return saved


def scan_batch(
    samples: list[ImageSample],
    store: Any = None,
    config: Optional[EngineConfig] = None,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    show_progress: bool = False,
    logger: Optional[logging.Logger] = None,
    score_quality: bool = True,
) -> ScanResult:
    """
    Fingerprint, score and group a batch of images.

    Args:
        samples: Decoded images with their capture metadata
        store: Optional fingerprint store with get_batch(identifiers) and
            save_fingerprints(mapping); read once before the pool starts,
            written once after it drains
        config: Engine configuration (defaults when omitted)
        progress_callback: Optional callback(current, total, phase)
        cancel_event: Optional threading.Event; set it to stop the scan
            between images
        show_progress: Whether to show tqdm progress bar
        logger: Optional logger for status messages
        score_quality: Whether to compute quality records

    Returns:
        ScanResult. When cancelled, holds the images finished before the
        cancellation and no groups.
    """
    config = config or DEFAULT_CONFIG
    log = logger or _logger
    result = ScanResult()
    stats = result.stats
    stats.total_images = len(samples)

    if not samples:
        if progress_callback:
            progress_callback(0, 0, ScanPhase.COMPLETE)
        return result

    cached = _lookup_cache(samples, store, stats)
    if stats.cache_hits > 0:
        log.info(
            f"Cache: {stats.cache_hits:,} hits, {stats.cache_misses:,} misses "
            f"({stats.hit_rate:.1f}% hit rate)"
        )

    reporter = ProgressReporter(len(samples), ScanPhase.HASHING, progress_callback, config.progress_interval)

    to_process: list[ImageSample] = []
    for sample in samples:
        hit = cached.get(sample.identifier)
        if sample.pixels is None:
            # Nothing to decode: cached fingerprint only, or skip
            if hit is not None:
                result.fingerprints[sample.identifier] = hit
            else:
                stats.skipped += 1
            reporter.advance()
        elif hit is not None and not score_quality:
            result.fingerprints[sample.identifier] = hit
            reporter.advance()
        else:
            to_process.append(sample)

    new_fingerprints: dict[str, FingerprintRecord] = {}

    if to_process:
        pbar: Optional[Any] = None
        if HAS_TQDM and show_progress and _tqdm_class is not None:
            pbar = _tqdm_class(
                total=len(to_process),
                desc="Hashing images",
                unit="img",
                ncols=80,
            )

        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            futures = {
                executor.submit(
                    _process_sample, sample, cached.get(sample.identifier),
                    config, score_quality, cancel_event,
                ): sample.identifier
                for sample in to_process
            }

            for future in as_completed(futures):
                identifier = futures[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    log.warning(f"Failed to process {identifier}: {e}")
                    result.failed[identifier] = str(e)
                    stats.failed += 1
                else:
                    if outcome is None:
                        # Cancelled before it started
                        continue
                    fingerprint, quality, computed = outcome
                    result.fingerprints[identifier] = fingerprint
                    if quality is not None:
                        result.quality[identifier] = quality
                    if computed:
                        new_fingerprints[identifier] = fingerprint
                        stats.computed += 1

                reporter.advance()
                if pbar is not None:
                    pbar.update(1)

        if pbar is not None:
            pbar.close()

    # Finished work stays valid after a cancellation, so persist it either way
    stats.persisted = _persist(new_fingerprints, store, config.persist_batch_size)

    if cancel_event is not None and cancel_event.is_set():
        result.cancelled = True
        log.info(
            f"Scan cancelled after {len(result.fingerprints):,} of {len(samples):,} images"
        )
        return result

    items = [
        ClusterItem(
            identifier=s.identifier,
            fingerprint=result.fingerprints[s.identifier],
            timestamp=s.timestamp,
            width=s.width,
            height=s.height,
            file_size=s.file_size,
        )
        for s in samples
        if s.identifier in result.fingerprints
    ]

    def on_window(done: int, total: int) -> None:
        if progress_callback:
            progress_callback(done, total, ScanPhase.COMPARING)

    pairs = find_candidate_pairs(
        items,
        config=config,
        max_workers=config.max_workers,
        stats=stats,
        progress_callback=on_window,
    )
    result.groups = build_duplicate_groups(pairs, result.fingerprints, config)

    log.info(
        f"Found {len(result.groups):,} duplicate groups ({result.duplicate_count:,} duplicates) "
        f"from {stats.candidate_pairs:,} pairs in {stats.windows:,} windows "
        f"({stats.comparisons:,} comparisons)"
    )

    if progress_callback:
        progress_callback(len(samples), len(samples), ScanPhase.COMPLETE)

    return result


__all__ = ['ProgressReporter', 'scan_batch']
