"""
Quality scoring for the scanner package.

Detects blur, motion blur, misfocus, exposure problems, low contrast and
(optionally) noise on a decoded raster. Scores range from 0.0 (bad) to 1.0
(good), except noise where higher means noisier.

Blur detection uses a tiled Laplacian approach on the 256x256 buffer:
- Divides the image into a 4x4 grid of tiles
- Ignores featureless tiles (luminance stddev < 5) when enough textured
  tiles exist, since sky or walls have low variance whatever the focus
- Averages the best quarter of the tiles as the headline score, so a single
  sharp decorative tile cannot fake sharpness and a soft background cannot
  drag down a sharp subject
- Scores the center tiles separately to catch misfocused subjects
- Counts edge pixels as a tiebreaker for borderline scores

Motion blur is detected via directional gradient analysis (Sobel-X vs
Sobel-Y): a strongly dominant direction indicates a smeared exposure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import (
    QUALITY_GRID_SIZE,
    MIN_TILE_DIMENSION,
    TILE_NORMALIZATION_DIVISOR,
    TILE_TEXTURE_THRESHOLD,
    MIN_TEXTURED_TILES,
    EDGE_PIXEL_THRESHOLD,
    EDGE_DENSITY_BLURRY_THRESHOLD,
    BORDERLINE_SHARPNESS_MARGIN,
    SHARPNESS_THRESHOLD,
    CENTER_SHARPNESS_THRESHOLD,
    CENTER_CHECK_MAX_SHARPNESS,
    MOTION_BLUR_RATIO_THRESHOLD,
    MOTION_BLUR_MIN_VARIANCE,
    VERY_DARK_THRESHOLD,
    DARK_THRESHOLD,
    UNDEREXPOSED_AVG_BRIGHTNESS,
    HIGHLIGHT_BRIGHTNESS,
    OVEREXPOSED_THRESHOLD,
    BRIGHT_THRESHOLD,
    CONTRAST_THRESHOLD,
    CONTRAST_BRIGHTNESS_RANGE,
    NOISE_GRID_SIZE,
    NOISE_NORMALIZATION_DIVISOR,
    NOISE_THRESHOLD,
    SCREENSHOT_WHITE_LEVEL,
    SCREENSHOT_BLACK_LEVEL,
    SCREENSHOT_BRIGHT_CONTENT_LEVEL,
    SCREENSHOT_BRIGHT_CONTENT_FRACTION,
    SCREENSHOT_SOLID_FRACTION,
    SCREENSHOT_MODERATE_SOLID_FRACTION,
    SCREENSHOT_MODERATE_PALETTE,
    SCREENSHOT_QUANTIZATION_STEP,
    SCREENSHOT_MAX_PALETTE_COLORS,
    SCREENSHOT_MIN_PALETTE_COLORS,
    SHARPNESS_WEIGHT,
    EXPOSURE_WEIGHT,
    NOISE_WEIGHT,
    ISSUE_PENALTY,
)
from ..models import QualityIssue, QualityRecord
from ..user_config import EngineConfig, DEFAULT_CONFIG
from .dependencies import np
from .hashing import sobel_gradients
from .luminance import as_rgb_array, extract_luminance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SharpnessResult:
    """Detailed metrics from the tiled Laplacian analysis."""
    score: float              # Top-quartile sharpness (0-1)
    center_score: float       # Average sharpness of the center tiles (0-1)
    edge_density: float       # Fraction of interior pixels that are edges (0-1)
    textured_tiles: int       # Tiles with enough texture to judge focus


@dataclass(frozen=True)
class ExposureResult:
    """Exposure metrics from histogram analysis."""
    score: float              # Exposure quality (0-1)
    brightness: float         # Mean brightness (0-1)
    contrast: float           # p95 - p5 spread (0-1)
    p99: int                  # Luminance of the brightest 1%


@dataclass(frozen=True)
class ScreenshotResult:
    """Inputs and verdict of the screenshot heuristic."""
    is_screenshot: bool
    solid_fraction: float
    unique_colors: int


def _laplacian(lum: np.ndarray) -> np.ndarray:
    """4-neighbour Laplacian over the interior, shape (H-2, W-2)."""
    p = lum.astype(np.float64)
    return p[:-2, 1:-1] + p[2:, 1:-1] + p[1:-1, :-2] + p[1:-1, 2:] - 4 * p[1:-1, 1:-1]


def _normalize_variance(variance: float) -> float:
    return min(1.0, max(0.0, np.sqrt(max(variance, 0.0)) / TILE_NORMALIZATION_DIVISOR))


def compute_sharpness(lum: np.ndarray, top_tile_count: int) -> Optional[SharpnessResult]:
    """
    Tiled Laplacian sharpness.

    Returns:
        SharpnessResult, or None if the buffer is too small to tile
    """
    height, width = lum.shape
    tile_w = width // QUALITY_GRID_SIZE
    tile_h = height // QUALITY_GRID_SIZE
    if tile_w < MIN_TILE_DIMENSION or tile_h < MIN_TILE_DIMENSION:
        return None

    lap = _laplacian(lum)
    interior = lum[1:-1, 1:-1].astype(np.float64)

    # Center tiles of a 4x4 grid are (1,1), (1,2), (2,1), (2,2)
    margin = QUALITY_GRID_SIZE // 4
    center_range = range(margin, QUALITY_GRID_SIZE - margin)

    tiles = []  # (laplacian variance, is_textured, is_center)
    for ty in range(QUALITY_GRID_SIZE):
        for tx in range(QUALITY_GRID_SIZE):
            start_x, start_y = tx * tile_w, ty * tile_h
            end_x = width if tx == QUALITY_GRID_SIZE - 1 else start_x + tile_w
            end_y = height if ty == QUALITY_GRID_SIZE - 1 else start_y + tile_h

            # Interior pixel (y, x) lives at index (y - 1, x - 1)
            y0, y1 = max(start_y, 1) - 1, min(end_y, height - 1) - 1
            x0, x1 = max(start_x, 1) - 1, min(end_x, width - 1) - 1
            tile_lap = lap[y0:y1, x0:x1]
            if tile_lap.size == 0:
                continue

            textured = float(interior[y0:y1, x0:x1].std()) >= TILE_TEXTURE_THRESHOLD
            is_center = tx in center_range and ty in center_range
            tiles.append((float(tile_lap.var()), textured, is_center))

    textured_count = sum(1 for _, textured, _ in tiles if textured)

    # Too few textured tiles to be selective: judge the frame as a whole
    if textured_count >= MIN_TEXTURED_TILES:
        selected = [tile for tile in tiles if tile[1]]
    else:
        selected = tiles

    variances = sorted((variance for variance, _, _ in selected), reverse=True)
    top = variances[:min(top_tile_count, len(variances))]
    score = sum(_normalize_variance(v) for v in top) / len(top) if top else 0.0

    center_variances = [variance for variance, _, is_center in selected if is_center]
    if center_variances:
        center_score = sum(_normalize_variance(v) for v in center_variances) / len(center_variances)
    else:
        # Featureless center: nothing to judge focus on
        center_score = 1.0

    edge_density = float(np.count_nonzero(np.abs(lap) > EDGE_PIXEL_THRESHOLD)) / lap.size

    return SharpnessResult(
        score=float(score),
        center_score=float(center_score),
        edge_density=edge_density,
        textured_tiles=textured_count,
    )


def detect_motion_blur(lum: np.ndarray, ratio_threshold: float = MOTION_BLUR_RATIO_THRESHOLD) -> bool:
    """
    Detect directional blur from Sobel-X vs Sobel-Y variance.

    Samples every 2nd pixel in each direction. Motion smears edges along one
    axis, so one gradient direction dominates the other.
    """
    height, width = lum.shape
    if width < 3 or height < 3:
        return False

    gx, gy = sobel_gradients(lum)
    var_x = float(gx[::2, ::2].var())
    var_y = float(gy[::2, ::2].var())

    max_var, min_var = max(var_x, var_y), min(var_x, var_y)
    if min_var < MOTION_BLUR_MIN_VARIANCE:
        # Too little gradient overall, not a smear
        return False

    ratio = max_var / min_var
    logger.debug(f"Motion blur: sobelXVar={var_x:.1f}, sobelYVar={var_y:.1f}, ratio={ratio:.2f}")
    return ratio > ratio_threshold


def compute_exposure(lum: np.ndarray) -> ExposureResult:
    """Exposure score, brightness, contrast and p99 from a 256-bin histogram."""
    pixel_count = lum.size
    if pixel_count == 0:
        return ExposureResult(0.5, 0.5, 0.5, 128)

    histogram = np.bincount(lum.ravel(), minlength=256)
    brightness = float(lum.mean()) / 255.0

    cumulative = np.cumsum(histogram)
    p5 = int(np.searchsorted(cumulative, pixel_count * 0.05))
    p95 = int(np.searchsorted(cumulative, pixel_count * 0.95))
    p99 = int(np.searchsorted(cumulative, pixel_count * 0.99))
    contrast = (p95 - p5) / 255.0

    # Penalize extremes, reward the middle band
    if brightness < 0.1:
        score = brightness * 2
    elif brightness > 0.9:
        score = (1.0 - brightness) * 2
    elif brightness < 0.3:
        score = 0.5 + (brightness - 0.1)
    elif brightness > 0.7:
        score = 0.5 + (0.9 - brightness)
    else:
        score = 0.8 + (0.5 - abs(brightness - 0.5)) * 0.4

    return ExposureResult(
        score=min(1.0, max(0.0, score)),
        brightness=brightness,
        contrast=contrast,
        p99=p99,
    )


def compute_noise(lum: np.ndarray) -> float:
    """
    Noise estimate from local variance.

    Higher values = more noise. Textured content scores high too, which is
    why the derived issue is off by default.
    """
    height, width = lum.shape
    if width < NOISE_GRID_SIZE or height < NOISE_GRID_SIZE:
        return 0.3

    block = min(width, height) // NOISE_GRID_SIZE
    if block < 2:
        return 0.3

    p = lum.astype(np.float64)
    variances = [
        p[by * block:(by + 1) * block, bx * block:(bx + 1) * block].var()
        for by in range(NOISE_GRID_SIZE)
        for bx in range(NOISE_GRID_SIZE)
    ]
    avg_variance = float(np.mean(variances))
    return min(1.0, max(0.0, float(np.sqrt(avg_variance)) / NOISE_NORMALIZATION_DIVISOR))


def detect_screenshot(
    rgb: np.ndarray,
    lum: np.ndarray,
    max_palette_colors: int = SCREENSHOT_MAX_PALETTE_COLORS,
) -> ScreenshotResult:
    """
    Classify a raster as a likely screenshot.

    Screenshots typically have large areas of pure white or black (UI
    backgrounds) and a limited palette. A black background only counts when
    bright content (text, icons) is present, otherwise underexposed photos
    would be classified as dark-mode screenshots. Likewise a tiny palette
    only counts when it has at least two colors on a frame that is not too
    dark, since flat, dark or foggy photos also quantize to a handful of
    buckets. max_palette_colors=0 disables the palette rule.
    """
    total = lum.size
    white = np.all(rgb > SCREENSHOT_WHITE_LEVEL, axis=2)
    black = np.all(rgb < SCREENSHOT_BLACK_LEVEL, axis=2)
    white_fraction = float(np.count_nonzero(white)) / total
    black_fraction = float(np.count_nonzero(black)) / total
    bright_fraction = float(np.count_nonzero(lum > SCREENSHOT_BRIGHT_CONTENT_LEVEL)) / total

    solid_fraction = white_fraction
    if bright_fraction >= SCREENSHOT_BRIGHT_CONTENT_FRACTION:
        solid_fraction += black_fraction

    levels = 256 // SCREENSHOT_QUANTIZATION_STEP
    quantized = (rgb // SCREENSHOT_QUANTIZATION_STEP).astype(np.int64)
    codes = (quantized[:, :, 0] * levels + quantized[:, :, 1]) * levels + quantized[:, :, 2]
    unique_colors = int(np.count_nonzero(np.bincount(codes.ravel(), minlength=levels ** 3)))

    limited_palette = (
        SCREENSHOT_MIN_PALETTE_COLORS <= unique_colors < max_palette_colors
        and float(lum.mean()) / 255.0 >= DARK_THRESHOLD
    )

    is_screenshot = (
        solid_fraction > SCREENSHOT_SOLID_FRACTION
        or limited_palette
        or (solid_fraction > SCREENSHOT_MODERATE_SOLID_FRACTION
            and unique_colors < SCREENSHOT_MODERATE_PALETTE)
    )

    if is_screenshot:
        logger.debug(f"Screenshot detected: solid={solid_fraction:.2f}, colors={unique_colors}")

    return ScreenshotResult(is_screenshot, solid_fraction, unique_colors)


def derive_issues(
    sharpness: SharpnessResult,
    exposure: ExposureResult,
    noise: float,
    screenshot: bool,
    motion_blur: bool,
    flag_noise: bool = False,
) -> list[QualityIssue]:
    """
    Turn metrics into an ordered issue list.

    Order: exposure extremes, then sharpness (one of blurry / motion blur /
    misfocused), then noise (optional), then contrast. Screenshots suppress
    exposure, standard blur, noise and contrast issues; motion blur and
    misfocus are reported regardless.
    """
    issues: list[QualityIssue] = []
    brightness = exposure.brightness

    if not screenshot:
        if brightness < VERY_DARK_THRESHOLD:
            issues.append(QualityIssue.VERY_DARK)
        elif brightness < UNDEREXPOSED_AVG_BRIGHTNESS and exposure.p99 < HIGHLIGHT_BRIGHTNESS:
            issues.append(QualityIssue.UNDEREXPOSED)
        elif brightness > BRIGHT_THRESHOLD:
            issues.append(QualityIssue.VERY_BRIGHT)
        elif brightness > OVEREXPOSED_THRESHOLD:
            issues.append(QualityIssue.OVEREXPOSED)

    # Too dark or too bright to judge focus
    judgeable = DARK_THRESHOLD <= brightness <= BRIGHT_THRESHOLD

    if judgeable:
        if sharpness.score < SHARPNESS_THRESHOLD:
            if motion_blur:
                issues.append(QualityIssue.MOTION_BLUR)
            elif not screenshot:
                # Real edges on a borderline score mean something is in focus
                borderline = sharpness.score >= SHARPNESS_THRESHOLD - BORDERLINE_SHARPNESS_MARGIN
                if not (borderline and sharpness.edge_density >= EDGE_DENSITY_BLURRY_THRESHOLD):
                    issues.append(QualityIssue.BLURRY)
        elif (sharpness.score < CENTER_CHECK_MAX_SHARPNESS
              and sharpness.center_score < CENTER_SHARPNESS_THRESHOLD):
            issues.append(QualityIssue.MISFOCUSED)

    if flag_noise and judgeable and not screenshot and noise > NOISE_THRESHOLD:
        issues.append(QualityIssue.NOISY)

    low, high = CONTRAST_BRIGHTNESS_RANGE
    if not screenshot and exposure.contrast < CONTRAST_THRESHOLD and low <= brightness <= high:
        issues.append(QualityIssue.LOW_CONTRAST)

    return issues


def overall_quality(sharpness: float, exposure: float, noise: float, issue_count: int) -> float:
    """Weighted sub-scores minus a fixed penalty per issue, clamped to 0-1."""
    base = sharpness * SHARPNESS_WEIGHT + exposure * EXPOSURE_WEIGHT + (1.0 - noise) * NOISE_WEIGHT
    return min(1.0, max(0.0, base - issue_count * ISSUE_PENALTY))


def quality_from_arrays(
    rgb: np.ndarray,
    lum: np.ndarray,
    label: str = "",
    config: Optional[EngineConfig] = None,
) -> QualityRecord:
    """
    Score pre-extracted arrays.

    A buffer too small to tile yields QualityRecord.neutral().
    """
    config = config or DEFAULT_CONFIG

    sharpness = compute_sharpness(lum, config.top_tile_count)
    if sharpness is None:
        return QualityRecord.neutral()

    exposure = compute_exposure(lum)
    noise = compute_noise(lum)
    screenshot = detect_screenshot(rgb, lum, config.screenshot_max_palette_colors)

    # Only needed when the headline score is below the blur threshold
    motion_blur = sharpness.score < SHARPNESS_THRESHOLD and detect_motion_blur(lum)

    issues = derive_issues(
        sharpness, exposure, noise, screenshot.is_screenshot, motion_blur,
        flag_noise=config.flag_noise,
    )
    overall = overall_quality(sharpness.score, exposure.score, noise, len(issues))

    tag = f"[{label}] " if label else ""
    logger.debug(
        f"{tag}sharpness={sharpness.score:.3f}, center={sharpness.center_score:.3f}, "
        f"texturedTiles={sharpness.textured_tiles}, edgeDensity={sharpness.edge_density:.3f}, "
        f"exposure={exposure.score:.2f}, brightness={exposure.brightness:.2f}, "
        f"p99={exposure.p99}, contrast={exposure.contrast:.2f}, noise={noise:.2f}, "
        f"screenshot={screenshot.is_screenshot}, issues={[i.value for i in issues]}"
    )

    return QualityRecord(
        sharpness=sharpness.score,
        exposure=exposure.score,
        noise=noise,
        overall=overall,
        issues=tuple(issues),
        is_screenshot=screenshot.is_screenshot,
    )


def compute_quality(
    pixel_buffer,
    size: Optional[tuple[int, int]] = None,
    label: str = "",
    config: Optional[EngineConfig] = None,
) -> QualityRecord:
    """
    Compute the quality record of one decoded image.

    Pure function: identical buffers always produce identical records.

    Args:
        pixel_buffer: RGB(A) raster, (H, W, C) array or flat buffer
        size: (width, height), required for flat buffers
        label: Optional name used in debug logs
        config: Engine configuration (defaults when omitted)

    Returns:
        QualityRecord
    """
    rgb = as_rgb_array(pixel_buffer, size)
    return quality_from_arrays(rgb, extract_luminance(rgb), label=label, config=config)


__all__ = [
    'SharpnessResult',
    'ExposureResult',
    'ScreenshotResult',
    'compute_sharpness',
    'detect_motion_blur',
    'compute_exposure',
    'compute_noise',
    'detect_screenshot',
    'derive_issues',
    'overall_quality',
    'quality_from_arrays',
    'compute_quality',
]
