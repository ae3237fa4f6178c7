"""
Configuration constants for the photo triage engine.

This module contains all default settings including:
- Fingerprint algorithm version (cache invalidation)
- Similarity thresholds for the candidate clusterer and group assembler
- Adaptive time-window bands
- Quality scorer thresholds
"""

import os

# Algorithm version - increment whenever hashing logic or its inputs change.
# Cached fingerprints carrying any other version are treated as absent.
ALGORITHM_VERSION = 1

# Edge length of the square raster the engine expects from the pixel provider.
# Changing it invalidates cached fingerprints (bump ALGORITHM_VERSION too).
DEFAULT_BUFFER_SIZE = 256

# Fingerprint grid sizes
DHASH_WIDTH = 9
DHASH_HEIGHT = 8
PHASH_SIZE = 32            # Luminance is resized to 32x32 before the DCT
PHASH_BITS = 64            # Lowest-frequency coefficients kept (DC excluded)
EDGE_HASH_SIZE = 8         # Edge-magnitude map is reduced to 8x8
HISTOGRAM_BINS_PER_CHANNEL = 4   # 4x4x4 = 64 color buckets

# Smallest buffer edge that still yields a meaningful fingerprint
MIN_FINGERPRINT_DIMENSION = DHASH_WIDTH

# Similarity thresholds (Hamming distance, 0-64)
# T1: permissive dHash first pass (burst shots land at 0-12)
# T2: strict pHash confirmation, must stay below T1
# T3: edgeHash acceptance, brightness-invariant second path
DHASH_THRESHOLD = 12
PHASH_THRESHOLD = 10
EDGE_HASH_THRESHOLD = 10

# Relaxed threshold used when checking against a group representative:
# DHASH_THRESHOLD + REPRESENTATIVE_SLACK
REPRESENTATIVE_SLACK = 10

# Color histogram pre-filter: half the L1 distance between normalized
# histograms (0 = identical distribution, 1 = disjoint)
COLOR_HISTOGRAM_MAX_DISTANCE = 0.5

# Aspect ratio / file size pre-filters (applied only when metadata is known)
ASPECT_RATIO_TOLERANCE = 1.2
FILE_SIZE_TOLERANCE = 2.0

# Adaptive time windows: (minimum photos per hour, window width in seconds).
# Checked in order, first match wins; sparser periods fall back to
# SPARSE_WINDOW_SECONDS.
WINDOW_DENSITY_BANDS = (
    (100, 15 * 60),
    (50, 30 * 60),
    (20, 60 * 60),
)
SPARSE_WINDOW_SECONDS = 2 * 60 * 60
DENSITY_PROBE_SECONDS = 60 * 60

# Worker pool: one unit of work per image, bounded to limit decoded buffers held
MAX_DEFAULT_WORKERS = 8
DEFAULT_WORKERS = min(MAX_DEFAULT_WORKERS, os.cpu_count() or 1)

# Progress reporting: report every N completed images (and always the last)
PROGRESS_INTERVAL = 10

# Fingerprints written per storage transaction
PERSIST_BATCH_SIZE = 500

# --- Quality scorer ---

QUALITY_GRID_SIZE = 4                 # 4x4 grid of tiles
MIN_TILE_DIMENSION = 3                # Laplacian needs a 3x3 neighbourhood
TOP_TILE_COUNT = 4                    # Best 4 of 16 tiles form the headline score
TILE_NORMALIZATION_DIVISOR = 35.0     # sqrt(variance) / divisor -> 0-1
TILE_TEXTURE_THRESHOLD = 5.0          # Luminance stddev below this = featureless tile
MIN_TEXTURED_TILES = 2
EDGE_PIXEL_THRESHOLD = 15.0           # |Laplacian| above this = edge pixel
EDGE_DENSITY_BLURRY_THRESHOLD = 0.08
BORDERLINE_SHARPNESS_MARGIN = 0.20

SHARPNESS_THRESHOLD = 0.50
CENTER_SHARPNESS_THRESHOLD = 0.35
CENTER_CHECK_MAX_SHARPNESS = 0.65
MOTION_BLUR_RATIO_THRESHOLD = 5.0
MOTION_BLUR_MIN_VARIANCE = 1.0

# Exposure (average brightness, 0-1)
VERY_DARK_THRESHOLD = 0.05
DARK_THRESHOLD = 0.10                 # Below = too dark to judge sharpness
UNDEREXPOSED_AVG_BRIGHTNESS = 0.20
HIGHLIGHT_BRIGHTNESS = 80             # p99 below this = nothing visible
OVEREXPOSED_THRESHOLD = 0.90
BRIGHT_THRESHOLD = 0.96
CONTRAST_THRESHOLD = 0.06
CONTRAST_BRIGHTNESS_RANGE = (0.2, 0.8)

# Noise: 4x4 block variance, sqrt(avg variance) / divisor
NOISE_GRID_SIZE = 4
NOISE_NORMALIZATION_DIVISOR = 25.0
NOISE_THRESHOLD = 0.95

# Screenshot heuristic
SCREENSHOT_WHITE_LEVEL = 245          # All channels above = near-pure white
SCREENSHOT_BLACK_LEVEL = 10           # All channels below = near-pure black
SCREENSHOT_BRIGHT_CONTENT_LEVEL = 200
SCREENSHOT_BRIGHT_CONTENT_FRACTION = 0.01
SCREENSHOT_SOLID_FRACTION = 0.35
SCREENSHOT_MODERATE_SOLID_FRACTION = 0.25
SCREENSHOT_MODERATE_PALETTE = 120
SCREENSHOT_QUANTIZATION_STEP = 32
# Palette-only rule (unique colors below this = screenshot). 0 disables it.
# Dark or featureless photos also collapse into few quantized colors, so the
# rule needs at least SCREENSHOT_MIN_PALETTE_COLORS buckets and a frame no
# darker than DARK_THRESHOLD.
SCREENSHOT_MAX_PALETTE_COLORS = 20
SCREENSHOT_MIN_PALETTE_COLORS = 2

# Overall quality weighting
SHARPNESS_WEIGHT = 0.4
EXPOSURE_WEIGHT = 0.4
NOISE_WEIGHT = 0.2
ISSUE_PENALTY = 0.15

# Neutral values returned for buffers too small to analyze
NEUTRAL_SHARPNESS = 0.5
NEUTRAL_EXPOSURE = 0.5
NEUTRAL_NOISE = 0.3
NEUTRAL_QUALITY = 0.5

# User configuration / cache locations
CONFIG_DIR = os.path.join(os.path.expanduser('~'), '.phototriage')
CACHE_DB_FILE = os.path.join(CONFIG_DIR, 'fingerprints.db')
