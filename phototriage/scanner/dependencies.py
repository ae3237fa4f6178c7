"""
Dependency initialization for the scanner package.

Handles numpy, PIL, imagehash and optional tqdm imports with proper error
handling.
"""

from __future__ import annotations

import logging
from typing import Optional, Any

# Module-level logger
_logger = logging.getLogger(__name__)

# Check for required dependencies
try:
    import numpy as np
    from PIL import Image
    import imagehash
except ImportError:
    raise ImportError(
        "Required packages not found!\n"
        "Install with: pip install numpy Pillow imagehash"
    )

# Resampling filter used for every downsampled hash grid.
# Pillow >= 9.1 moved the constants into Image.Resampling.
try:
    RESAMPLE_FILTER = Image.Resampling.LANCZOS
except AttributeError:
    RESAMPLE_FILTER = Image.LANCZOS

# Optional: tqdm for progress bars
# Store as Optional[Any] to satisfy type checkers when tqdm is not installed
HAS_TQDM = False
_tqdm_class: Optional[Any] = None

try:
    from tqdm import tqdm as _tqdm_import
    HAS_TQDM = True
    _tqdm_class = _tqdm_import
except ImportError:
    pass


__all__ = [
    'np',
    'Image',
    'imagehash',
    'RESAMPLE_FILTER',
    'HAS_TQDM',
    '_tqdm_class',
    '_logger',
]
