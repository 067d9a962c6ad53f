"""
Third-party imports for the scanner package.

Pillow decodes images, numpy holds sample grids and packed fingerprints,
imagehash provides the fingerprint type. pillow-heif adds HEIC/HEIF
decoding and tqdm draws progress bars; both are optional at runtime.
"""

from __future__ import annotations

import logging
import warnings
from typing import Any, Optional

from ..config import MAX_IMAGE_PIXELS

_logger = logging.getLogger(__name__)

try:
    from PIL import Image
    import imagehash
    import numpy as np
except ImportError:
    raise ImportError(
        "Required packages not found!\n"
        "Install with: pip install Pillow imagehash numpy"
    )

# Openers must be registered before the first HEIC file is opened
HAS_HEIF_SUPPORT = False
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    HAS_HEIF_SUPPORT = True
    _logger.debug("HEIC/HEIF support enabled via pillow-heif")
except ImportError:
    _logger.debug("pillow-heif not installed, .heic/.heif files are skipped during discovery")

# Scans and panoramas routinely exceed Pillow's default pixel limit
Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS
warnings.filterwarnings("ignore", category=Image.DecompressionBombWarning)

HAS_TQDM = False
_tqdm_class: Optional[Any] = None

try:
    from tqdm import tqdm as _tqdm_import
    HAS_TQDM = True
    _tqdm_class = _tqdm_import
except ImportError:
    pass


def progress_bar(total: int, desc: str, unit: str, enabled: bool = True) -> Optional[Any]:
    """
    Open a tqdm bar, or return None when disabled or tqdm is missing.

    Callers update and close the bar themselves.
    """
    if not (enabled and HAS_TQDM and _tqdm_class is not None):
        return None
    return _tqdm_class(total=total, desc=desc, unit=unit, ncols=80)


__all__ = [
    'Image',
    'imagehash',
    'np',
    'HAS_HEIF_SUPPORT',
    'HAS_TQDM',
    'progress_bar',
    '_logger',
]
