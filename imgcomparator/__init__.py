"""
Image Comparator
================
Finds duplicate and rotated-duplicate images using a rotation-invariant
perceptual fingerprint.

Features:
- Rotation-invariant average hash (0/90/180/270 degrees)
- Content-addressed SQLite cache (SHA-256 + size) for fast re-scans
- Transitive duplicate grouping with union-find
- Parallel fingerprinting and pairwise comparison
- CLI for automation and cache maintenance
"""

__version__ = "0.1.0"
__author__ = "yaleman"

from .errors import (
    ImageComparatorError,
    IoError,
    DecodeError,
    UnsupportedFormatError,
    CacheError,
    ConfigurationError,
)
from .models import (
    ContentIdentity,
    FileRecord,
    DuplicateGroup,
    ScanConfig,
    ScanStats,
    ScanResult,
)
from .config import IMAGE_EXTENSIONS, DEFAULT_GRID_SIZE, DEFAULT_THRESHOLD
from .scanner import (
    compute_content_identity,
    compute_fingerprint,
    fingerprint_image,
    hamming_distance,
    find_image_files,
    find_duplicate_groups,
    scan_for_duplicates,
    find_duplicates_from_cache,
)
from .database import FingerprintStore, FingerprintCache, MemoryFingerprintStore, get_cache

__all__ = [
    "ImageComparatorError",
    "IoError",
    "DecodeError",
    "UnsupportedFormatError",
    "CacheError",
    "ConfigurationError",
    "ContentIdentity",
    "FileRecord",
    "DuplicateGroup",
    "ScanConfig",
    "ScanStats",
    "ScanResult",
    "IMAGE_EXTENSIONS",
    "DEFAULT_GRID_SIZE",
    "DEFAULT_THRESHOLD",
    "compute_content_identity",
    "compute_fingerprint",
    "fingerprint_image",
    "hamming_distance",
    "find_image_files",
    "find_duplicate_groups",
    "scan_for_duplicates",
    "find_duplicates_from_cache",
    "FingerprintStore",
    "FingerprintCache",
    "MemoryFingerprintStore",
    "get_cache",
]
