"""
Scanner package for Image Comparator.

Provides content identity, rotation-invariant fingerprinting, duplicate
clustering and the parallel scan pipeline that ties them to the cache.

Public API:
- find_image_files: Discover image files under files and directories
- compute_content_identity: SHA-256 digest and size of a file
- compute_fingerprint: Rotation-invariant fingerprint of an image file
- fingerprint_image: Rotation-invariant fingerprint of a decoded image
- hamming_distance: Differing bits between two fingerprints
- find_duplicate_groups: Cluster (path, fingerprint) pairs
- scan_for_duplicates: Full scan with caching
- find_duplicates_from_cache: Cluster cached fingerprints without rescanning
- has_heif_support: Check if HEIC/HEIF support is available
"""

from __future__ import annotations

from .file_discovery import find_image_files
from .hashing import (
    compute_content_identity,
    compute_fingerprint,
    fingerprint_image,
    hamming_distance,
)
from .clustering import find_duplicate_groups
from .orchestrator import scan_for_duplicates, find_duplicates_from_cache

from .dependencies import HAS_HEIF_SUPPORT


def has_heif_support() -> bool:
    """Check if HEIC/HEIF support is available."""
    return HAS_HEIF_SUPPORT


__all__ = [
    'find_image_files',
    'compute_content_identity',
    'compute_fingerprint',
    'fingerprint_image',
    'hamming_distance',
    'find_duplicate_groups',
    'scan_for_duplicates',
    'find_duplicates_from_cache',
    'has_heif_support',
]
