"""
Fingerprint cache for Image Comparator.

Provides persistent caching of content identities and fingerprints to enable:
- Incremental re-scans (only decode new/changed content)
- Sharing one fingerprint between byte-identical files
- Clustering straight from the cache without rescanning

Files are keyed by path; fingerprints are keyed by SHA-256 digest, size and
grid size.

Public API:
- FingerprintStore: Interface the scanner depends on
- FingerprintCache: SQLite implementation
- MemoryFingerprintStore: In-memory implementation
- get_cache(): Get shared cache instance for a database path
- reset_cache(): Reset shared instances (testing)
"""

from __future__ import annotations

import threading
from typing import Optional

from ..config import CACHE_DB_FILE
from .base import FingerprintStore
from .core import FingerprintCache
from .memory import MemoryFingerprintStore


# Shared cache instances, one per database path
_cache_instances: dict[str, FingerprintCache] = {}
_cache_lock = threading.Lock()


def get_cache(db_path: Optional[str] = None) -> FingerprintCache:
    """
    Get or create the shared cache instance for a database (thread-safe).

    Args:
        db_path: Database location (default location if None)

    Returns:
        FingerprintCache instance

    Example:
        cache = get_cache()
        record = cache.lookup_by_path(filepath)
    """
    path = db_path or CACHE_DB_FILE
    with _cache_lock:
        cache = _cache_instances.get(path)
        if cache is None:
            cache = FingerprintCache(path)
            _cache_instances[path] = cache
    return cache


def reset_cache():
    """
    Reset the shared cache instances (mainly for testing).

    Example:
        reset_cache()  # Clear instances for next test
    """
    with _cache_lock:
        _cache_instances.clear()


__all__ = [
    'FingerprintStore',
    'FingerprintCache',
    'MemoryFingerprintStore',
    'get_cache',
    'reset_cache',
]
