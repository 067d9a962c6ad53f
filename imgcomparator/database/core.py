"""
FingerprintCache facade class for coordinating database operations.

Provides a unified interface to all cache operations using the facade pattern.
"""

from __future__ import annotations

from typing import Iterable, Optional

import imagehash

from ..config import CACHE_DB_FILE
from ..models import FileRecord
from .connection import ConnectionManager
from .schema import initialize_schema, SCHEMA_VERSION
from .operations import CacheOperations
from .maintenance import MaintenanceOperations


class FingerprintCache:
    """
    SQLite-backed cache of content identities and fingerprints.

    Thread-safe for concurrent read/write operations. Any storage failure
    is raised as CacheError.

    Usage:
        cache = FingerprintCache()

        record = cache.lookup_by_path(path)
        fingerprint = cache.lookup_fingerprint(digest, size, 64)
        if fingerprint is None:
            fingerprint = compute_fingerprint(path, 64)
            cache.upsert_fingerprint(digest, size, 64, fingerprint)
        cache.upsert_file(path, size, mtime, digest)
    """

    # Schema version - increment when changing table structure
    SCHEMA_VERSION = SCHEMA_VERSION

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the fingerprint cache.

        Args:
            db_path: Path to SQLite database file. Uses default if None.

        Raises:
            CacheError: If the database cannot be created or opened
        """
        self.db_path = db_path or CACHE_DB_FILE

        # Initialize components
        self._conn_mgr = ConnectionManager(self.db_path)
        self._operations = CacheOperations(self._conn_mgr)
        self._maintenance = MaintenanceOperations(self._conn_mgr)

        # Initialize database schema
        with self._conn_mgr.connection(exclusive=True) as conn:
            initialize_schema(conn)

    # Delegate to CacheOperations
    def lookup_by_path(self, path: str) -> Optional[FileRecord]:
        """Get the last recorded state of a path."""
        return self._operations.lookup_by_path(path)

    def lookup_fingerprint(self, digest: str, size: int, grid_size: int) -> Optional[imagehash.ImageHash]:
        """Get a cached fingerprint for an exact (digest, size, grid_size)."""
        return self._operations.lookup_fingerprint(digest, size, grid_size)

    def upsert_file(self, path: str, size: int, mtime: float, digest: str) -> None:
        """Record or update the content identity of a path."""
        self._operations.upsert_file(path, size, mtime, digest)

    def upsert_fingerprint(self, digest: str, size: int, grid_size: int,
                           fingerprint: imagehash.ImageHash) -> bool:
        """Insert a fingerprint unless one exists for the same key."""
        return self._operations.upsert_fingerprint(digest, size, grid_size, fingerprint)

    def remove_file(self, path: str) -> None:
        """Remove one path and its content's fingerprints if no other path shares them."""
        self._operations.remove_file(path)

    def iter_fingerprints(self, grid_size: int) -> list[tuple[str, imagehash.ImageHash]]:
        """Get every cached (path, fingerprint) pair at one grid size."""
        return self._operations.iter_fingerprints(grid_size)

    def all_paths(self) -> list[str]:
        """Every recorded path, sorted."""
        return self._operations.all_paths()

    # Delegate to MaintenanceOperations
    def remove_missing_files(self, existing_paths: Iterable[str]) -> int:
        """Remove file records whose path is not in existing_paths."""
        return self._maintenance.remove_missing_files(existing_paths)

    def remove_orphan_fingerprints(self) -> int:
        """Remove fingerprints no file record references."""
        return self._maintenance.remove_orphan_fingerprints()

    def cleanup_missing(self) -> tuple[int, int]:
        """Remove records for files no longer on disk, then orphans."""
        return self._maintenance.cleanup_missing()

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return self._maintenance.get_stats()

    def clear_all(self) -> None:
        """Clear all cached data."""
        self._maintenance.clear_all()

    def vacuum(self) -> None:
        """Compact the database file."""
        self._maintenance.vacuum()


__all__ = ['FingerprintCache']
