"""
Maintenance operations for the fingerprint cache.

Provides missing-file cleanup, orphan collection, statistics, reset and
vacuum operations. These run independently of any scan.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

from .connection import ConnectionManager
from .utils import chunked


logger = logging.getLogger(__name__)


class MaintenanceOperations:
    """
    Handles maintenance operations for the fingerprint cache.

    Provides cleanup, statistics reporting, and database compaction.
    """

    def __init__(self, connection_manager: ConnectionManager):
        """
        Initialize maintenance operations.

        Args:
            connection_manager: ConnectionManager instance for database access
        """
        self.conn_mgr = connection_manager

    def remove_missing_files(self, existing_paths: Iterable[str]) -> int:
        """
        Remove file records whose path is not in the given set.

        Args:
            existing_paths: Paths that still exist on disk

        Returns:
            Number of file records removed
        """
        existing = set(existing_paths)
        with self.conn_mgr.connection(exclusive=True) as conn:
            rows = conn.execute("SELECT path FROM files").fetchall()
            missing = [row['path'] for row in rows if row['path'] not in existing]

            # Delete in chunks to avoid SQLite variable limit
            for chunk in chunked(missing):
                placeholders = ','.join('?' * len(chunk))
                conn.execute(
                    f"DELETE FROM files WHERE path IN ({placeholders})",
                    list(chunk)
                )

        if missing:
            logger.info(f"Removed {len(missing)} missing files from cache")
        return len(missing)

    def remove_orphan_fingerprints(self) -> int:
        """
        Remove fingerprints that no file record references.

        Returns:
            Number of fingerprint rows removed
        """
        with self.conn_mgr.connection(exclusive=True) as conn:
            removed = conn.execute("""
                DELETE FROM fingerprints
                WHERE NOT EXISTS (
                    SELECT 1 FROM files f
                    WHERE f.digest = fingerprints.digest AND f.size = fingerprints.size
                )
            """).rowcount

        if removed:
            logger.info(f"Cleaned up {removed} orphaned fingerprints")
        return removed

    def cleanup_missing(self) -> tuple[int, int]:
        """
        Drop records for files no longer on disk, then orphaned fingerprints.

        Returns:
            Tuple of (files removed, fingerprints removed)
        """
        with self.conn_mgr.connection(exclusive=False) as conn:
            paths = [row['path'] for row in conn.execute("SELECT path FROM files").fetchall()]

        logger.info(f"Checking {len(paths):,} cached paths for missing files...")
        existing = [path for path in paths if os.path.exists(path)]
        files_removed = self.remove_missing_files(existing)
        fingerprints_removed = self.remove_orphan_fingerprints()
        return files_removed, fingerprints_removed

    def get_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics:
                - file_count: Number of file records
                - fingerprint_count: Number of fingerprint rows
                - grid_sizes: Fingerprint count per grid size
                - dedup_ratio: fingerprints / files (lower = more sharing)
                - db_size_bytes: Database size in bytes
                - db_size_mb: Database size in MB
                - db_path: Path to database file
        """
        with self.conn_mgr.connection(exclusive=False) as conn:
            file_count = conn.execute("SELECT COUNT(*) AS cnt FROM files").fetchone()['cnt']
            fingerprint_count = conn.execute("SELECT COUNT(*) AS cnt FROM fingerprints").fetchone()['cnt']
            grid_rows = conn.execute("""
                SELECT grid_size, COUNT(*) AS cnt FROM fingerprints
                GROUP BY grid_size ORDER BY grid_size
            """).fetchall()

        db_size = os.path.getsize(self.conn_mgr.db_path) if os.path.exists(self.conn_mgr.db_path) else 0

        return {
            'file_count': file_count,
            'fingerprint_count': fingerprint_count,
            'grid_sizes': {row['grid_size']: row['cnt'] for row in grid_rows},
            'dedup_ratio': round(fingerprint_count / file_count, 2) if file_count else 0.0,
            'db_size_bytes': db_size,
            'db_size_mb': round(db_size / (1024 * 1024), 2),
            'db_path': self.conn_mgr.db_path,
        }

    def clear_all(self) -> None:
        """Clear all cached data."""
        with self.conn_mgr.connection(exclusive=True) as conn:
            conn.execute("DELETE FROM files")
            conn.execute("DELETE FROM fingerprints")
        logger.info(f"Cleared cache at {self.conn_mgr.db_path}")
        # VACUUM outside transaction
        self.vacuum()

    def vacuum(self) -> None:
        """Compact the database file."""
        self.conn_mgr.execute_outside_transaction("VACUUM")


__all__ = ['MaintenanceOperations']
