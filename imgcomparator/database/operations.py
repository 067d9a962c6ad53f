"""
Core lookup and insert operations for the fingerprint cache.

Provides CacheOperations for the path table and the fingerprint table.
"""

from __future__ import annotations

import logging
from typing import Optional

import imagehash

from ..codec import decode_fingerprint, encode_fingerprint, fingerprint_grid_size
from ..errors import CacheError
from ..models import FileRecord
from .connection import ConnectionManager
from .utils import row_to_filerecord


logger = logging.getLogger(__name__)


class CacheOperations:
    """
    Handles reads and inserts for the fingerprint cache.

    File records are replaced on every sighting of a path. Fingerprint rows
    are insert-or-ignore: once written for a (digest, size, grid_size) they
    never change.
    """

    def __init__(self, connection_manager: ConnectionManager):
        """
        Initialize cache operations.

        Args:
            connection_manager: ConnectionManager instance for database access
        """
        self.conn_mgr = connection_manager

    def lookup_by_path(self, path: str) -> Optional[FileRecord]:
        """
        Get the last recorded state of a path.

        Args:
            path: Absolute file path

        Returns:
            FileRecord if the path was seen before, None otherwise
        """
        with self.conn_mgr.connection(exclusive=False) as conn:
            row = conn.execute(
                "SELECT path, size, mtime, digest FROM files WHERE path = ?",
                (path,)
            ).fetchone()
        return row_to_filerecord(row) if row else None

    def lookup_fingerprint(self, digest: str, size: int, grid_size: int) -> Optional[imagehash.ImageHash]:
        """
        Get a cached fingerprint for a content identity.

        A row only matches when digest, size and grid size all agree, so a
        size mismatch is a miss.

        Args:
            digest: SHA-256 hex digest of the contents
            size: Size in bytes of the contents
            grid_size: Grid size the fingerprint was computed at

        Returns:
            Fingerprint if cached, None otherwise
        """
        with self.conn_mgr.connection(exclusive=False) as conn:
            row = conn.execute("""
                SELECT fingerprint FROM fingerprints
                WHERE digest = ? AND size = ? AND grid_size = ?
            """, (digest, size, grid_size)).fetchone()

        if row is None:
            return None

        try:
            return decode_fingerprint(row['fingerprint'], grid_size)
        except ValueError as e:
            # Unreadable row: drop it so the fingerprint is recomputed and re-inserted
            logger.warning(f"Discarding malformed cached fingerprint for {digest[:12]}: {e}")
            with self.conn_mgr.connection(exclusive=True) as conn:
                conn.execute("""
                    DELETE FROM fingerprints
                    WHERE digest = ? AND size = ? AND grid_size = ?
                """, (digest, size, grid_size))
            return None

    def upsert_file(self, path: str, size: int, mtime: float, digest: str) -> None:
        """
        Record or update the content identity of a path.

        Args:
            path: Absolute file path
            size: Size in bytes
            mtime: Modification time (from os.stat)
            digest: SHA-256 hex digest of the contents
        """
        with self.conn_mgr.connection(exclusive=True) as conn:
            conn.execute("""
                INSERT OR REPLACE INTO files (path, size, mtime, digest, last_seen)
                VALUES (?, ?, ?, ?, strftime('%s', 'now'))
            """, (path, size, mtime, digest))

    def upsert_fingerprint(self, digest: str, size: int, grid_size: int,
                           fingerprint: imagehash.ImageHash) -> bool:
        """
        Insert a fingerprint unless one exists for the same key.

        Args:
            digest: SHA-256 hex digest of the contents
            size: Size in bytes of the contents
            grid_size: Grid size the fingerprint was computed at
            fingerprint: Canonical fingerprint

        Returns:
            True if a new row was written, False if one already existed

        Raises:
            CacheError: If the fingerprint does not match grid_size
        """
        if fingerprint_grid_size(fingerprint) != grid_size:
            raise CacheError(
                f"fingerprint grid size {fingerprint_grid_size(fingerprint)} "
                f"does not match key grid size {grid_size}"
            )
        with self.conn_mgr.connection(exclusive=True) as conn:
            result = conn.execute("""
                INSERT OR IGNORE INTO fingerprints (digest, size, grid_size, fingerprint)
                VALUES (?, ?, ?, ?)
            """, (digest, size, grid_size, encode_fingerprint(fingerprint)))
            return result.rowcount == 1

    def remove_file(self, path: str) -> None:
        """
        Remove a specific path from the cache, then drop the fingerprints of
        its content if no other path still refers to that content.

        Fingerprints of other contents are left alone, so rows written by
        a scan that has not yet recorded their file stay valid.

        Args:
            path: Path to forget
        """
        with self.conn_mgr.connection(exclusive=True) as conn:
            row = conn.execute(
                "SELECT digest, size FROM files WHERE path = ?", (path,)
            ).fetchone()
            if row is None:
                return
            conn.execute("DELETE FROM files WHERE path = ?", (path,))
            orphaned = conn.execute("""
                DELETE FROM fingerprints
                WHERE digest = ? AND size = ?
                AND NOT EXISTS (
                    SELECT 1 FROM files f
                    WHERE f.digest = fingerprints.digest AND f.size = fingerprints.size
                )
            """, (row['digest'], row['size'])).rowcount
        if orphaned:
            logger.info(f"Dropped {orphaned} fingerprints after removing {path}")

    def iter_fingerprints(self, grid_size: int) -> list[tuple[str, imagehash.ImageHash]]:
        """
        Get every cached (path, fingerprint) pair at one grid size.

        Args:
            grid_size: Grid size to select

        Returns:
            Pairs sorted by path; rows that fail to decode are skipped
        """
        with self.conn_mgr.connection(exclusive=False) as conn:
            rows = conn.execute("""
                SELECT f.path, fp.fingerprint
                FROM files f
                JOIN fingerprints fp ON fp.digest = f.digest AND fp.size = f.size
                WHERE fp.grid_size = ?
                ORDER BY f.path
            """, (grid_size,)).fetchall()

        results = []
        for row in rows:
            try:
                results.append((row['path'], decode_fingerprint(row['fingerprint'], grid_size)))
            except ValueError as e:
                logger.warning(f"Could not decode cached fingerprint for {row['path']}: {e}")
        return results

    def all_paths(self) -> list[str]:
        """Every recorded path, sorted."""
        with self.conn_mgr.connection(exclusive=False) as conn:
            rows = conn.execute("SELECT path FROM files ORDER BY path").fetchall()
        return [row['path'] for row in rows]


__all__ = ['CacheOperations']
