"""
Storage interface used by the scanner.

The scanner only depends on FingerprintStore, so the SQLite cache and the
in-memory store are interchangeable.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, runtime_checkable

import imagehash

from ..models import FileRecord


@runtime_checkable
class FingerprintStore(Protocol):
    """
    Path -> content identity -> fingerprint mapping.

    Implementations raise CacheError for storage failures and must make
    upsert_fingerprint safe to call concurrently for the same key.
    """

    def lookup_by_path(self, path: str) -> Optional[FileRecord]:
        """Last recorded state of a path, or None if never seen."""
        ...

    def lookup_fingerprint(self, digest: str, size: int, grid_size: int) -> Optional[imagehash.ImageHash]:
        """Cached fingerprint for an exact (digest, size, grid_size) match."""
        ...

    def upsert_file(self, path: str, size: int, mtime: float, digest: str) -> None:
        """Record or update the path -> identity mapping."""
        ...

    def upsert_fingerprint(self, digest: str, size: int, grid_size: int,
                           fingerprint: imagehash.ImageHash) -> bool:
        """Insert a fingerprint if absent. Returns True if a row was added."""
        ...

    def remove_file(self, path: str) -> None:
        """Forget one path; drop its content's fingerprints if no other path shares them."""
        ...

    def remove_missing_files(self, existing_paths: Iterable[str]) -> int:
        """Delete file records whose path is not in existing_paths."""
        ...

    def remove_orphan_fingerprints(self) -> int:
        """Delete fingerprints no file record references."""
        ...

    def clear_all(self) -> None:
        """Empty both tables."""
        ...

    def iter_fingerprints(self, grid_size: int) -> list[tuple[str, imagehash.ImageHash]]:
        """All cached (path, fingerprint) pairs at one grid size."""
        ...

    def all_paths(self) -> list[str]:
        """Every recorded path."""
        ...

    def get_stats(self) -> dict:
        """Counts describing the store contents."""
        ...


__all__ = ['FingerprintStore']
