"""
In-memory FingerprintStore.

Keeps the same two-table layout as the SQLite cache in dictionaries guarded
by a lock. Used for runs with a throwaway cache and as a test double.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Iterable, Optional

import imagehash

from ..codec import decode_fingerprint, encode_fingerprint, fingerprint_grid_size
from ..errors import CacheError
from ..models import FileRecord


logger = logging.getLogger(__name__)


class MemoryFingerprintStore:
    """Dictionary-backed store with the FingerprintStore semantics."""

    def __init__(self):
        self._lock = threading.Lock()
        self._files: dict[str, FileRecord] = {}
        # (digest, size, grid_size) -> hex fingerprint
        self._fingerprints: dict[tuple[str, int, int], str] = {}

    def lookup_by_path(self, path: str) -> Optional[FileRecord]:
        with self._lock:
            return self._files.get(path)

    def lookup_fingerprint(self, digest: str, size: int, grid_size: int) -> Optional[imagehash.ImageHash]:
        with self._lock:
            text = self._fingerprints.get((digest, size, grid_size))
        return decode_fingerprint(text, grid_size) if text is not None else None

    def upsert_file(self, path: str, size: int, mtime: float, digest: str) -> None:
        with self._lock:
            self._files[path] = FileRecord(path=path, size=size, mtime=mtime, digest=digest)

    def upsert_fingerprint(self, digest: str, size: int, grid_size: int,
                           fingerprint: imagehash.ImageHash) -> bool:
        if fingerprint_grid_size(fingerprint) != grid_size:
            raise CacheError(
                f"fingerprint grid size {fingerprint_grid_size(fingerprint)} "
                f"does not match key grid size {grid_size}"
            )
        key = (digest, size, grid_size)
        with self._lock:
            if key in self._fingerprints:
                return False
            self._fingerprints[key] = encode_fingerprint(fingerprint)
            return True

    def remove_file(self, path: str) -> None:
        with self._lock:
            record = self._files.pop(path, None)
            if record is None:
                return
            identity = (record.digest, record.size)
            if any((r.digest, r.size) == identity for r in self._files.values()):
                return
            for key in [key for key in self._fingerprints if key[:2] == identity]:
                del self._fingerprints[key]

    def remove_missing_files(self, existing_paths: Iterable[str]) -> int:
        existing = set(existing_paths)
        with self._lock:
            missing = [path for path in self._files if path not in existing]
            for path in missing:
                del self._files[path]
        return len(missing)

    def remove_orphan_fingerprints(self) -> int:
        with self._lock:
            return self._collect_orphans()

    def _collect_orphans(self) -> int:
        referenced = {(record.digest, record.size) for record in self._files.values()}
        orphans = [key for key in self._fingerprints if key[:2] not in referenced]
        for key in orphans:
            del self._fingerprints[key]
        return len(orphans)

    def cleanup_missing(self) -> tuple[int, int]:
        existing = [path for path in self.all_paths() if os.path.exists(path)]
        return self.remove_missing_files(existing), self.remove_orphan_fingerprints()

    def clear_all(self) -> None:
        with self._lock:
            self._files.clear()
            self._fingerprints.clear()

    def iter_fingerprints(self, grid_size: int) -> list[tuple[str, imagehash.ImageHash]]:
        with self._lock:
            pairs = [
                (path, self._fingerprints[(record.digest, record.size, grid_size)])
                for path, record in self._files.items()
                if (record.digest, record.size, grid_size) in self._fingerprints
            ]
        return [(path, decode_fingerprint(text, grid_size)) for path, text in sorted(pairs)]

    def all_paths(self) -> list[str]:
        with self._lock:
            return sorted(self._files)

    def get_stats(self) -> dict:
        with self._lock:
            file_count = len(self._files)
            fingerprint_count = len(self._fingerprints)
            grid_sizes: dict[int, int] = {}
            for _, _, grid_size in self._fingerprints:
                grid_sizes[grid_size] = grid_sizes.get(grid_size, 0) + 1
        return {
            'file_count': file_count,
            'fingerprint_count': fingerprint_count,
            'grid_sizes': dict(sorted(grid_sizes.items())),
            'dedup_ratio': round(fingerprint_count / file_count, 2) if file_count else 0.0,
            'db_size_bytes': 0,
            'db_size_mb': 0,
            'db_path': ':memory:',
        }


__all__ = ['MemoryFingerprintStore']
