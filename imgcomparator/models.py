"""
Data models for Image Comparator.

Contains dataclasses for file records, content identities, scan settings,
duplicate groups and scan results.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from .config import (
    CACHE_DB_FILE,
    DEFAULT_GRID_SIZE,
    DEFAULT_THRESHOLD,
    DEFAULT_WORKERS,
)
from .errors import ConfigurationError


def format_size(size_bytes: float) -> str:
    """Format file size in human-readable form."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


@dataclass(frozen=True)
class ContentIdentity:
    """
    Identity of a file's content, independent of its path.

    Attributes:
        digest: SHA-256 hex digest of the file contents
        size: Size in bytes that was digested
    """
    digest: str
    size: int


@dataclass(frozen=True)
class FileRecord:
    """
    Last known state of a file path, as stored in the cache.

    Attributes:
        path: Absolute path to the file
        size: Size in bytes when last seen
        mtime: Modification time when last seen (from os.stat)
        digest: SHA-256 hex digest of the contents when last seen
    """
    path: str
    size: int
    mtime: float
    digest: str

    @property
    def identity(self) -> ContentIdentity:
        """Return the content identity this record points at."""
        return ContentIdentity(digest=self.digest, size=self.size)


@dataclass(frozen=True)
class ScanConfig:
    """
    Settings for one scan. Immutable once the scan starts.

    Attributes:
        grid_size: Fingerprint grid size N (fingerprints have N*N bits)
        threshold: Maximum Hamming distance linking two images
        cache_path: SQLite cache location (None = default location)
        ignore_paths: Path prefixes skipped during discovery ('~' allowed)
        include_hidden: Walk into directories starting with '.'
        workers: Number of parallel workers
        use_cache: Whether to consult and update the cache
        trust_mtime: Skip re-digesting files whose size and mtime match
            the cached file record
        skip_validation: Do not check magic numbers during discovery
    """
    grid_size: int = DEFAULT_GRID_SIZE
    threshold: int = DEFAULT_THRESHOLD
    cache_path: Optional[str] = None
    ignore_paths: tuple = ()
    include_hidden: bool = False
    workers: int = DEFAULT_WORKERS
    use_cache: bool = True
    trust_mtime: bool = False
    skip_validation: bool = False

    def __post_init__(self):
        if isinstance(self.grid_size, bool) or not isinstance(self.grid_size, int) or self.grid_size < 1:
            raise ConfigurationError(f"grid_size must be a positive integer, got {self.grid_size!r}")
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, int):
            raise ConfigurationError(f"threshold must be an integer, got {self.threshold!r}")
        if not 0 <= self.threshold <= self.bit_length:
            raise ConfigurationError(
                f"threshold must be between 0 and {self.bit_length} "
                f"for grid size {self.grid_size}, got {self.threshold}"
            )
        if isinstance(self.workers, bool) or not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigurationError(f"workers must be a positive integer, got {self.workers!r}")
        # Accept any iterable of prefixes but store a tuple so the config stays hashable
        object.__setattr__(self, 'ignore_paths', tuple(self.ignore_paths))

    @property
    def bit_length(self) -> int:
        """Number of bits in a fingerprint at this grid size."""
        return self.grid_size * self.grid_size

    @property
    def database_path(self) -> str:
        """Resolved cache database path."""
        return self.cache_path or CACHE_DB_FILE


@dataclass
class DuplicateGroup:
    """
    A group of duplicate images.

    Members are linked by a chain of pairs whose fingerprints are within
    `threshold` bits of each other, so two members may themselves be
    further apart than the threshold.

    Attributes:
        id: Identifier for this group within one result
        paths: Sorted member paths (always two or more)
        grid_size: Grid size of the fingerprints that were compared
        threshold: Distance threshold used for linking
    """
    id: int
    paths: tuple = ()
    grid_size: int = DEFAULT_GRID_SIZE
    threshold: int = DEFAULT_THRESHOLD

    @property
    def file_count(self) -> int:
        """Number of files in this group."""
        return len(self.paths)

    def __contains__(self, path: str) -> bool:
        return path in self.paths

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'paths': list(self.paths),
            'file_count': self.file_count,
            'grid_size': self.grid_size,
            'threshold': self.threshold,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'DuplicateGroup':
        """Create DuplicateGroup from dictionary."""
        return cls(
            id=data['id'],
            paths=tuple(data.get('paths', ())),
            grid_size=data.get('grid_size', DEFAULT_GRID_SIZE),
            threshold=data.get('threshold', DEFAULT_THRESHOLD),
        )


@dataclass
class ScanStats:
    """Counters collected during a scan."""
    total_files: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    decode_failures: int = 0
    io_failures: int = 0

    @property
    def skipped(self) -> int:
        """Files dropped from clustering because of per-file errors."""
        return self.decode_failures + self.io_failures

    @property
    def hit_rate(self) -> float:
        """Return cache hit rate as percentage of fingerprinted files."""
        resolved = self.cache_hits + self.cache_misses
        if resolved == 0:
            return 0.0
        return (self.cache_hits / resolved) * 100

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'total_files': self.total_files,
            'cache_hits': self.cache_hits,
            'cache_misses': self.cache_misses,
            'decode_failures': self.decode_failures,
            'io_failures': self.io_failures,
            'skipped': self.skipped,
            'hit_rate': round(self.hit_rate, 1),
        }


@dataclass
class ScanResult:
    """
    Outcome of a scan.

    Attributes:
        groups: Duplicate groups found (empty if the scan was cancelled)
        stats: Hit/miss/failure counters
        skipped: Mapping of skipped path to the reason it was skipped
        cancelled: True if the scan was interrupted before clustering
        cache_degraded: True if a cache failure forced the scan to
            continue without the cache
    """
    groups: list = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
    skipped: dict = field(default_factory=dict)
    cancelled: bool = False
    cache_degraded: bool = False

    @property
    def duplicate_count(self) -> int:
        """Number of files that have at least one duplicate."""
        return sum(group.file_count for group in self.groups)

    @property
    def potential_savings(self) -> int:
        """Bytes freed by keeping one file per group."""
        total = 0
        for group in self.groups:
            sizes = sorted((_safe_size(p) for p in group.paths), reverse=True)
            total += sum(sizes[1:])
        return total

    @property
    def potential_savings_formatted(self) -> str:
        """Human-readable potential savings."""
        return format_size(self.potential_savings)


def _safe_size(path: str) -> int:
    try:
        return os.path.getsize(path)
    except OSError:
        return 0
