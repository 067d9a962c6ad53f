"""
Scan orchestration for the scanner package.

Runs the per-file pipeline on a thread pool (stat, content identity, cache
lookup, fingerprint on miss, cache write-back) and hands the resolved
fingerprints to the clusterer.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from ..database import FingerprintStore, get_cache
from ..errors import CacheError, ConfigurationError, DecodeError, IoError
from ..models import ContentIdentity, DuplicateGroup, ScanConfig, ScanResult, ScanStats
from .clustering import find_duplicate_groups
from .dependencies import imagehash, progress_bar
from .hashing import compute_content_identity, compute_fingerprint, file_stats


logger = logging.getLogger(__name__)

CACHE_ERROR_POLICIES = ('raise', 'degrade')


class CacheAccess:
    """
    Wraps a FingerprintStore with the scan's cache-failure policy.

    With policy 'raise' a CacheError propagates to the caller. With
    'degrade' the first failure is logged, the cache is switched off for
    the rest of the scan and every later call behaves like a miss.
    """

    def __init__(self, store: Optional[FingerprintStore], on_cache_error: str = 'raise'):
        if on_cache_error not in CACHE_ERROR_POLICIES:
            raise ConfigurationError(
                f"on_cache_error must be one of {CACHE_ERROR_POLICIES}, got {on_cache_error!r}"
            )
        self.store = store
        self.on_cache_error = on_cache_error
        self.degraded = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self.store is not None and not self.degraded

    def call(self, method: str, *args) -> Any:
        """Invoke a store method, or return None when the cache is off."""
        if not self.active:
            return None
        try:
            return getattr(self.store, method)(*args)
        except CacheError as e:
            self.fail(e)
            return None

    def fail(self, error: CacheError) -> None:
        if self.on_cache_error == 'raise':
            raise error
        with self._lock:
            if not self.degraded:
                logger.warning(f"Cache failure, continuing without cache: {error}")
                self.degraded = True


def resolve_fingerprint(
    filepath: str,
    config: ScanConfig,
    cache: CacheAccess,
) -> tuple[imagehash.ImageHash, bool]:
    """
    Get the fingerprint of one file, from the cache when possible.

    Args:
        filepath: Absolute path to the image
        config: Scan settings (grid size, mtime pre-filter)
        cache: Cache access for this scan

    Returns:
        Tuple of (fingerprint, True if it came from the cache)

    Raises:
        IoError: If the file cannot be read
        DecodeError: If the image cannot be decoded
        CacheError: If the cache fails and the policy is 'raise'
    """
    size, mtime = file_stats(filepath)

    identity: Optional[ContentIdentity] = None
    if config.trust_mtime:
        record = cache.call('lookup_by_path', filepath)
        if record is not None and record.size == size and record.mtime == mtime:
            identity = record.identity
    if identity is None:
        identity = compute_content_identity(filepath)

    fingerprint = cache.call('lookup_fingerprint', identity.digest, identity.size, config.grid_size)
    cache_hit = fingerprint is not None
    if not cache_hit:
        fingerprint = compute_fingerprint(filepath, config.grid_size)
        cache.call('upsert_fingerprint', identity.digest, identity.size, config.grid_size, fingerprint)

    cache.call('upsert_file', filepath, identity.size, mtime, identity.digest)
    return fingerprint, cache_hit


def _unique_paths(filepaths: Iterable[str | Path]) -> list[str]:
    seen = set()
    unique = []
    for path in filepaths:
        absolute = os.path.abspath(str(path))
        if absolute not in seen:
            seen.add(absolute)
            unique.append(absolute)
    return unique


def scan_for_duplicates(
    filepaths: Iterable[str | Path],
    config: ScanConfig,
    store: Optional[FingerprintStore] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    show_progress: bool = False,
    on_cache_error: str = 'raise',
    cancel_event: Optional[threading.Event] = None,
) -> ScanResult:
    """
    Fingerprint files in parallel and group the duplicates.

    Args:
        filepaths: Candidate image paths
        config: Scan settings
        store: Cache to use; opens the SQLite cache at config.database_path
            when None and config.use_cache is set
        progress_callback: Optional callback(current, total) for progress updates
        show_progress: Whether to show tqdm progress bar
        on_cache_error: 'raise' to propagate CacheError, 'degrade' to
            continue without the cache
        cancel_event: Set to stop the scan between files

    Returns:
        ScanResult with groups, counters and skipped files

    Raises:
        CacheError: On cache failure when on_cache_error is 'raise'
    """
    paths = _unique_paths(filepaths)
    stats = ScanStats(total_files=len(paths))
    result = ScanResult(stats=stats)

    cache = CacheAccess(None, on_cache_error)
    if config.use_cache:
        try:
            cache.store = store if store is not None else get_cache(config.database_path)
        except CacheError as e:
            cache.fail(e)

    if not paths:
        result.cache_degraded = cache.degraded
        return result

    cancel_event = cancel_event or threading.Event()
    fingerprints: dict[str, imagehash.ImageHash] = {}
    undecodable: list[str] = []

    def worker(path: str) -> Optional[tuple[imagehash.ImageHash, bool]]:
        if cancel_event.is_set():
            return None
        return resolve_fingerprint(path, config, cache)

    pbar = progress_bar(len(paths), "Fingerprinting images", "img", show_progress)

    try:
        with ThreadPoolExecutor(max_workers=config.workers) as executor:
            futures = {executor.submit(worker, path): path for path in paths}

            for i, future in enumerate(as_completed(futures)):
                path = futures[future]
                try:
                    outcome = future.result()
                except IoError as e:
                    stats.io_failures += 1
                    result.skipped[path] = str(e)
                    logger.warning(f"Skipping unreadable file: {e}")
                except DecodeError as e:
                    stats.decode_failures += 1
                    result.skipped[path] = str(e)
                    logger.warning(f"Skipping {e}")
                    undecodable.append(path)
                except CacheError:
                    executor.shutdown(wait=False, cancel_futures=True)
                    cancel_event.set()
                    raise
                else:
                    if outcome is not None:
                        fingerprint, cache_hit = outcome
                        fingerprints[path] = fingerprint
                        if cache_hit:
                            stats.cache_hits += 1
                        else:
                            stats.cache_misses += 1

                if pbar is not None:
                    pbar.update(1)
                if progress_callback:
                    progress_callback(i + 1, len(paths))
    finally:
        if pbar is not None:
            pbar.close()

    # A file that no longer decodes must not keep a cache entry. Removal waits
    # until the pool has drained so no worker is between its two writes.
    for path in sorted(undecodable):
        cache.call('remove_file', path)

    result.cache_degraded = cache.degraded

    if cache.active or cache.degraded:
        logger.info(
            f"Cache: {stats.cache_hits:,} hits, {stats.cache_misses:,} misses "
            f"({stats.hit_rate:.1f}% hit rate)"
        )
    if stats.skipped:
        logger.info(f"Skipped {stats.skipped:,} files that could not be read or decoded")

    if cancel_event.is_set():
        logger.info(f"Scan cancelled after {len(fingerprints):,} of {len(paths):,} files")
        result.cancelled = True
        return result

    result.groups = find_duplicate_groups(
        sorted(fingerprints.items()),
        config.threshold,
        max_workers=config.workers,
        show_progress=show_progress,
    )
    return result


def find_duplicates_from_cache(
    store: FingerprintStore,
    config: ScanConfig,
) -> list[DuplicateGroup]:
    """
    Group duplicates using only fingerprints already in the cache.

    Args:
        store: Cache to read
        config: Scan settings (grid size, threshold, workers)

    Returns:
        Duplicate groups over every cached file at config.grid_size
    """
    entries = store.iter_fingerprints(config.grid_size)
    logger.info(f"Found {len(entries):,} cached fingerprints at grid size {config.grid_size}")
    return find_duplicate_groups(entries, config.threshold, max_workers=config.workers)


__all__ = [
    'CACHE_ERROR_POLICIES',
    'CacheAccess',
    'resolve_fingerprint',
    'scan_for_duplicates',
    'find_duplicates_from_cache',
]
