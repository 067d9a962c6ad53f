"""
Command-line interface for Image Comparator.

Scans paths for duplicate images and runs cache maintenance.

Examples:
    imgcomparator-cli ~/Pictures
    imgcomparator-cli ~/Pictures --threshold 5 --grid-size 16
    imgcomparator-cli --clean-cache
    imgcomparator-cli --from-cache --threshold 10
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import DEFAULT_GRID_SIZE, DEFAULT_THRESHOLD
from .database import FingerprintCache
from .errors import CacheError, ConfigurationError
from .models import ScanResult, format_size
from .scanner import find_image_files, scan_for_duplicates, find_duplicates_from_cache
from .user_config import get_user_config


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure logging for the CLI.

    Args:
        verbose: Enable verbose (DEBUG level) logging

    Returns:
        Configured logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    return logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog='imgcomparator-cli',
        description='Find duplicate images using rotation-invariant perceptual hashing',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s /path/to/photos
      Scan for duplicates (report only)

  %(prog)s /path/to/photos --threshold 5 --grid-size 16
      Strict matching on a small grid

  %(prog)s --clean-cache
      Drop cache entries for files that no longer exist
        """
    )

    parser.add_argument('paths', type=Path, nargs='*', help='Files or directories to scan')

    parser.add_argument(
        '-t', '--threshold',
        type=int,
        default=None,
        help=f'Maximum Hamming distance (0 to grid_size^2, lower=stricter). Default: {DEFAULT_THRESHOLD}'
    )
    parser.add_argument(
        '-g', '--grid-size',
        type=int,
        default=None,
        help=f'Hash grid size, e.g. 64 for a 64x64 grid. Default: {DEFAULT_GRID_SIZE}'
    )
    parser.add_argument('-w', '--workers', type=int, default=None, help='Number of parallel workers')

    parser.add_argument(
        '-.', '--include-hidden',
        action='store_true',
        help='Include hidden directories (starting with .)'
    )
    parser.add_argument(
        '--ignore',
        action='append',
        default=[],
        metavar='PATH',
        help='Skip paths starting with this prefix (repeatable)'
    )
    parser.add_argument(
        '--skip-validation',
        action='store_true',
        help='Skip file format validation (process files even with wrong magic numbers)'
    )

    # Caching
    parser.add_argument('--no-cache', action='store_true', help='Disable hash caching')
    parser.add_argument('--database', default=None, help='Cache database path')
    parser.add_argument(
        '--trust-mtime',
        action='store_true',
        help='Reuse cached digests for files whose size and mtime are unchanged'
    )
    parser.add_argument('--clean-cache', action='store_true', help='Clean up cache entries for missing files')
    parser.add_argument('--clear-cache', action='store_true', help='Delete every cache entry')
    parser.add_argument('--cache-stats', action='store_true', help='Show cache statistics')
    parser.add_argument(
        '--from-cache',
        action='store_true',
        help='Find duplicates among cached fingerprints without scanning'
    )

    # Output
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    parser.add_argument('--no-progress', action='store_true', help='Disable progress bars')

    return parser


def print_groups(groups: list) -> None:
    """Print duplicate groups, one path per line."""
    if not groups:
        print("No duplicate images found")
        return

    print(f"Found {len(groups)} duplicate sets:")
    for group in groups:
        print(f"  Group {group.id} ({group.file_count} files):")
        for path in group.paths:
            print(f"    {path}")


def print_scan_report(result: ScanResult) -> None:
    """Print groups and scan counters."""
    print_groups(result.groups)
    stats = result.stats
    print()
    print(f"Files: {stats.total_files:,} | cache hits: {stats.cache_hits:,} | "
          f"misses: {stats.cache_misses:,} | skipped: {stats.skipped:,}")
    if result.groups:
        print(f"Potential savings: {format_size(result.potential_savings)}")
    if result.cache_degraded:
        print("Warning: the cache failed during the scan and was disabled")
    if result.cancelled:
        print("Scan cancelled before duplicates were grouped")


def print_cache_stats(stats: dict) -> None:
    print(f"Cache database: {stats['db_path']} ({stats['db_size_mb']} MB)")
    print(f"  Files: {stats['file_count']:,}")
    print(f"  Fingerprints: {stats['fingerprint_count']:,}")
    print(f"  Deduplication ratio: {stats['dedup_ratio']:.2f} (lower = more deduplication)")
    for grid_size, count in stats['grid_sizes'].items():
        print(f"  Grid {grid_size}x{grid_size}: {count:,}")


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for bad input, 2 for cache failure)
    """
    args = create_parser().parse_args(argv)
    logger = setup_logging(args.verbose)

    try:
        config = get_user_config().to_scan_config(
            grid_size=args.grid_size,
            threshold=args.threshold,
            workers=args.workers,
            cache_path=args.database,
            include_hidden=args.include_hidden or None,
            skip_validation=args.skip_validation or None,
            trust_mtime=args.trust_mtime or None,
            use_cache=False if args.no_cache else None,
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    ignore_paths = tuple(config.ignore_paths) + tuple(args.ignore)

    maintenance = args.clean_cache or args.clear_cache or args.cache_stats or args.from_cache
    if not args.paths and not maintenance:
        logger.error("Please provide at least one path to scan")
        return 1

    try:
        cache = FingerprintCache(config.database_path) if config.use_cache else None

        if maintenance and cache is None:
            print("Cache is disabled, nothing to do")
        elif cache is not None:
            if args.clear_cache:
                cache.clear_all()
                print("Cleared all cache entries")
            if args.clean_cache:
                files_removed, fingerprints_removed = cache.cleanup_missing()
                print(f"Cleaned up {files_removed} file entries and "
                      f"{fingerprints_removed} orphaned fingerprints from cache")
            if args.cache_stats:
                print_cache_stats(cache.get_stats())
            if args.from_cache:
                print_groups(find_duplicates_from_cache(cache, config))

        if not args.paths:
            return 0

        print(f"Using grid size: {config.grid_size}x{config.grid_size}, threshold: {config.threshold}")
        print(f"Hash caching {'enabled' if cache is not None else 'disabled'}")

        images = find_image_files(
            args.paths,
            include_hidden=config.include_hidden,
            ignore_paths=ignore_paths,
            skip_validation=config.skip_validation,
        )
        print(f"Found {len(images):,} images")

        result = scan_for_duplicates(
            images,
            config,
            store=cache,
            show_progress=not args.no_progress,
        )
    except CacheError as e:
        logger.error(f"Cache error: {e}")
        return 2
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    print_scan_report(result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
