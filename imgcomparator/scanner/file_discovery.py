"""
File discovery module for the scanner package.

Provides functionality to find and enumerate image files from a mix of file
and directory arguments, with hidden-directory pruning, ignored path
prefixes and magic-number validation.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from ..config import IMAGE_EXTENSIONS, MAGIC_NUMBERS
from .dependencies import HAS_HEIF_SUPPORT, _logger


def expand_ignore_paths(ignore_paths: Iterable[str]) -> tuple[str, ...]:
    """Expand '~' and make every ignored prefix absolute."""
    return tuple(os.path.abspath(os.path.expanduser(p)) for p in ignore_paths)


def is_ignored(path: str, ignore_prefixes: tuple[str, ...]) -> bool:
    """True if the path starts with any ignored prefix."""
    for prefix in ignore_prefixes:
        if path.startswith(prefix):
            _logger.debug(f"Ignoring path {path} (matches {prefix})")
            return True
    return False


def has_valid_signature(filepath: str | Path) -> bool:
    """
    Check the file header against the magic number for its extension.

    Args:
        filepath: Path to the file

    Returns:
        True if the header matches, or the extension has no known signature;
        False for short, unreadable or mismatched files
    """
    ext = os.path.splitext(str(filepath))[1].lower()
    try:
        with open(filepath, 'rb') as f:
            header = f.read(16)
    except OSError as e:
        _logger.debug(f"Could not validate {filepath}: {e}")
        return False

    if len(header) < 4:
        return False
    if ext == '.webp':
        return header.startswith(b'RIFF') and header[8:12] == b'WEBP'
    signatures = MAGIC_NUMBERS.get(ext)
    if signatures is None:
        return True
    return any(header.startswith(sig) for sig in signatures)


def _accept_file(path: str, extensions: set[str], skip_validation: bool) -> bool:
    if os.path.splitext(path)[1].lower() not in extensions:
        return False
    if not os.path.isfile(path):
        _logger.warning(f"Skipping inaccessible file: {path}")
        return False
    if skip_validation or has_valid_signature(path):
        return True
    _logger.debug(f"File {path} does not match the format of its extension")
    return False


def find_image_files(
    paths: Iterable[str | Path],
    include_hidden: bool = False,
    ignore_paths: Iterable[str] = (),
    skip_validation: bool = False,
) -> list[str]:
    """
    Find all image files under the given files and directories.

    Args:
        paths: Files and/or directories to search
        include_hidden: Also walk directories whose name starts with '.'
        ignore_paths: Path prefixes to skip ('~' is expanded)
        skip_validation: Do not check magic numbers

    Returns:
        Sorted list of absolute file paths, without duplicates

    Notes:
        - Automatically filters out HEIC/HEIF files if pillow-heif is not installed
        - Symlinked directories are not followed
    """
    extensions = set(IMAGE_EXTENSIONS)
    if not HAS_HEIF_SUPPORT:
        extensions -= {'.heic', '.heif'}

    ignore_prefixes = expand_ignore_paths(ignore_paths)
    found: set[str] = set()

    for root_path in paths:
        root = os.path.abspath(os.path.expanduser(str(root_path)))
        if is_ignored(root, ignore_prefixes):
            continue

        if os.path.isfile(root):
            if _accept_file(root, extensions, skip_validation):
                found.add(root)
            continue

        if not os.path.isdir(root):
            _logger.warning(f"Path does not exist: {root}")
            continue

        for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
            # Prune in place so os.walk does not descend
            dirnames[:] = sorted(
                d for d in dirnames
                if (include_hidden or not d.startswith('.'))
                and not is_ignored(os.path.join(dirpath, d), ignore_prefixes)
            )
            for name in filenames:
                filepath = os.path.join(dirpath, name)
                if is_ignored(filepath, ignore_prefixes):
                    continue
                if _accept_file(filepath, extensions, skip_validation):
                    found.add(filepath)

    return sorted(found)


def _log_walk_error(error: OSError) -> None:
    _logger.warning(f"Could not access directory entry: {error}")


__all__ = [
    'expand_ignore_paths',
    'is_ignored',
    'has_valid_signature',
    'find_image_files',
]
