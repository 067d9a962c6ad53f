"""
Hashing module for the scanner package.

Provides the content identity (SHA-256 + size) used as the cache key, and
the rotation-invariant perceptual fingerprint used for similarity matching.

The fingerprint is an average hash over an N x N luminance grid. The grid
is rotated in 90 degree steps and the smallest of the four resulting bit
vectors is kept, so an image and its rotated copies share one fingerprint.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from ..codec import encode_fingerprint, decode_fingerprint, fingerprint_grid_size
from ..config import HASH_BLOCK_SIZE
from ..errors import ConfigurationError, DecodeError, IoError, UnsupportedFormatError
from ..models import ContentIdentity
from .dependencies import Image, imagehash, np, _logger

# Quarter turns applied to the sample grid, in tie-break order (0 degrees first)
ROTATIONS = (0, 1, 2, 3)

# Pixel rows converted to float64 at a time while sampling
SAMPLE_STRIP_ROWS = 1024


def compute_content_identity(filepath: str | Path, algorithm: str = 'sha256') -> ContentIdentity:
    """
    Calculate the content identity of a file.

    Args:
        filepath: Path to the file
        algorithm: Hash algorithm to use (default: sha256)

    Returns:
        ContentIdentity with the hex digest and the number of bytes read

    Raises:
        IoError: If the file cannot be opened or read completely
    """
    hasher = hashlib.new(algorithm)
    size = 0
    try:
        with open(filepath, 'rb') as f:
            for chunk in iter(lambda: f.read(HASH_BLOCK_SIZE), b''):
                hasher.update(chunk)
                size += len(chunk)
    except OSError as e:
        raise IoError(str(filepath), f"cannot read file: {e}") from e
    return ContentIdentity(digest=hasher.hexdigest(), size=size)


def _coverage_weights(length: int, grid_size: int) -> np.ndarray:
    """
    Overlap of each pixel with each cell along one axis.

    Pixels and cells are measured in units of 1/grid_size pixel, so every
    edge and every overlap is an integer and a mirrored axis gives the
    mirrored matrix exactly.

    Returns:
        (grid_size, length) float64 matrix of integer overlaps
    """
    pixel_edges = np.arange(length + 1, dtype=np.int64) * grid_size
    cell_edges = np.arange(grid_size + 1, dtype=np.int64) * length
    low = np.maximum(cell_edges[:-1, None], pixel_edges[None, :-1])
    high = np.minimum(cell_edges[1:, None], pixel_edges[None, 1:])
    return np.clip(high - low, 0, None).astype(np.float64)


def sample_grid(img: Image.Image, grid_size: int) -> np.ndarray:
    """
    Reduce an image to an N x N grid of area-averaged luminance.

    Each cell holds the exact area average of the 8-bit luminance under it,
    scaled by the pixel count (mean * width * height) so it stays an
    integer. All operands are integers well below 2**53, so the float64
    products are exact whatever order BLAS sums them in, and rotating the
    image rotates the grid bit for bit.

    Returns:
        (grid_size, grid_size) int64 array
    """
    pixels = np.asarray(img.convert('L'))
    height, width = pixels.shape
    row_weights = _coverage_weights(height, grid_size)
    col_weights = _coverage_weights(width, grid_size)

    # Reduce rows strip by strip to bound the float64 copy of the pixels
    row_totals = np.zeros((grid_size, width), dtype=np.float64)
    for start in range(0, height, SAMPLE_STRIP_ROWS):
        stop = start + SAMPLE_STRIP_ROWS
        row_totals += row_weights[:, start:stop] @ pixels[start:stop].astype(np.float64)
    return np.rint(row_totals @ col_weights.T).astype(np.int64)


def grid_to_hash(grid: np.ndarray) -> imagehash.ImageHash:
    """Threshold a sample grid at its mean: 1 where value >= mean, row-major."""
    # value >= sum / count, compared without division
    return imagehash.ImageHash(grid * grid.size >= grid.sum())


def rotation_candidates(grid: np.ndarray) -> list[imagehash.ImageHash]:
    """Hashes of the grid rotated clockwise by 0, 90, 180 and 270 degrees."""
    return [grid_to_hash(np.rot90(grid, k=-turns)) for turns in ROTATIONS]


def canonical_hash(grid: np.ndarray) -> imagehash.ImageHash:
    """
    Pick the canonical rotation of a sample grid.

    Candidates are ordered by their fixed-width hex encoding, which matches
    unsigned integer order of the bit vectors. min() keeps the first of
    equal candidates, so a full tie resolves to the unrotated grid.
    """
    return min(rotation_candidates(grid), key=encode_fingerprint)


def fingerprint_image(img: Image.Image, grid_size: int) -> imagehash.ImageHash:
    """Compute the canonical fingerprint of an already decoded image."""
    if grid_size < 1:
        raise ConfigurationError(f"grid_size must be positive, got {grid_size}")
    return canonical_hash(sample_grid(img, grid_size))


def compute_fingerprint(filepath: str | Path, grid_size: int) -> imagehash.ImageHash:
    """
    Decode an image file and compute its rotation-invariant fingerprint.

    Args:
        filepath: Path to the image
        grid_size: Grid size N (the fingerprint has N*N bits)

    Returns:
        Canonical fingerprint as an ImageHash

    Raises:
        IoError: If the file cannot be opened
        UnsupportedFormatError: If Pillow cannot identify the format
        DecodeError: If the image data is corrupt or truncated
    """
    filepath = str(filepath)
    try:
        with Image.open(filepath) as img:
            # Force load to detect truncated/corrupt images early
            img.load()
            return fingerprint_image(img, grid_size)
    except Image.UnidentifiedImageError as e:
        raise UnsupportedFormatError(filepath, f"not a recognised image format: {e}") from e
    except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
        raise IoError(filepath, f"cannot open image: {e}") from e
    except ConfigurationError:
        raise
    except Exception as e:
        _logger.debug(f"Decoding failed for {filepath}: {e}")
        raise DecodeError(filepath, f"corrupt or truncated image: {e}") from e


def hamming_distance(first: imagehash.ImageHash, second: imagehash.ImageHash) -> int:
    """
    Count differing bits between two fingerprints.

    Raises:
        ConfigurationError: If the fingerprints come from different grid sizes
    """
    if first.hash.shape != second.hash.shape:
        raise ConfigurationError(
            f"cannot compare fingerprints of shape {first.hash.shape} and {second.hash.shape}"
        )
    return int(first - second)


def file_stats(filepath: str | Path) -> tuple[int, float]:
    """
    Get file size and mtime.

    Raises:
        IoError: If the file cannot be stat'ed (missing, broken symlink)
    """
    try:
        stat = os.stat(filepath)
    except OSError as e:
        raise IoError(str(filepath), f"cannot stat file: {e}") from e
    return stat.st_size, stat.st_mtime


__all__ = [
    'ROTATIONS',
    'compute_content_identity',
    'sample_grid',
    'grid_to_hash',
    'rotation_candidates',
    'canonical_hash',
    'fingerprint_image',
    'compute_fingerprint',
    'encode_fingerprint',
    'decode_fingerprint',
    'fingerprint_grid_size',
    'hamming_distance',
    'file_stats',
]
