"""
Fingerprint text encoding shared by the scanner and the cache.

Fingerprints are stored as fixed-width lowercase hex of their N*N bits in
row-major order. Equal-width hex strings sort the same way as the bit
vectors they encode, which the canonical rotation choice relies on.
"""

from __future__ import annotations

import math

import imagehash
import numpy as np


def encode_fingerprint(fingerprint: imagehash.ImageHash) -> str:
    """Fixed-width hex text of a fingerprint."""
    return str(fingerprint)


def decode_fingerprint(text: str, grid_size: int) -> imagehash.ImageHash:
    """
    Rebuild a fingerprint from its hex text.

    Args:
        text: Hex string produced by encode_fingerprint
        grid_size: Grid size the fingerprint was computed at

    Returns:
        ImageHash wrapping an N x N boolean array

    Raises:
        ValueError: If the text does not encode exactly grid_size**2 bits
    """
    bit_count = grid_size * grid_size
    width = math.ceil(bit_count / 4)
    if len(text) != width:
        raise ValueError(
            f"fingerprint has {len(text)} hex digits, expected {width} for grid size {grid_size}"
        )
    value = int(text, 16)
    if value >> bit_count:
        raise ValueError(f"fingerprint has more than {bit_count} bits")
    bits = format(value, f'0{bit_count}b')
    array = np.frombuffer(bits.encode('ascii'), dtype=np.uint8) == ord('1')
    return imagehash.ImageHash(array.reshape(grid_size, grid_size))


def fingerprint_grid_size(fingerprint: imagehash.ImageHash) -> int:
    """Grid size N of a fingerprint."""
    return int(fingerprint.hash.shape[0])


__all__ = [
    'encode_fingerprint',
    'decode_fingerprint',
    'fingerprint_grid_size',
]
