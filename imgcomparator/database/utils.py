"""
Shared utilities for database operations.
"""

from __future__ import annotations

import sqlite3
from typing import Iterator, Sequence

from ..config import CHUNK_SIZE
from ..models import FileRecord


def chunked(items: Sequence, size: int = CHUNK_SIZE) -> Iterator[Sequence]:
    """Yield slices of at most `size` items (SQLite variable limit)."""
    for i in range(0, len(items), size):
        yield items[i:i + size]


def row_to_filerecord(row: sqlite3.Row) -> FileRecord:
    """
    Convert database row to FileRecord object.

    Args:
        row: sqlite3.Row from the files table

    Returns:
        FileRecord object
    """
    return FileRecord(
        path=row['path'],
        size=row['size'],
        mtime=row['mtime'],
        digest=row['digest'],
    )


__all__ = [
    'CHUNK_SIZE',
    'chunked',
    'row_to_filerecord',
]
