"""
Database schema initialization and migrations.

Two normalized tables:
- files: one row per path, pointing at a content identity (digest, size)
- fingerprints: one row per (digest, size, grid_size), never updated
"""

from __future__ import annotations

import sqlite3


# Schema version - increment when changing table structure
SCHEMA_VERSION = 1


def initialize_schema(conn: sqlite3.Connection) -> None:
    """
    Initialize database schema with versioning support.

    Creates tables and indexes if they don't exist. Drops and recreates
    tables if schema version has changed.

    Args:
        conn: Active database connection

    Tables created:
        - meta: Schema version tracking
        - files: Path -> content identity
        - fingerprints: Content identity + grid size -> fingerprint
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    """)

    result = conn.execute(
        "SELECT value FROM meta WHERE key = 'schema_version'"
    ).fetchone()

    current_version = int(result['value']) if result else 0

    # Drop and recreate tables if schema changed
    if current_version != SCHEMA_VERSION:
        conn.execute("DROP TABLE IF EXISTS files")
        conn.execute("DROP TABLE IF EXISTS fingerprints")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS files (
            path TEXT PRIMARY KEY,
            size INTEGER NOT NULL,
            mtime REAL NOT NULL,
            digest TEXT NOT NULL,
            last_seen REAL DEFAULT (strftime('%s', 'now'))
        )
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_files_identity
        ON files(digest, size)
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS fingerprints (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            digest TEXT NOT NULL,
            size INTEGER NOT NULL,
            grid_size INTEGER NOT NULL,
            fingerprint TEXT NOT NULL,
            created_at REAL DEFAULT (strftime('%s', 'now')),
            UNIQUE (digest, size, grid_size)
        )
    """)

    conn.execute("""
        INSERT OR REPLACE INTO meta (key, value)
        VALUES ('schema_version', ?)
    """, (str(SCHEMA_VERSION),))


__all__ = ['SCHEMA_VERSION', 'initialize_schema']
