"""
Database connection management with thread safety.

Provides ConnectionManager for thread-safe SQLite operations with WAL mode.
Every sqlite3 failure leaves this module as a CacheError.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from ..errors import CacheError


logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages SQLite connections with thread-safety.

    Provides context manager for database connections with:
    - Thread-safe write operations via lock
    - WAL mode for better read/write concurrency
    - Transaction management (BEGIN/COMMIT/ROLLBACK)
    """

    def __init__(self, db_path: str, timeout: float = 30.0):
        """
        Initialize connection manager.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait for a locked database

        Raises:
            CacheError: If the database directory cannot be created
        """
        self.db_path = db_path
        self.timeout = timeout
        self._write_lock = threading.Lock()
        self._ensure_directory()

    def _ensure_directory(self):
        """Ensure the directory for the database file exists."""
        db_path = Path(self.db_path).resolve()
        db_dir = db_path.parent

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create cache directory {db_dir}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as e:
            raise CacheError(f"Cannot open cache database {self.db_path}: {e}") from e
        return conn

    @contextmanager
    def connection(self, exclusive: bool = False) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Args:
            exclusive: If True, acquire write lock for thread safety

        Yields:
            sqlite3.Connection with row factory and WAL mode enabled

        Raises:
            CacheError: On any SQLite failure inside the block

        Example:
            with conn_mgr.connection(exclusive=True) as conn:
                conn.execute("INSERT INTO ...")
        """
        if exclusive:
            self._write_lock.acquire()

        try:
            conn = self._connect()
            try:
                conn.execute("BEGIN IMMEDIATE" if exclusive else "BEGIN")
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise CacheError(f"Cache database error ({self.db_path}): {e}") from e
            except BaseException:
                self._rollback(conn)
                raise
            finally:
                conn.close()
        finally:
            if exclusive:
                self._write_lock.release()

    def execute_outside_transaction(self, sql: str) -> None:
        """Run a statement that SQLite refuses inside a transaction (VACUUM)."""
        with self._write_lock:
            conn = self._connect()
            try:
                conn.execute(sql)
            except sqlite3.Error as e:
                raise CacheError(f"Cache database error ({self.db_path}): {e}") from e
            finally:
                conn.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as e:
                logger.debug(f"Rollback failed: {e}")


__all__ = ['ConnectionManager']
