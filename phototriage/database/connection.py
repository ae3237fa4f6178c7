"""
SQLite connection handling for the fingerprint cache.

Scan workers never touch the database directly: the batch scan reads the
cache once before its pool starts and writes chunks after it drains. The
manager still serializes writers so several scans may share one file.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class ConnectionManager:
    """
    Opens one WAL-mode connection per operation.

    Every `connection()` block is a single BEGIN/COMMIT transaction,
    rolled back if the block raises. Writers (`exclusive=True`) hold a
    process-wide lock for the duration of the block.
    """

    def __init__(self, db_path: str, timeout: float = 30.0):
        """
        Args:
            db_path: SQLite file; parent directories are created if missing
            timeout: Seconds to wait on a database locked by another process
        """
        self.db_path = str(db_path)
        self.timeout = timeout
        self._write_lock = threading.Lock()
        Path(self.db_path).resolve().parent.mkdir(parents=True, exist_ok=True)

    def _open(self) -> sqlite3.Connection:
        # isolation_level=None: BEGIN/COMMIT are issued explicitly
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    @contextmanager
    def connection(self, exclusive: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Yield a connection inside a transaction.

        Example:
            with conn_mgr.connection(exclusive=True) as conn:
                conn.executemany("INSERT OR REPLACE INTO fingerprints ...", rows)
        """
        lock = self._write_lock if exclusive else None
        if lock is not None:
            lock.acquire()
        try:
            conn = self._open()
            try:
                conn.execute("BEGIN")
                yield conn
                conn.execute("COMMIT")
            except Exception:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            finally:
                conn.close()
        finally:
            if lock is not None:
                lock.release()


__all__ = ['ConnectionManager']
