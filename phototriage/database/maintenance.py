"""
Maintenance operations for the fingerprint cache.

Fingerprints are keyed by identifier and tagged with the algorithm version
that produced them; maintenance trims rows nobody reads any more and rows a
newer algorithm would recompute anyway.
"""

from __future__ import annotations

import os
import time
import sqlite3
import logging

from ..config import ALGORITHM_VERSION
from .connection import ConnectionManager


logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class MaintenanceOperations:
    """Stale/outdated cleanup, statistics and compaction for the fingerprints table."""

    def __init__(self, connection_manager: ConnectionManager):
        self.conn_mgr = connection_manager

    def _delete(self, where: str, params: tuple, action: str) -> int:
        try:
            with self.conn_mgr.connection(exclusive=True) as conn:
                return conn.execute(f"DELETE FROM fingerprints WHERE {where}", params).rowcount
        except Exception as e:
            logger.warning(f"Failed to {action}: {e}")
            return 0

    def cleanup_stale(self, max_age_days: int = 30) -> int:
        """
        Drop fingerprints nobody has looked up in max_age_days.

        Returns:
            Number of fingerprints removed
        """
        cutoff = time.time() - max_age_days * SECONDS_PER_DAY
        removed = self._delete("last_accessed < ?", (cutoff,), "remove stale fingerprints")
        if removed:
            logger.info(f"Removed {removed:,} fingerprints unused for {max_age_days} days")
        return removed

    def cleanup_outdated(self, current_version: int = ALGORITHM_VERSION) -> int:
        """
        Drop fingerprints from any algorithm version but current_version.

        Returns:
            Number of fingerprints removed
        """
        removed = self._delete(
            "algorithm_version != ?", (current_version,), "remove outdated fingerprints"
        )
        if removed:
            logger.info(f"Removed {removed:,} fingerprints from older algorithm versions")
        return removed

    def get_stats(self) -> dict:
        """
        Summarize the cache.

        Returns:
            Dict with total_entries, current_entries (ALGORITHM_VERSION rows),
            outdated_entries, versions (version -> count), db_size_bytes,
            db_size_mb and db_path
        """
        versions: dict[int, int] = {}
        try:
            with self.conn_mgr.connection(exclusive=False) as conn:
                rows = conn.execute(
                    "SELECT algorithm_version, COUNT(*) AS cnt FROM fingerprints "
                    "GROUP BY algorithm_version"
                ).fetchall()
            versions = {row['algorithm_version']: row['cnt'] for row in rows}
        except Exception as e:
            logger.warning(f"Failed to get cache stats: {e}")

        db_path = self.conn_mgr.db_path
        db_size = os.path.getsize(db_path) if os.path.exists(db_path) else 0
        total = sum(versions.values())
        current = versions.get(ALGORITHM_VERSION, 0)

        return {
            'total_entries': total,
            'current_entries': current,
            'outdated_entries': total - current,
            'versions': versions,
            'db_size_bytes': db_size,
            'db_size_mb': round(db_size / (1024 * 1024), 2),
            'db_path': db_path,
        }

    def clear(self) -> int:
        """Delete every fingerprint and compact the file. Returns rows removed."""
        removed = self._delete("1", (), "clear fingerprint cache")
        self.vacuum()
        return removed

    def vacuum(self):
        """Compact the database file."""
        try:
            # VACUUM cannot run inside the managed BEGIN/COMMIT
            conn = sqlite3.connect(self.conn_mgr.db_path, timeout=self.conn_mgr.timeout)
            try:
                conn.execute("VACUUM")
            finally:
                conn.close()
        except Exception as e:
            logger.debug(f"Failed to vacuum database: {e}")


__all__ = ['MaintenanceOperations']
