"""
Core CRUD operations for the fingerprint cache.

Provides FingerprintOperations class for single and batch operations.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models import FingerprintRecord
from .connection import ConnectionManager
from .utils import chunked, fingerprint_to_row, row_to_fingerprint


logger = logging.getLogger(__name__)

_INSERT_SQL = """
    INSERT OR REPLACE INTO fingerprints (
        identifier, dhash, phash, edge_hash, color_histogram, algorithm_version
    ) VALUES (?, ?, ?, ?, ?, ?)
"""


class FingerprintOperations:
    """
    Handles CRUD operations for the fingerprint cache.

    Read failures are logged and reported as misses; write failures are
    logged and reported as zero rows written.
    """

    def __init__(self, connection_manager: ConnectionManager):
        """
        Initialize cache operations.

        Args:
            connection_manager: ConnectionManager instance for database access
        """
        self.conn_mgr = connection_manager

    def get(self, identifier: str) -> Optional[FingerprintRecord]:
        """
        Get the cached fingerprint of one image.

        Args:
            identifier: Image identifier

        Returns:
            FingerprintRecord (any algorithm version) or None if not cached
        """
        try:
            # Read operations don't need exclusive lock
            with self.conn_mgr.connection(exclusive=False) as conn:
                row = conn.execute(
                    "SELECT * FROM fingerprints WHERE identifier = ?",
                    (identifier,)
                ).fetchone()

                if row:
                    conn.execute("""
                        UPDATE fingerprints SET last_accessed = strftime('%s', 'now')
                        WHERE identifier = ?
                    """, (identifier,))
                    return row_to_fingerprint(row)

            return None

        except Exception as e:
            logger.debug(f"Failed to get cached fingerprint for {identifier}: {e}")
            return None

    def get_batch(self, identifiers: list[str]) -> dict[str, Optional[FingerprintRecord]]:
        """
        Get cached fingerprints for multiple images efficiently.

        Args:
            identifiers: Image identifiers

        Returns:
            Dict mapping identifier to FingerprintRecord (or None if not cached)
        """
        results: dict[str, Optional[FingerprintRecord]] = {i: None for i in identifiers}
        if not identifiers:
            return results

        try:
            hits: list[str] = []
            with self.conn_mgr.connection(exclusive=False) as conn:
                # Process in chunks to avoid SQLite variable limit
                for chunk in chunked(list(results)):
                    placeholders = ','.join('?' * len(chunk))
                    rows = conn.execute(f"""
                        SELECT * FROM fingerprints WHERE identifier IN ({placeholders})
                    """, chunk).fetchall()

                    for row in rows:
                        results[row['identifier']] = row_to_fingerprint(row)
                        hits.append(row['identifier'])

                for chunk in chunked(hits):
                    placeholders = ','.join('?' * len(chunk))
                    conn.execute(f"""
                        UPDATE fingerprints SET last_accessed = strftime('%s', 'now')
                        WHERE identifier IN ({placeholders})
                    """, chunk)

        except Exception as e:
            logger.warning(f"Error during batch retrieval: {e}")

        return results

    def put_batch(self, fingerprints: dict[str, FingerprintRecord]) -> int:
        """
        Store multiple fingerprints in one transaction per chunk.

        Args:
            fingerprints: identifier -> FingerprintRecord

        Returns:
            Number of stored records
        """
        stored = 0
        items = list(fingerprints.items())

        try:
            for chunk in chunked(items):
                # One exclusive lock and transaction per chunk
                with self.conn_mgr.connection(exclusive=True) as conn:
                    conn.executemany(
                        _INSERT_SQL,
                        [fingerprint_to_row(identifier, record) for identifier, record in chunk],
                    )
                stored += len(chunk)

        except Exception as e:
            logger.warning(f"Error during batch caching: {e}")

        return stored

    def invalidate(self, identifier: str):
        """
        Remove one image from the cache.

        Args:
            identifier: Image identifier
        """
        try:
            with self.conn_mgr.connection(exclusive=True) as conn:
                conn.execute("DELETE FROM fingerprints WHERE identifier = ?", (identifier,))
        except Exception as e:
            logger.debug(f"Failed to invalidate cache for {identifier}: {e}")

    def invalidate_prefix(self, prefix: str) -> int:
        """
        Remove every image whose identifier starts with prefix (a folder URI, say).

        Returns:
            Number of entries removed
        """
        try:
            # LIKE is case-insensitive in SQLite, compare the prefix exactly
            with self.conn_mgr.connection(exclusive=True) as conn:
                result = conn.execute(
                    "DELETE FROM fingerprints WHERE substr(identifier, 1, length(?)) = ?",
                    (prefix, prefix)
                )
                return result.rowcount
        except Exception as e:
            logger.debug(f"Failed to invalidate cache for prefix {prefix}: {e}")
            return 0


__all__ = ['FingerprintOperations']
