"""
FingerprintCache facade class for coordinating database operations.

Provides a unified interface to all cache operations using the facade pattern.
"""

from __future__ import annotations

from typing import Optional

from ..config import CACHE_DB_FILE
from ..models import FingerprintRecord
from .connection import ConnectionManager
from .schema import initialize_schema, SCHEMA_VERSION
from .operations import FingerprintOperations
from .maintenance import MaintenanceOperations


class FingerprintCache:
    """
    SQLite-backed cache of fingerprint records keyed by image identifier.

    Thread-safe for concurrent read/write operations. Pass an instance to
    scan_batch(); there is no process-wide instance.

    Usage:
        cache = FingerprintCache("/tmp/fingerprints.db")

        record = cache.get_cached_fingerprint(identifier)
        if record is None or not record.is_current:
            record = compute_fingerprint(pixels)
            cache.save_fingerprints({identifier: record})
    """

    SCHEMA_VERSION = SCHEMA_VERSION

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the fingerprint cache.

        Args:
            db_path: Path to SQLite database file. Uses default if None.
        """
        self.db_path = db_path or CACHE_DB_FILE

        # Initialize components
        self._conn_mgr = ConnectionManager(self.db_path)
        self._operations = FingerprintOperations(self._conn_mgr)
        self._maintenance = MaintenanceOperations(self._conn_mgr)

        # Initialize database schema
        with self._conn_mgr.connection(exclusive=True) as conn:
            initialize_schema(conn)

    # Delegate to FingerprintOperations
    def get_cached_fingerprint(self, identifier: str) -> Optional[FingerprintRecord]:
        """Get the cached record of one image, whatever its algorithm version."""
        return self._operations.get(identifier)

    def get_batch(self, identifiers: list[str]) -> dict[str, Optional[FingerprintRecord]]:
        """Get cached records for multiple images efficiently."""
        return self._operations.get_batch(identifiers)

    def save_fingerprints(self, fingerprints: dict[str, FingerprintRecord]) -> int:
        """Store records in chunked transactions; returns the number stored."""
        return self._operations.put_batch(fingerprints)

    def invalidate(self, identifier: str):
        """Remove one image from the cache."""
        self._operations.invalidate(identifier)

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove all images whose identifier starts with prefix."""
        return self._operations.invalidate_prefix(prefix)

    # Delegate to MaintenanceOperations
    def cleanup_stale(self, max_age_days: int = 30) -> int:
        """Remove cache entries that haven't been accessed recently."""
        return self._maintenance.cleanup_stale(max_age_days)

    def cleanup_outdated(self) -> int:
        """Remove records produced by another algorithm version."""
        return self._maintenance.cleanup_outdated()

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return self._maintenance.get_stats()

    def clear(self) -> int:
        """Delete every fingerprint. Returns rows removed."""
        return self._maintenance.clear()

    def vacuum(self):
        """Compact the database file."""
        self._maintenance.vacuum()


__all__ = ['FingerprintCache']
