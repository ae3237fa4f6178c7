"""
Shared utilities for database operations.

Provides row conversion between FingerprintRecord and the fingerprints table.
"""

from __future__ import annotations

import json
import sqlite3

from ..models import FingerprintRecord


# SQLite variable limit constant - used for batch operations
# SQLite has a limit of 999 variables, we use 500 for safety
CHUNK_SIZE = 500


def chunked(items: list, size: int = CHUNK_SIZE):
    """Yield successive slices of at most `size` items."""
    for i in range(0, len(items), size):
        yield items[i:i + size]


def fingerprint_to_row(identifier: str, record: FingerprintRecord) -> tuple:
    """
    Convert a FingerprintRecord to an insert parameter tuple.

    Args:
        identifier: Image identifier (primary key)
        record: FingerprintRecord to store

    Returns:
        (identifier, dhash, phash, edge_hash, color_histogram, algorithm_version)
    """
    return (
        identifier,
        f"{record.dhash:016x}",
        f"{record.phash:016x}",
        f"{record.edge_hash:016x}",
        json.dumps(list(record.color_histogram)),
        record.version,
    )


def row_to_fingerprint(row: sqlite3.Row) -> FingerprintRecord:
    """
    Convert database row to FingerprintRecord.

    The stored algorithm version is kept as-is; callers decide whether a
    stale record is usable.
    """
    return FingerprintRecord(
        dhash=int(row['dhash'], 16),
        phash=int(row['phash'], 16),
        edge_hash=int(row['edge_hash'], 16),
        color_histogram=tuple(json.loads(row['color_histogram'])),
        version=row['algorithm_version'],
    )


__all__ = [
    'CHUNK_SIZE',
    'chunked',
    'fingerprint_to_row',
    'row_to_fingerprint',
]
