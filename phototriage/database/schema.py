"""
Schema for the fingerprint cache.

A schema bump drops the fingerprints table; fingerprints are derived data
and are recomputed on the next scan.
"""

from __future__ import annotations

import sqlite3


# Schema version - increment when changing table structure
SCHEMA_VERSION = 1


def initialize_schema(conn: sqlite3.Connection) -> None:
    """
    Create the meta and fingerprints tables, rebuilding fingerprints when
    the stored schema version is older than SCHEMA_VERSION.
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

    if current_version < SCHEMA_VERSION:
        conn.execute("DROP TABLE IF EXISTS fingerprints")

    # Hashes are stored as 16-digit hex text: SQLite integers are signed
    conn.execute("""
        CREATE TABLE IF NOT EXISTS fingerprints (
            identifier TEXT PRIMARY KEY,
            dhash TEXT NOT NULL,
            phash TEXT NOT NULL,
            edge_hash TEXT NOT NULL,
            color_histogram TEXT NOT NULL,
            algorithm_version INTEGER NOT NULL,

            -- Timestamps
            created_at REAL DEFAULT (strftime('%s', 'now')),
            last_accessed REAL DEFAULT (strftime('%s', 'now'))
        )
    """)

    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_fingerprints_version
        ON fingerprints(algorithm_version)
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_fingerprints_last_accessed
        ON fingerprints(last_accessed)
    """)

    conn.execute("""
        INSERT OR REPLACE INTO meta (key, value)
        VALUES ('schema_version', ?)
    """, (str(SCHEMA_VERSION),))


__all__ = ['SCHEMA_VERSION', 'initialize_schema']
