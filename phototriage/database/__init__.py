"""
Fingerprint persistence for the photo triage engine.

Provides persistent caching of fingerprint records to enable:
- Incremental re-scans (only fingerprint new images)
- Automatic recomputation when the algorithm version changes

Records are keyed by the caller's image identifier. Stores are created by
the caller and passed into scan_batch(); there is no global instance.

Public API:
- FingerprintCache: SQLite-backed store
- InMemoryFingerprintStore: dict-backed store with the same interface
"""

from __future__ import annotations

from .core import FingerprintCache
from .memory import InMemoryFingerprintStore


__all__ = [
    'FingerprintCache',
    'InMemoryFingerprintStore',
]
