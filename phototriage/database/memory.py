"""
In-memory fingerprint store.

Same interface as FingerprintCache, for tests and callers that keep their
own persistence.
"""

from __future__ import annotations

import threading
from typing import Optional

from ..config import ALGORITHM_VERSION
from ..models import FingerprintRecord


class InMemoryFingerprintStore:
    """Dict-backed fingerprint store guarded by a lock."""

    def __init__(self, initial: Optional[dict[str, FingerprintRecord]] = None):
        self._records: dict[str, FingerprintRecord] = dict(initial or {})
        self._lock = threading.Lock()
        self.save_calls = 0

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._records

    def get_cached_fingerprint(self, identifier: str) -> Optional[FingerprintRecord]:
        with self._lock:
            return self._records.get(identifier)

    def get_batch(self, identifiers: list[str]) -> dict[str, Optional[FingerprintRecord]]:
        with self._lock:
            return {i: self._records.get(i) for i in identifiers}

    def save_fingerprints(self, fingerprints: dict[str, FingerprintRecord]) -> int:
        with self._lock:
            self._records.update(fingerprints)
            self.save_calls += 1
        return len(fingerprints)

    def invalidate(self, identifier: str):
        with self._lock:
            self._records.pop(identifier, None)

    def cleanup_outdated(self) -> int:
        """Drop records from other algorithm versions."""
        with self._lock:
            stale = [i for i, r in self._records.items() if r.version != ALGORITHM_VERSION]
            for identifier in stale:
                del self._records[identifier]
        return len(stale)

    def clear(self):
        with self._lock:
            self._records.clear()


__all__ = ['InMemoryFingerprintStore']
