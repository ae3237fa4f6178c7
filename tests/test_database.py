"""
Unit tests for the fingerprint cache.
"""

import os

import pytest

from conftest import make_record
from phototriage.config import ALGORITHM_VERSION
from phototriage.database import FingerprintCache, InMemoryFingerprintStore
from phototriage.models import FingerprintRecord


@pytest.fixture
def cache(temp_cache_db):
    return FingerprintCache(db_path=temp_cache_db)


@pytest.fixture
def record():
    histogram = tuple(round(i / 2016, 6) for i in range(64))
    return FingerprintRecord(
        dhash=0xFFFFFFFFFFFFFFFF,
        phash=0x8000000000000001,
        edge_hash=0x0123456789ABCDEF,
        color_histogram=histogram,
    )


class TestFingerprintCache:
    """Test FingerprintCache class."""

    def test_initialization(self, temp_cache_db):
        """Test cache initialization creates database."""
        FingerprintCache(db_path=temp_cache_db)
        assert os.path.exists(temp_cache_db)

    def test_creates_parent_directory(self, temp_dir):
        """Test a missing parent directory is created."""
        db_path = temp_dir / "nested" / "dir" / "cache.db"
        FingerprintCache(db_path=str(db_path))
        assert db_path.exists()

    def test_save_and_get(self, cache, record):
        """Test a record survives a round trip, including the top hash bit."""
        assert cache.save_fingerprints({"photo://1": record}) == 1
        assert cache.get_cached_fingerprint("photo://1") == record

    def test_get_nonexistent(self, cache):
        """Test getting non-existent entry returns None."""
        assert cache.get_cached_fingerprint("photo://missing") is None

    def test_version_preserved(self, cache):
        """Test stale records come back with their version so callers can skip them."""
        cache.save_fingerprints({"old": make_record(version=ALGORITHM_VERSION - 1)})
        cached = cache.get_cached_fingerprint("old")
        assert cached.version == ALGORITHM_VERSION - 1
        assert not cached.is_current

    def test_overwrite(self, cache):
        """Test saving again replaces the record."""
        cache.save_fingerprints({"a": make_record(dhash=1)})
        cache.save_fingerprints({"a": make_record(dhash=2)})
        assert cache.get_cached_fingerprint("a").dhash == 2

    def test_get_batch(self, cache):
        """Test batch lookup returns hits and None for misses."""
        cache.save_fingerprints({"a": make_record(dhash=1), "b": make_record(dhash=2)})
        results = cache.get_batch(["a", "b", "c"])
        assert results["a"].dhash == 1
        assert results["b"].dhash == 2
        assert results["c"] is None

    def test_get_batch_empty(self, cache):
        """Test an empty lookup."""
        assert cache.get_batch([]) == {}

    def test_large_batch(self, cache):
        """Test batches larger than one SQLite chunk."""
        records = {f"img{i}": make_record(dhash=i) for i in range(1200)}
        assert cache.save_fingerprints(records) == 1200
        results = cache.get_batch(list(records))
        assert all(results[k].dhash == records[k].dhash for k in records)

    def test_invalidate(self, cache):
        """Test removing one entry."""
        cache.save_fingerprints({"a": make_record(), "b": make_record()})
        cache.invalidate("a")
        assert cache.get_cached_fingerprint("a") is None
        assert cache.get_cached_fingerprint("b") is not None

    def test_invalidate_prefix(self, cache):
        """Test removing every entry under a folder, case-sensitively."""
        cache.save_fingerprints({
            "/photos/2024/a.jpg": make_record(),
            "/photos/2024/b.jpg": make_record(),
            "/Photos/2024/c.jpg": make_record(),
            "/photos/2025/d.jpg": make_record(),
        })
        assert cache.invalidate_prefix("/photos/2024/") == 2
        assert cache.get_cached_fingerprint("/Photos/2024/c.jpg") is not None
        assert cache.get_cached_fingerprint("/photos/2025/d.jpg") is not None

    def test_cleanup_outdated(self, cache):
        """Test records from other algorithm versions are dropped."""
        cache.save_fingerprints({
            "old": make_record(version=ALGORITHM_VERSION - 1),
            "new": make_record(),
        })
        assert cache.cleanup_outdated() == 1
        assert cache.get_cached_fingerprint("old") is None
        assert cache.get_cached_fingerprint("new") is not None

    def test_cleanup_stale(self, cache):
        """Test entries older than the cutoff are removed."""
        cache.save_fingerprints({"a": make_record()})
        assert cache.cleanup_stale(max_age_days=30) == 0
        assert cache.cleanup_stale(max_age_days=-1) == 1

    def test_get_stats(self, cache):
        """Test cache statistics."""
        cache.save_fingerprints({
            "old": make_record(version=ALGORITHM_VERSION - 1),
            "new": make_record(),
        })
        stats = cache.get_stats()
        assert stats['total_entries'] == 2
        assert stats['current_entries'] == 1
        assert stats['outdated_entries'] == 1
        assert stats['versions'] == {ALGORITHM_VERSION: 1, ALGORITHM_VERSION - 1: 1}
        assert stats['db_size_bytes'] > 0
        assert stats['db_path'] == cache.db_path

    def test_clear(self, cache):
        """Test clearing all entries."""
        cache.save_fingerprints({"a": make_record()})
        assert cache.clear() == 1
        assert cache.get_stats()['total_entries'] == 0

    def test_vacuum(self, cache):
        """Test vacuum runs on a live database."""
        cache.save_fingerprints({"a": make_record()})
        cache.vacuum()
        assert cache.get_cached_fingerprint("a") is not None

    def test_persistence(self, temp_cache_db):
        """Test records survive reopening the database."""
        FingerprintCache(db_path=temp_cache_db).save_fingerprints({"a": make_record(dhash=7)})
        assert FingerprintCache(db_path=temp_cache_db).get_cached_fingerprint("a").dhash == 7


class TestInMemoryFingerprintStore:
    """Test the dict-backed store."""

    def test_same_interface(self):
        """Test save, lookup, invalidate and version cleanup."""
        store = InMemoryFingerprintStore()
        assert store.save_fingerprints({"a": make_record(), "b": make_record(version=0)}) == 2
        assert store.get_batch(["a", "c"]) == {"a": make_record(), "c": None}
        assert store.cleanup_outdated() == 1
        store.invalidate("a")
        assert len(store) == 0

    def test_initial_records(self):
        """Test the store can be seeded."""
        store = InMemoryFingerprintStore({"a": make_record()})
        assert "a" in store
        assert store.get_cached_fingerprint("a") == make_record()
        store.clear()
        assert "a" not in store
