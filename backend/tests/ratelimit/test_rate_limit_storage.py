"""
Tests for rate limiter storage.
"""
from unittest.mock import patch

from dailytest.ratelimit.storage import InMemoryStorage

T0 = 1_000_000.0


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    def setup_method(self):
        self.storage = InMemoryStorage(cleanup_interval=1)

    def test_set_and_get(self):
        self.storage.set("key1", 1)
        assert self.storage.get("key1") == 1

    def test_get_nonexistent_key(self):
        assert self.storage.get("nonexistent") is None

    def test_value_expires_after_ttl(self):
        with patch("time.time", return_value=T0):
            self.storage.set("key1", 3, ttl=10)

        with patch("time.time", return_value=T0 + 10):
            assert self.storage.get("key1") == 3
        with patch("time.time", return_value=T0 + 10.5):
            assert self.storage.get("key1") is None

    def test_reset_without_ttl_removes_expiry(self):
        with patch("time.time", return_value=T0):
            self.storage.set("key1", 1, ttl=10)
            self.storage.set("key1", 2)

        with patch("time.time", return_value=T0 + 3600):
            assert self.storage.get("key1") == 2

    def test_delete(self):
        self.storage.set("key1", 1, ttl=10)
        self.storage.delete("key1")
        assert self.storage.get("key1") is None

    def test_delete_nonexistent(self):
        self.storage.delete("nonexistent")

    def test_clear(self):
        self.storage.set("key1", 1)
        self.storage.set("key2", 2, ttl=10)
        self.storage.clear()

        assert self.storage.get("key1") is None
        assert self.storage.get("key2") is None

    def test_cleanup_sweeps_expired_keys(self):
        with patch("time.time", return_value=T0):
            storage = InMemoryStorage(cleanup_interval=60)
            storage.set("stale", 1, ttl=5)
            storage.set("fresh", 1, ttl=600)

        with patch("time.time", return_value=T0 + 61):
            storage.get("fresh")
            stats = storage.get_stats()

        assert stats == {"total_keys": 1, "expired_keys": 0, "active_keys": 1}
