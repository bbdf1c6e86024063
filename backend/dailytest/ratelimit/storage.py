"""
Storage backend for rate limiter state.

Counters live in process memory with a per-key TTL, so limits are
enforced per worker.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import threading
import time


class RateLimiterStorage(ABC):
    """
    Abstract storage interface for rate limiter state.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """
        Get value for a key.

        Returns:
            Stored value or None if not found or expired
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Set value for a key with optional TTL.

        Args:
            key: Storage key
            value: Value to store
            ttl: Time-to-live in seconds (None = no expiration)
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete a key."""

    @abstractmethod
    def clear(self) -> None:
        """Clear all stored data."""


class InMemoryStorage(RateLimiterStorage):
    """
    In-memory storage backend.

    Expiration timestamps are checked on read; expired entries are also
    swept every ``cleanup_interval`` seconds so abandoned keys do not
    accumulate. Thread-safe.
    """

    def __init__(self, cleanup_interval: int = 60):
        self._data: Dict[str, Any] = {}
        self._expiry: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = time.time()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            self._maybe_cleanup()

            if key not in self._data:
                return None

            if key in self._expiry and time.time() > self._expiry[key]:
                del self._data[key]
                del self._expiry[key]
                return None

            return self._data[key]

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = value

            if ttl is not None:
                self._expiry[key] = time.time() + ttl
            elif key in self._expiry:
                del self._expiry[key]

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._expiry.clear()

    def _maybe_cleanup(self) -> None:
        current_time = time.time()
        if current_time - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = current_time
        expired_keys = [
            key for key, expiry in self._expiry.items() if current_time > expiry
        ]
        for key in expired_keys:
            self._data.pop(key, None)
            del self._expiry[key]

    def get_stats(self) -> dict:
        """
        Get storage statistics (for monitoring/debugging).

        Returns:
            Dict with keys: total_keys, expired_keys, active_keys
        """
        with self._lock:
            current_time = time.time()
            expired_count = sum(
                1 for expiry in self._expiry.values() if current_time > expiry
            )

            return {
                "total_keys": len(self._data),
                "expired_keys": expired_count,
                "active_keys": len(self._data) - expired_count,
            }
