"""
Fixed-window request limiter.

Each identifier may make ``limit`` requests per window. Windows are aligned
to multiples of ``window`` seconds since the epoch, so every client's quota
resets at the same instants.
"""
import math
import threading
import time
from typing import Dict, Optional, Tuple

from .storage import InMemoryStorage, RateLimiterStorage

# Metadata keys: limit, remaining, reset_at (Unix seconds), retry_after (seconds)
RateLimitMetadata = Dict[str, int]


class RateLimiter:
    """
    Count requests per identifier and decide whether to admit them.

    Example:
        ```python
        limiter = RateLimiter(default_limit=500, default_window=900)
        allowed, metadata = limiter.check("203.0.113.7")
        ```
    """

    def __init__(
        self,
        storage: Optional[RateLimiterStorage] = None,
        default_limit: int = 500,
        default_window: int = 900,
    ):
        """
        Args:
            storage: Counter storage (default: a new InMemoryStorage)
            default_limit: Requests admitted per window
            default_window: Window length in seconds

        Raises:
            ValueError: If the limit or window is not positive
        """
        if default_limit <= 0 or default_window <= 0:
            raise ValueError("rate limit and window must be positive")
        self.storage = storage if storage is not None else InMemoryStorage()
        self.default_limit = default_limit
        self.default_window = default_window
        # get-then-set on the counter must not interleave
        self._lock = threading.Lock()

    def check(
        self,
        identifier: str,
        limit: Optional[int] = None,
        window: Optional[int] = None,
    ) -> Tuple[bool, RateLimitMetadata]:
        """
        Record a request for ``identifier`` if it fits in the current window.

        Rejected requests are not counted.

        Returns:
            ``(allowed, metadata)``
        """
        limit = limit or self.default_limit
        window = window or self.default_window

        now = time.time()
        window_start = int(now // window) * window
        reset_at = window_start + window
        key = f"{identifier}:{window}:{window_start}"

        with self._lock:
            count = self.storage.get(key) or 0
            if count >= limit:
                return False, {
                    "limit": limit,
                    "remaining": 0,
                    "reset_at": reset_at,
                    "retry_after": max(1, math.ceil(reset_at - now)),
                }
            count += 1
            self.storage.set(key, count, ttl=max(1, math.ceil(reset_at - now)))

        return True, {
            "limit": limit,
            "remaining": limit - count,
            "reset_at": reset_at,
            "retry_after": 0,
        }
