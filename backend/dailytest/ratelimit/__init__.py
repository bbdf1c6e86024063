"""
Per-client request rate limiting.
"""
from .limiter import RateLimiter
from .middleware import RateLimitMiddleware
from .storage import InMemoryStorage, RateLimiterStorage

__all__ = [
    "InMemoryStorage",
    "RateLimiter",
    "RateLimiterStorage",
    "RateLimitMiddleware",
]
