"""
FastAPI middleware for automatic rate limiting.
"""
import logging
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .limiter import RateLimiter, RateLimitMetadata

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Apply a RateLimiter to every request not in ``skip_paths``.

    Rejected requests get a 429 with ``Retry-After``; admitted responses
    carry ``X-RateLimit-*`` headers when ``add_headers`` is set.

    Example:
        ```python
        app.add_middleware(
            RateLimitMiddleware,
            limiter=RateLimiter(default_limit=500, default_window=900),
            skip_paths=["/v1/health"],
        )
        ```
    """

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        identifier_resolver: Optional[Callable[[Request], str]] = None,
        skip_paths: Optional[list[str]] = None,
        add_headers: bool = True,
    ):
        """
        Args:
            app: ASGI application
            limiter: RateLimiter instance
            identifier_resolver: Function to extract identifier from request
                (default: client IP)
            skip_paths: Paths exempt from rate limiting (e.g. health checks)
            add_headers: Whether to add rate limit headers to responses
        """
        super().__init__(app)
        self.limiter = limiter
        self.identifier_resolver = identifier_resolver or client_ip_identifier
        self.skip_paths = skip_paths or []
        self.add_headers = add_headers

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in self.skip_paths:
            return await call_next(request)

        try:
            identifier = self.identifier_resolver(request)
        except Exception as e:
            # Unidentifiable requests are admitted rather than rejected
            logger.warning(
                "Rate limit identifier resolution failed: %s",
                e,
                exc_info=True,
            )
            return await call_next(request)

        allowed, metadata = self.limiter.check(identifier)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {identifier}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "limit": metadata["limit"],
                },
            )
            return self._rate_limit_response(metadata)

        response = await call_next(request)

        if self.add_headers:
            self._add_rate_limit_headers(response, metadata)

        return response

    def _rate_limit_response(self, metadata: RateLimitMetadata) -> JSONResponse:
        response = JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": RATE_LIMIT_MESSAGE,
                "retry_after": metadata["retry_after"],
            },
        )
        self._add_rate_limit_headers(response, metadata)
        response.headers["Retry-After"] = str(metadata["retry_after"])
        return response

    def _add_rate_limit_headers(
        self, response: Response, metadata: RateLimitMetadata
    ) -> None:
        """
        Add X-RateLimit-Limit, X-RateLimit-Remaining and X-RateLimit-Reset
        (Unix timestamp) to the response.
        """
        response.headers["X-RateLimit-Limit"] = str(metadata["limit"])
        response.headers["X-RateLimit-Remaining"] = str(metadata["remaining"])
        response.headers["X-RateLimit-Reset"] = str(metadata["reset_at"])


def client_ip_identifier(request: Request) -> str:
    """Identify the caller by the peer address of the connection."""
    if request.client is None:
        return "unknown"
    return request.client.host
