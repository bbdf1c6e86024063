"""
Security middleware: response hardening headers and request body limits.
"""
from typing import Callable, Dict

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# Headers added to every response. This is a JSON API: nothing is framed,
# scripted or embedded.
BASE_SECURITY_HEADERS: Dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-site",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    def __init__(
        self,
        app: ASGIApp,
        hsts_enabled: bool = True,
        hsts_max_age: int = 31536000,  # 1 year
    ):
        """
        Args:
            app: ASGI application
            hsts_enabled: Send Strict-Transport-Security (production only)
            hsts_max_age: HSTS max age in seconds
        """
        super().__init__(app)
        self.headers = dict(BASE_SECURITY_HEADERS)
        if hsts_enabled:
            self.headers["Strict-Transport-Security"] = (
                f"max-age={hsts_max_age}; includeSubDomains"
            )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Reject request bodies larger than ``max_body_size`` with 413.

    Content-Length is checked first; bodies sent without it (chunked) are
    read and measured before the endpoint runs.
    """

    BODY_METHODS = ("POST", "PUT", "PATCH")

    def __init__(self, app: ASGIApp, max_body_size: int = 10 * 1024):
        super().__init__(app)
        self.max_body_size = max_body_size

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content={
                "detail": f"Request body too large (limit {self.max_body_size} bytes)."
            },
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method in self.BODY_METHODS:
            content_length = request.headers.get("content-length")
            if content_length is not None:
                try:
                    declared = int(content_length)
                except ValueError:
                    return JSONResponse(
                        status_code=400,
                        content={"detail": "Invalid Content-Length header."},
                    )
                if declared > self.max_body_size:
                    return self._too_large()
            elif len(await request.body()) > self.max_body_size:
                return self._too_large()

        return await call_next(request)
