"""
Middleware package for request/response processing.
"""
from .request_logging import RequestLoggingMiddleware
from .security import SecurityHeadersMiddleware, RequestSizeLimitMiddleware

__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
]
