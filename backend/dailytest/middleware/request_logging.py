"""
Request/response logging middleware with request-id correlation.
"""
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from dailytest.core.identity import extract_token
from dailytest.core.logging_config import request_id_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Characters of the credential shown in logs
TOKEN_PREVIEW_LENGTH = 10


def describe_caller(authorization: str) -> str:
    """Short, non-secret label for the caller of a request."""
    token = extract_token(authorization)
    if token is None:
        return "anonymous"
    return f"token:{token[:TOKEN_PREVIEW_LENGTH]}..."


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log each request once on arrival and once on completion.

    The request id is taken from the ``X-Request-ID`` header (or generated),
    stored in ``request_id_context`` for every log line emitted while the
    request is handled, and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_context.set(request_id)

        start_time = time.perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_host": request.client.host if request.client else "unknown",
            "user_identifier": describe_caller(
                request.headers.get("Authorization", "")
            ),
        }

        try:
            logger.info("Incoming request", extra=fields)
            response = await call_next(request)

            fields["status_code"] = response.status_code
            fields["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
            response.headers[REQUEST_ID_HEADER] = request_id

            if response.status_code >= 500:
                logger.error("Server error response", extra=fields)
            elif response.status_code >= 400:
                logger.warning("Client error response", extra=fields)
            else:
                logger.info("Request completed", extra=fields)
            return response
        finally:
            request_id_context.reset(token)
