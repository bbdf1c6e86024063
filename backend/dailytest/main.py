"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dailytest.api.v1.api import api_router
from dailytest.core.config import settings
from dailytest.core.error_tracking import error_tracker
from dailytest.core.identity import FirebaseIdentityVerifier
from dailytest.core.logging_config import setup_logging
from dailytest.middleware import (
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from dailytest.models import Database
from dailytest.ratelimit import InMemoryStorage, RateLimiter, RateLimitMiddleware

# Handlers must exist before any module logs at import time
setup_logging()

logger = logging.getLogger(__name__)


def _init_identity_verifier() -> Optional[FirebaseIdentityVerifier]:
    """
    Build the Firebase verifier from settings.

    A failure here degrades auth-gated routes to 503 instead of stopping the
    process, so errors are logged and None is returned.
    """
    try:
        verifier = FirebaseIdentityVerifier.from_service_account(
            settings.FIREBASE_SERVICE_ACCOUNT, settings.FIREBASE_PROJECT_ID
        )
    except Exception as e:
        logger.error(f"Identity provider initialization failed: {e}")
        return None
    logger.info("Identity provider initialized")
    return verifier


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    - On startup: error tracking, the database handle and the identity
      verifier are created and attached to ``app.state``
    - On shutdown: each of them is released explicitly
    """
    error_tracker.init()

    database = Database.from_settings(settings)
    if settings.DB_CREATE_TABLES:
        database.create_all()
        logger.info("Database tables ensured")
    app.state.database = database

    app.state.identity_verifier = _init_identity_verifier()

    yield

    # Release in reverse order of creation
    verifier = app.state.identity_verifier
    if verifier is not None:
        verifier.close()
    database.dispose()
    error_tracker.shutdown()
    logger.info("Application shutdown complete")


tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "tests",
        "description": "Today's test, phase submission, answer review and statistics",
    },
    {
        "name": "rankings",
        "description": "Phase and combined ranks, test leaderboards and the global leaderboard",
    },
    {
        "name": "submissions",
        "description": "The caller's submission history",
    },
    {
        "name": "free",
        "description": "Anonymous free-tier tests",
    },
]


def create_application() -> FastAPI:
    """
    Build the application with middleware, exception handlers and the v1 routes.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**Daily Test API** - timed daily tests with negative marking.\n\n"
            "This API provides:\n"
            "* Today's scheduled test and its questions while the window is open\n"
            "* Phase submission with on-time/late classification\n"
            "* Ranks and leaderboards, revealed at a fixed daily time\n"
            "* Answer review and test statistics\n"
            "* Anonymous free-tier tests\n\n"
            "## Authentication\n\n"
            "Authenticated endpoints expect a Firebase ID token in the "
            "`Authorization` header."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # HSTS only behind the production TLS terminator
    app.add_middleware(
        SecurityHeadersMiddleware,
        hsts_enabled=settings.ENV == "production",
    )

    app.add_middleware(
        RequestSizeLimitMiddleware, max_body_size=settings.MAX_REQUEST_BODY_BYTES
    )

    if settings.RATE_LIMIT_ENABLED:
        storage = InMemoryStorage()
        # Kept on app state so the counters can be inspected and reset
        app.state.rate_limit_storage = storage
        limiter = RateLimiter(
            storage=storage,
            default_limit=settings.RATE_LIMIT_REQUESTS,
            default_window=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        app.add_middleware(
            RateLimitMiddleware,
            limiter=limiter,
            skip_paths=[f"{settings.API_V1_PREFIX}/health"],
        )

    # Added last so it wraps the other middleware and logs 413s and 429s
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Return HTTP exceptions as ``{"detail": ...}``, keeping their headers.
        """
        if exc.status_code >= 500:
            error_tracker.capture_error(
                exc,
                context={
                    "path": str(request.url.path),
                    "method": request.method,
                    "status_code": exc.status_code,
                },
                tags={"error_type": "HTTPException"},
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Flatten pydantic errors to ``{loc, msg, type}`` entries.
        """
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
            for error in exc.errors()
        ]
        logger.info(
            f"Request validation failed: {len(errors)} error(s)",
            extra={"method": request.method, "path": str(request.url.path)},
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Turn an unhandled exception into a 500 carrying an error_id.

        The same id is logged with the traceback and sent to the error
        tracker; the exception text never reaches the client.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        error_tracker.capture_error(
            exc,
            context={
                "path": str(request.url.path),
                "method": request.method,
                "error_id": error_id,
            },
            tags={"error_type": exc.__class__.__name__},
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Service banner with a pointer to the docs.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
