"""
Health check and status endpoints.
"""
from fastapi import APIRouter, Request

from dailytest.core import settings
from dailytest.core.datetime_utils import utc_now

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.
    Returns basic health status of the API and whether authentication is
    available.
    """
    identity_ready = getattr(request.app.state, "identity_verifier", None) is not None
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "identity_provider": "available" if identity_ready else "unavailable",
    }


@router.get("/ping")
async def ping():
    """
    Simple ping endpoint for basic connectivity testing.
    """
    return {"message": "pong"}
