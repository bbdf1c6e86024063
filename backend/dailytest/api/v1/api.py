"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter
from dailytest.api.v1 import free, health, rankings, submissions, tests

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(tests.router, prefix="/tests", tags=["tests"])
api_router.include_router(rankings.router, tags=["rankings"])
api_router.include_router(submissions.router, prefix="/submissions", tags=["submissions"])
api_router.include_router(free.router, prefix="/free", tags=["free"])
