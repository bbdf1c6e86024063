"""
Tests for the request limiter and RateLimitMiddleware.
"""
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dailytest.core.config import settings
from dailytest.main import create_application
from dailytest.ratelimit import InMemoryStorage, RateLimiter, RateLimitMiddleware
from dailytest.ratelimit.middleware import RATE_LIMIT_MESSAGE

# Aligned to a 900s window boundary: 1111 * 900
WINDOW_START = 999_900.0


def create_test_app_with_rate_limiting(
    default_limit: int = 100,
    default_window: int = 60,
    skip_paths: list | None = None,
    identifier_resolver=None,
) -> FastAPI:
    """Create a test FastAPI app with rate limiting middleware."""
    app = FastAPI()
    limiter = RateLimiter(
        storage=InMemoryStorage(),
        default_limit=default_limit,
        default_window=default_window,
    )

    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter,
        skip_paths=skip_paths or [],
        identifier_resolver=identifier_resolver,
    )

    @app.get("/")
    async def root():
        return {"message": "OK"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


class TestRateLimiter:
    """Fixed-window counting."""

    def test_counts_down_remaining(self):
        limiter = RateLimiter(default_limit=3, default_window=900)

        with patch("time.time", return_value=WINDOW_START + 100):
            results = [limiter.check("1.2.3.4") for _ in range(3)]

        assert [allowed for allowed, _ in results] == [True, True, True]
        assert [meta["remaining"] for _, meta in results] == [2, 1, 0]
        assert results[0][1]["reset_at"] == WINDOW_START + 900

    def test_rejects_once_quota_is_spent(self):
        limiter = RateLimiter(default_limit=2, default_window=900)

        with patch("time.time", return_value=WINDOW_START + 100):
            limiter.check("1.2.3.4")
            limiter.check("1.2.3.4")
            allowed, metadata = limiter.check("1.2.3.4")

        assert allowed is False
        assert metadata == {
            "limit": 2,
            "remaining": 0,
            "reset_at": WINDOW_START + 900,
            "retry_after": 800,
        }

    def test_quota_resets_with_the_next_window(self):
        limiter = RateLimiter(default_limit=1, default_window=900)

        with patch("time.time", return_value=WINDOW_START + 899):
            assert limiter.check("1.2.3.4")[0] is True
            assert limiter.check("1.2.3.4")[0] is False
        with patch("time.time", return_value=WINDOW_START + 900):
            assert limiter.check("1.2.3.4")[0] is True

    def test_identifiers_are_counted_separately(self):
        limiter = RateLimiter(default_limit=1, default_window=900)

        with patch("time.time", return_value=WINDOW_START):
            assert limiter.check("1.2.3.4")[0] is True
            assert limiter.check("5.6.7.8")[0] is True
            assert limiter.check("1.2.3.4")[0] is False

    def test_rejected_requests_are_not_counted(self):
        storage = InMemoryStorage()
        limiter = RateLimiter(storage=storage, default_limit=1, default_window=900)

        with patch("time.time", return_value=WINDOW_START):
            for _ in range(5):
                limiter.check("1.2.3.4")
            key = f"1.2.3.4:900:{int(WINDOW_START)}"
            assert storage.get(key) == 1

    @pytest.mark.parametrize("limit,window", [(0, 900), (500, 0)])
    def test_non_positive_configuration_rejected(self, limit, window):
        with pytest.raises(ValueError):
            RateLimiter(default_limit=limit, default_window=window)


class TestRateLimitMiddleware:
    """Tests for the HTTP behavior of the middleware."""

    def test_allows_requests_under_limit(self):
        client = TestClient(create_test_app_with_rate_limiting(default_limit=5))

        for _ in range(5):
            assert client.get("/").status_code == 200

    def test_request_over_limit_gets_429(self):
        client = TestClient(create_test_app_with_rate_limiting(default_limit=3))

        for _ in range(3):
            client.get("/")
        response = client.get("/")

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["message"] == RATE_LIMIT_MESSAGE
        assert body["retry_after"] >= 1
        assert response.headers["Retry-After"] == str(body["retry_after"])
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_rate_limit_headers_added(self):
        client = TestClient(create_test_app_with_rate_limiting(default_limit=10))

        response = client.get("/")

        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "9"
        assert "X-RateLimit-Reset" in response.headers

    def test_skip_paths_bypass_rate_limiting(self):
        client = TestClient(
            create_test_app_with_rate_limiting(default_limit=2, skip_paths=["/health"])
        )

        for _ in range(10):
            response = client.get("/health")
            assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

    def test_custom_identifier(self):
        app = create_test_app_with_rate_limiting(
            default_limit=1,
            identifier_resolver=lambda request: request.headers["X-Client"],
        )
        client = TestClient(app)

        assert client.get("/", headers={"X-Client": "a"}).status_code == 200
        assert client.get("/", headers={"X-Client": "b"}).status_code == 200
        assert client.get("/", headers={"X-Client": "a"}).status_code == 429

    def test_unresolvable_identifier_is_admitted(self):
        app = create_test_app_with_rate_limiting(
            default_limit=1,
            identifier_resolver=lambda request: request.headers["X-Client"],
        )
        client = TestClient(app)

        for _ in range(3):
            assert client.get("/").status_code == 200


class TestApplicationRateLimiting:
    """The quota configured in settings applies to the API."""

    def test_api_responses_carry_quota_headers(self, client):
        response = client.get("/v1/ping")

        assert response.headers["X-RateLimit-Limit"] == str(settings.RATE_LIMIT_REQUESTS)
        assert response.headers["X-RateLimit-Remaining"] == str(
            settings.RATE_LIMIT_REQUESTS - 1
        )

    def test_configured_quota_is_enforced(self, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)
        client = TestClient(create_application())

        assert client.get("/v1/ping").status_code == 200
        assert client.get("/v1/ping").status_code == 200
        response = client.get("/v1/ping")

        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"

    def test_health_check_is_exempt(self, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 1)
        client = TestClient(create_application())

        for _ in range(3):
            assert client.get("/v1/health").status_code == 200

    def test_disabled_by_setting(self, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
        monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 1)
        app = create_application()
        client = TestClient(app)

        for _ in range(3):
            response = client.get("/v1/ping")
            assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers
        assert not any(m.cls is RateLimitMiddleware for m in app.user_middleware)
