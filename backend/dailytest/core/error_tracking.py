"""Sentry error tracking.

Sentry is optional: when SENTRY_DSN is empty every function here is a no-op,
so request handling never depends on the error tracker being reachable.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from dailytest.core.config import settings

logger = logging.getLogger(__name__)


class ErrorTracker:
    """Thin wrapper around the Sentry SDK with an explicit lifecycle."""

    def __init__(self) -> None:
        self._initialized = False

    @property
    def enabled(self) -> bool:
        return self._initialized

    def init(self, dsn: str | None = None) -> bool:
        """Initialize the Sentry SDK with FastAPI/Starlette integrations.

        Returns:
            True if Sentry was initialized, False if skipped (no DSN) or failed.

        Note:
            Does not raise exceptions - failures are logged and return False.
        """
        dsn = settings.SENTRY_DSN if dsn is None else dsn
        if not dsn:
            logger.debug("Sentry initialization skipped (DSN not configured)")
            return False

        try:
            sentry_sdk.init(
                dsn=dsn,
                environment=settings.ENV,
                release=settings.APP_VERSION,
                traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
                integrations=[
                    LoggingIntegration(level=None, event_level=None),
                    FastApiIntegration(transaction_style="endpoint"),
                    StarletteIntegration(transaction_style="endpoint"),
                ],
                send_default_pii=False,
            )
        except Exception as e:
            logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
            return False

        self._initialized = True
        logger.info(
            f"Sentry initialized for environment '{settings.ENV}' "
            f"with {settings.SENTRY_TRACES_SAMPLE_RATE * 100:.0f}% trace sampling"
        )
        return True

    def capture_error(
        self,
        exception: BaseException,
        *,
        context: dict[str, Any] | None = None,
        tags: dict[str, str] | None = None,
    ) -> str | None:
        """Capture an exception and send to Sentry.

        Returns:
            Event ID if captured, None if not initialized.
        """
        if not self._initialized:
            return None

        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("additional", {k: str(v) for k, v in context.items()})
            for key, value in (tags or {}).items():
                scope.set_tag(key, value)
            return sentry_sdk.capture_exception(exception)

    def shutdown(self) -> None:
        """Flush pending events and close the Sentry client."""
        if not self._initialized:
            return

        client = sentry_sdk.get_client()
        if client is not None:
            client.close(timeout=2.0)

        self._initialized = False


error_tracker = ErrorTracker()
