"""
Error tracking facade backed by Sentry.

Usage:
    from assessment.observability import observability

    observability.init(dsn=settings.SENTRY_DSN, environment=settings.ENV)
    observability.capture_error(exc, context={"test_id": 12}, tags={"op": "submit"})

All methods are no-ops until init() succeeds, so callers never need to check
whether Sentry is configured.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

logger = logging.getLogger(__name__)


def _serialize_value(value: Any) -> Any:
    """Convert a context value to something Sentry can serialize."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize_value(item) for item in value]
    return str(value)


class Observability:
    """Thin wrapper around the Sentry SDK."""

    def __init__(self) -> None:
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def init(
        self,
        dsn: str,
        *,
        environment: str,
        release: str | None = None,
        traces_sample_rate: float = 0.0,
    ) -> bool:
        """Initialize the Sentry SDK with FastAPI/Starlette integrations.

        Returns:
            True if Sentry was initialized, False if it was skipped (no DSN)
            or failed. Failures are logged, never raised: error tracking must
            not prevent the API from starting.
        """
        if not dsn:
            logger.debug("Sentry initialization skipped (DSN not configured)")
            return False

        try:
            sentry_sdk.init(
                dsn=dsn,
                environment=environment,
                release=release,
                traces_sample_rate=traces_sample_rate,
                integrations=[
                    LoggingIntegration(level=None, event_level=None),
                    StarletteIntegration(transaction_style="endpoint"),
                    FastApiIntegration(transaction_style="endpoint"),
                ],
                send_default_pii=False,
            )
        except Exception as e:
            logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
            return False

        self._initialized = True
        logger.info(
            f"Sentry initialized for environment '{environment}' "
            f"with {traces_sample_rate * 100:.0f}% trace sampling"
        )
        return True

    def capture_error(
        self,
        exception: BaseException,
        *,
        context: dict[str, Any] | None = None,
        tags: dict[str, str] | None = None,
        level: str = "error",
    ) -> str | None:
        """Capture an exception and send it to Sentry.

        Returns:
            Event ID if captured, None if Sentry is not initialized.
        """
        if not self._initialized:
            return None

        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("additional", _serialize_value(context))
            if tags:
                for key, value in tags.items():
                    scope.set_tag(key, value)
            scope.level = level
            return sentry_sdk.capture_exception(exception)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Flush pending events."""
        if not self._initialized:
            return
        sentry_sdk.flush(timeout=timeout)
        self._initialized = False


observability = Observability()
