"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from assessment.core.logging_config import request_id_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Logs method, path, status code, duration and a caller identifier derived
    from the credentials (never the credentials themselves). Every response
    carries the X-Request-ID used for log correlation.
    """

    # Liveness probes are polled constantly; only log them when they fail
    QUIET_PATHS = ("/v1/health", "/v1/ping")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_context.set(request_id)

        start_time = time.time()

        user_identifier = "anonymous"
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            user_identifier = f"token:{auth_header[7:17]}..."
        elif request.headers.get("X-Admin-Token"):
            user_identifier = "admin"

        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"
        quiet = path in self.QUIET_PATHS

        if not quiet:
            logger.info(
                "Incoming request",
                extra={
                    "method": method,
                    "path": path,
                    "client_host": client_host,
                    "user_identifier": user_identifier,
                },
            )

        response = await call_next(request)

        duration_ms = round((time.time() - start_time) * 1000, 2)
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id

        extra_fields = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client_host": client_host,
            "user_identifier": user_identifier,
        }

        if status_code >= 500:
            logger.error("Server error response", extra=extra_fields)
        elif status_code >= 400:
            logger.warning("Client error response", extra=extra_fields)
        elif not quiet:
            logger.info("Request completed", extra=extra_fields)

        return response
