"""Correlation ID middleware for request tracing.

Each request gets a correlation_id that is:

1. Extracted from X-Correlation-ID header (if present)
2. Generated as a new UUID if not present
3. Bound to all logs in the request via structlog.contextvars
4. Returned in response headers so the UI can quote it in bug reports
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware that assigns correlation IDs to requests."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            # Clear context after request to prevent leakage to other requests
            structlog.contextvars.unbind_contextvars("correlation_id")


def get_correlation_id() -> str | None:
    """Get the current correlation_id from context.

    Returns:
        The current correlation_id, or None if not in a request context.
    """
    return structlog.contextvars.get_contextvars().get("correlation_id")
