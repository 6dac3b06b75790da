"""FastAPI middleware for correlation IDs and request logging."""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import ClassVar

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from tts_bridge.common.logging import get_logger

logger = get_logger(__name__)

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Get correlation ID from async context."""
    return _correlation_id.get()


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to every request and log its lifecycle.

    The ID is taken from the ``X-Correlation-ID`` request header when present
    and generated otherwise. It is bound into the structlog context for the
    duration of the request and echoed back on the response.
    """

    CORRELATION_HEADER = "X-Correlation-ID"
    EXCLUDED_PATHS: ClassVar[set[str]] = {"/health", "/metrics"}

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(self.CORRELATION_HEADER) or str(
            uuid.uuid4()
        )
        token = _correlation_id.set(correlation_id)
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        should_log = request.url.path not in self.EXCLUDED_PATHS
        start_time = time.perf_counter()
        if should_log:
            logger.info(
                "http.request.start",
                method=request.method,
                path=request.url.path,
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "http.request.failed",
                method=request.method,
                path=request.url.path,
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")
            _correlation_id.reset(token)

        if should_log:
            # for streamed bodies this marks when headers were sent, not body completion
            logger.info(
                "http.request.complete",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                correlation_id=correlation_id,
            )

        response.headers[self.CORRELATION_HEADER] = correlation_id
        return response


__all__ = ["CorrelationMiddleware", "get_correlation_id"]
