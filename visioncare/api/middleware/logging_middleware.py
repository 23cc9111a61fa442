"""
Request logging middleware for FastAPI application.

Every request gets a correlation id (taken from ``X-Correlation-ID`` when
the client sends one) that is echoed back and attached to the log context.
"""

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from visioncare.core.shared.logger import get_logger

CORRELATION_HEADER = "X-Correlation-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """HTTP middleware for request/response logging."""

    # High-frequency, low-value paths
    EXCLUDE_PATHS: tuple[str, ...] = ("/health", "/favicon.ico")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex[:8]
        request.state.correlation_id = correlation_id

        if request.url.path.endswith(self.EXCLUDE_PATHS):
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        log = get_logger(__name__).bind(correlation_id=correlation_id)
        start_time = time.perf_counter()
        log.info(f"--> {request.method} {request.url.path}", client=_client_ip(request))

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            log.error(f"<-- {request.method} {request.url.path} ERROR in {duration_ms:.2f}ms: {e}")
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        message = f"<-- {request.method} {request.url.path} {response.status_code} in {duration_ms:.2f}ms"
        if response.status_code >= 400:
            log.warning(message)
        else:
            log.info(message)

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"
        return response


def _client_ip(request: Request) -> str:
    """Original client IP, considering proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


__all__ = ["CORRELATION_HEADER", "RequestLoggingMiddleware"]
