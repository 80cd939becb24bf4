"""
API Middleware

Request logging. Each request gets an id (the caller's X-Request-ID or a new
one) bound into the structlog context, so report and repository log lines
emitted while serving it carry the same request_id.
"""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its duration and echo the request id back"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        start = time.perf_counter()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            logger.info(
                "Request started",
                method=request.method,
                path=request.url.path,
                query=request.url.query or None,
                client=request.client.host if request.client else None,
            )

            try:
                response = await call_next(request)
            except Exception:
                logger.exception("Request failed", duration_ms=_elapsed_ms(start))
                raise

            duration_ms = _elapsed_ms(start)
            logger.info("Request completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
