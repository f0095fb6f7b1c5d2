"""Middleware: rate limiting, access logging and last-resort error recovery."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from fastapi import Request
from fastapi.responses import JSONResponse

from facelens.api.ratelimit import client_key
from facelens.errors import FaceLensError, InternalError, RateLimitedError
from facelens.metrics import ERRORS_TOTAL

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import Response

    from facelens.api.ratelimit import RateLimiterRegistry

logger = logging.getLogger(__name__)


def error_response(error: FaceLensError) -> JSONResponse:
    ERRORS_TOTAL.labels(error.code).inc()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def enforce_rate_limit(request: Request) -> None:
    """Reject the request if the caller's token bucket is empty."""
    registry: RateLimiterRegistry = request.app.state.rate_limiter
    key = client_key(request)
    if not registry.allow(key):
        raise RateLimitedError(f"rate limit exceeded for client {key}")


async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Log every request and turn unexpected faults into a generic 500."""
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error processing %s %s", request.method, request.url.path)
        response = error_response(InternalError())

    logger.info(
        "%s %s -> %d (%.1f ms) client=%s",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
        client_key(request),
    )
    return response
