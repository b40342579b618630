"""
Middleware configuration for the application.
Includes Correlation ID setup, request logging and slowapi rate limiting.
"""

import time
import structlog
from typing import Callable
from fastapi import Request, Response
from asgi_correlation_id import CorrelationIdMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from accounts.core.exceptions import TooManyRequestsException
from accounts.core.responses import envelope

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log requests and responses with timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time

            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                process_time_ms=round(process_time * 1000, 2),
            )

            return response

        except Exception:
            process_time = time.time() - start_time
            logger.exception(
                "Request failed",
                method=request.method,
                path=request.url.path,
                process_time_ms=round(process_time * 1000, 2),
            )
            raise


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """429 in the response envelope; ``Retry-After`` is the length of the window."""
    retry_after = exc.limit.limit.get_expiry()
    logger.warning("Rate limit exceeded", client_ip=get_remote_address(request), limit=str(exc.limit.limit))
    error = TooManyRequestsException(retry_after)
    return envelope(error.message, status_code=error.status_code, headers={"Retry-After": str(retry_after)})


def setup_middleware(app, limiter=None):
    """Setup all middleware for the application."""

    if limiter is not None:
        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
        app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(RequestLoggingMiddleware)

    # Added last so it runs first and the ID is bound for everything below
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        update_request_header=True,
    )
