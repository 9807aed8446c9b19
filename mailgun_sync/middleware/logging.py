"""Request logging middleware with correlation ID support."""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from mailgun_sync.logging.config import get_logger

logger = get_logger(__name__)


def _get_or_generate_correlation_id(request: Request) -> str:
    """Use the caller's X-Request-ID, or generate one."""
    return request.headers.get("X-Request-ID") or str(uuid.uuid4())


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with a correlation ID.

    The correlation ID is taken from X-Request-ID (or generated), stored on
    request.state for exception handlers, and echoed in the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process the request and add logging.

        Args:
            request: The incoming request
            call_next: The next middleware/handler in the chain

        Returns:
            The response from the handler
        """
        correlation_id = _get_or_generate_correlation_id(request)
        request.state.correlation_id = correlation_id
        context = {"method": request.method, "path": request.url.path}

        start_time = time.time()
        logger.info(
            "Request started",
            extra={
                "correlation_id": correlation_id,
                "context": {
                    **context,
                    "client_host": request.client.host if request.client else None,
                },
            },
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Request failed with exception",
                exc_info=exc,
                extra={
                    "correlation_id": correlation_id,
                    "context": {
                        **context,
                        "response_time_ms": round((time.time() - start_time) * 1000, 2),
                    },
                },
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "context": {
                    **context,
                    "status_code": response.status_code,
                    "response_time_ms": round((time.time() - start_time) * 1000, 2),
                },
            },
        )
        response.headers["X-Request-ID"] = correlation_id
        return response
