"""Exception handlers turning errors into `{"success": false}` responses."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from mailgun_sync.exceptions import WebhookClientError, WebhookError
from mailgun_sync.logging.config import get_logger

logger = get_logger(__name__)


def create_error_response(status_code: int) -> JSONResponse:
    """Failure body sent to the provider; no error detail leaves the service."""
    return JSONResponse(status_code=status_code, content={"success": False})


async def webhook_exception_handler(request: Request, exc: WebhookError) -> JSONResponse:
    """
    Handle a rejected webhook callback.

    Client-class rejections log at WARNING, everything else at ERROR.

    Args:
        request: FastAPI request
        exc: WebhookError instance

    Returns:
        JSONResponse with the exception's status code
    """
    level = logging.WARNING if isinstance(exc, WebhookClientError) else logging.ERROR
    logger.log(
        level,
        exc.message,
        exc_info=exc.__cause__ if level == logging.ERROR else None,
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "context": {
                "status_code": exc.status_code,
                "path": request.url.path,
                **exc.details,
            },
        },
    )
    return create_error_response(exc.status_code)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: FastAPI request
        exc: Any unhandled exception

    Returns:
        JSONResponse with status 500
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=exc,
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "context": {
                "exception_type": type(exc).__name__,
                "method": request.method,
                "path": request.url.path,
            },
        },
    )
    return create_error_response(500)
