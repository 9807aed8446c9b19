"""Middleware components for request processing."""

from mailgun_sync.middleware.logging import LoggingMiddleware
from mailgun_sync.middleware.request_validation import RequestSizeValidationMiddleware

__all__ = [
    "LoggingMiddleware",
    "RequestSizeValidationMiddleware",
]
