"""FastAPI application entry point."""

from fastapi import FastAPI

from mailgun_sync.config import settings
from mailgun_sync.exceptions import WebhookError
from mailgun_sync.handlers.exception_handler import (
    generic_exception_handler,
    webhook_exception_handler,
)
from mailgun_sync.logging.config import configure_logging
from mailgun_sync.middleware.logging import LoggingMiddleware
from mailgun_sync.middleware.request_validation import RequestSizeValidationMiddleware
from mailgun_sync.routes import status, webhooks

configure_logging()

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="""
## Mailgun Sync

Receives Mailgun delivery-event webhooks and stores a durable event history
per message and recipient.

### Webhook

`POST /_wh/submit` with a signed JSON payload. The response body is always
`{"success": bool}`; the status code drives Mailgun's retry behaviour:

- **200**: event stored (or already known)
- **400**: malformed payload or filter variable mismatch
- **405**: method other than POST
- **406**: signature verification failed, Mailgun stops retrying
- **503**: webhooks disabled or storage failure, Mailgun retries
""",
    docs_url="/docs",
    redoc_url="/redoc",
)

# First added = innermost; size validation ends up inside logging
app.add_middleware(RequestSizeValidationMiddleware)
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(WebhookError, webhook_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(webhooks.router)
app.include_router(status.router)
