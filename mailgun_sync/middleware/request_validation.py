"""Request validation middleware."""

from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mailgun_sync.config import settings
from mailgun_sync.logging.config import get_logger

logger = get_logger(__name__)


class RequestSizeValidationMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose Content-Length exceeds the configured maximum.

    Oversized requests get 413 with `{"success": false}` before the body
    is read.
    """

    def __init__(self, app, max_size: int | None = None) -> None:
        super().__init__(app)
        self.max_size = max_size or settings.max_request_size_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                "Request too large",
                extra={
                    "context": {
                        "path": request.url.path,
                        "content_length": int(content_length),
                        "max_size": self.max_size,
                    }
                },
            )
            return JSONResponse(status_code=413, content={"success": False})
        return await call_next(request)
