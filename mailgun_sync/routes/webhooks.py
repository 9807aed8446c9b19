"""Webhook endpoint receiving delivery events from the provider."""

from fastapi import APIRouter, Depends, Request

from mailgun_sync.exceptions import WebhookClientError, WebhookError, WebhookServerError
from mailgun_sync.logging.config import get_logger
from mailgun_sync.schemas.webhook import WebhookResponse
from mailgun_sync.services.webhook_service import WebhookService

logger = get_logger(__name__)

router = APIRouter(prefix="/_wh", tags=["Webhooks"])


def get_webhook_service() -> WebhookService:
    """Dependency providing the webhook service (overridden in tests)."""
    return WebhookService()


@router.get("", include_in_schema=False)
@router.get("/", include_in_schema=False)
async def index() -> None:
    """There is nothing to see on the webhook prefix itself."""
    raise WebhookClientError("Not found", status_code=404)


@router.api_route(
    "/submit",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    response_model=WebhookResponse,
    responses={
        400: {"description": "Malformed payload or filter variable mismatch"},
        405: {"description": "Method other than POST"},
        406: {"description": "Signature verification failed, do not retry"},
        503: {"description": "Webhooks disabled or storage failure, retry later"},
    },
)
async def submit(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookResponse:
    """
    Receive one event callback.

    Every outcome is a JSON `{"success": bool}` body; the status code tells
    the provider whether to retry.

    Args:
        request: FastAPI request object
        service: Webhook service (injected by dependency)

    Returns:
        WebhookResponse with success true

    Raises:
        WebhookError: Rejected callback, mapped to its status code
    """
    body = await request.body()
    try:
        await service.ingest(request.method, request.headers.get("content-type"), body)
    except WebhookError:
        raise
    except Exception as e:
        raise WebhookServerError("Webhook handling failed", status_code=500) from e
    return WebhookResponse(success=True)
