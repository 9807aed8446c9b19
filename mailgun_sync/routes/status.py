"""Health check endpoint."""

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from mailgun_sync.config import Settings, settings

_app_start_time = time.time()

router = APIRouter(tags=["Health"])


def get_config() -> Settings:
    """Dependency returning the active settings."""
    return settings


@router.get("/status")
async def get_status(config: Settings = Depends(get_config)) -> JSONResponse:
    """
    Health check for monitoring and load balancers.

    Reports whether webhook ingestion is usable: enabled, with a signing key
    and a sending domain configured. Never touches DynamoDB or the provider.

    Returns:
        JSONResponse with status, version, uptime_seconds and webhooks
    """
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "version": config.api_version,
            "uptime_seconds": int(time.time() - _app_start_time),
            "webhooks": {
                "enabled": config.webhooks_enabled,
                "signing_key_configured": bool(config.webhook_signing_key),
                "domain": config.mailgun_domain or None,
            },
        },
    )
