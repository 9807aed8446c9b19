"""Request/response schemas for the webhook endpoint."""

from pydantic import BaseModel, Field


class WebhookResponse(BaseModel):
    """Body of every webhook response."""

    success: bool = Field(..., description="Whether the callback was stored")

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {"example": {"success": True}}
