"""Webhook ingestion: authenticate, filter and persist provider callbacks."""

import json
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from mailgun_sync.config import Settings, settings
from mailgun_sync.exceptions import (
    StorageError,
    WebhookClientError,
    WebhookNotAcceptableError,
    WebhookServerError,
)
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.event import FILTER_VARIABLE, Event
from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.services.signing import SigningVerifier

logger = get_logger(__name__)


class EventStoreObserver:
    """
    Hooks run around event persistence during ingestion.

    Subclass and override either method; both run inline with the request,
    so they must be quick. Exceptions raised here fail the request.
    """

    def before_store(self, event_data: dict[str, Any]) -> None:
        """Called with the raw event-data before the event is written."""

    def after_store(self, event_data: dict[str, Any], event: Event) -> None:
        """Called after the event is written (or found as a duplicate)."""


class WebhookService:
    """
    Service layer for inbound provider callbacks.

    Each rejection raises a WebhookError subclass whose status code tells
    the provider whether to retry: 400 (bad request), 405, 406 (bad
    signature, never retry) and 503 (disabled or storage fault, retry).
    """

    def __init__(
        self,
        repository: EventRepository | None = None,
        verifier: SigningVerifier | None = None,
        config: Settings | None = None,
        observers: Sequence[EventStoreObserver] = (),
    ) -> None:
        """
        Initialize WebhookService.

        Args:
            repository: EventRepository instance (creates new if None)
            verifier: SigningVerifier instance (creates new if None)
            config: Settings (defaults to global settings)
            observers: Hooks run before and after persistence
        """
        self.config = config or settings
        self.repository = repository or EventRepository(self.config)
        self.verifier = verifier or SigningVerifier(self.config)
        self.observers = list(observers)

    def _parse_body(self, content_type: str | None, body: bytes) -> dict[str, Any]:
        media_type = (content_type or "").split(";")[0].strip().lower()
        if media_type != "application/json":
            raise WebhookClientError("Content-Type must be application/json")

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookClientError("Body is not valid JSON") from e

        if not isinstance(payload, dict) or not payload:
            raise WebhookClientError("Body is empty")
        if "signature" not in payload:
            raise WebhookClientError("Missing signature")
        if not isinstance(payload.get("event-data"), dict):
            raise WebhookClientError("Missing event-data")
        return payload

    def _check_filter_variable(self, event_data: dict[str, Any]) -> None:
        """
        Reject payloads not carrying the configured filter variable.

        The previous value is accepted too, so the variable can be rotated
        while mail sent with the old value is still being reported.
        """
        current = self.config.webhook_filter_variable
        if not current:
            return
        accepted = {current}
        if self.config.webhook_previous_filter_variable:
            accepted.add(self.config.webhook_previous_filter_variable)
        user_variables = event_data.get("user-variables") or {}
        if user_variables.get(FILTER_VARIABLE) not in accepted:
            raise WebhookClientError("Webhook filter variable mismatch")

    async def ingest(self, method: str, content_type: str | None, body: bytes) -> Event:
        """
        Handle one callback from the provider.

        Args:
            method: HTTP method
            content_type: Content-Type header value
            body: Raw request body

        Returns:
            The stored (or already known) Event

        Raises:
            WebhookServerError: Webhooks disabled (503) or storage failed (503)
            WebhookClientError: Wrong method (405) or malformed payload (400)
            WebhookNotAcceptableError: Signature invalid (406)
            ConfigurationError: No signing key configured
        """
        if not self.config.webhooks_enabled:
            raise WebhookServerError("Webhooks are not enabled")
        if method.upper() != "POST":
            raise WebhookClientError("Method not allowed", status_code=405)

        payload = self._parse_body(content_type, body)
        event_data: dict[str, Any] = payload["event-data"]
        self._check_filter_variable(event_data)

        if not self.verifier.verify(payload["signature"]):
            raise WebhookNotAcceptableError("Signature verification failed")

        try:
            event = Event.from_event_data(event_data)
        except (ValidationError, ValueError) as e:
            raise WebhookClientError("Invalid event-data") from e

        for observer in self.observers:
            observer.before_store(event_data)

        try:
            stored, created = await self.repository.create_if_absent(event)
        except StorageError as e:
            raise WebhookServerError(
                "Failed to store event", details={"event_key": event.event_key}
            ) from e

        for observer in self.observers:
            observer.after_store(event_data, stored)

        logger.info(
            "Webhook event stored" if created else "Webhook event already stored",
            extra={
                "context": {
                    "event_key": stored.event_key,
                    "event_type": stored.event_type.value,
                    "message_id": stored.message_id,
                }
            },
        )
        return stored
