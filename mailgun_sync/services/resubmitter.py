"""Resubmission of failed messages to a single recipient."""

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import Settings, settings
from mailgun_sync.exceptions import PollError, ProviderError, ResubmitError
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.event import TAG_RESUBMIT, Event
from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.repositories.mime_storage import MimeStorage
from mailgun_sync.services.event_poller import EventPoller

logger = get_logger(__name__)


class ResubmitPolicy:
    """Decides whether an automated resubmit may run for an event."""

    def __init__(self, repository: EventRepository, config: Settings | None = None) -> None:
        self.repository = repository
        self.config = config or settings

    async def failure_count(self, event: Event) -> int:
        """Failed or rejected events recorded for the event's (message, recipient)."""
        return await self.repository.count_recipient_failures(event.message_id, event.recipient)

    async def can_resubmit(self, event: Event) -> bool:
        """
        Whether the automated path may retry this event.

        Beyond the failure ceiling the event is left terminal.
        """
        maximum = self.config.max_failures
        if event.resubmits >= maximum:
            return False
        return await self.failure_count(event) < maximum


class Resubmitter:
    """
    Resends a failed message's raw MIME to the original failing recipient.

    Content comes from the provider's message storage (kept for 3 days),
    falling back to a local copy cached once failures start repeating.
    """

    def __init__(
        self,
        client: MailgunClient | None = None,
        poller: EventPoller | None = None,
        repository: EventRepository | None = None,
        mime_storage: MimeStorage | None = None,
        config: Settings | None = None,
    ) -> None:
        """
        Initialize Resubmitter.

        Args:
            client: MailgunClient instance (creates new if None)
            poller: EventPoller instance (creates new if None)
            repository: EventRepository instance (creates new if None)
            mime_storage: MimeStorage instance (creates new if None)
            config: Settings (defaults to global settings)
        """
        self.config = config or settings
        self.client = client or MailgunClient(self.config)
        self.poller = poller or EventPoller(self.client, self.config)
        self.repository = repository or EventRepository(self.config)
        self.mime_storage = mime_storage or MimeStorage(self.config)
        self.policy = ResubmitPolicy(self.repository, self.config)

    async def _fetch_content(self, event: Event) -> bytes:
        if event.storage_url:
            try:
                return await self.client.get_stored_message(event.storage_url)
            except ProviderError as e:
                logger.warning(
                    "Stored message unavailable, trying local copy",
                    extra={"context": {"event_key": event.event_key, "error": e.message}},
                )

        if event.mime_blob_key:
            content = await self.mime_storage.get(event.mime_blob_key)
            if content:
                return content

        raise ResubmitError(
            "No content available, cannot resubmit",
            ResubmitError.NO_CONTENT,
            details={"event_key": event.event_key},
        )

    async def store_if_required(
        self, event: Event, content: bytes, force: bool = False
    ) -> str | None:
        """
        Cache MIME content locally once a recipient keeps failing.

        Only runs when local caching is enabled and the (message, recipient)
        pair has failed at least `resubmit_failures` times, unless forced.
        No-op when a non-empty copy already exists for the event.

        Args:
            event: Event the content belongs to
            content: Raw MIME bytes
            force: Skip the failure threshold

        Returns:
            Blob key if content was written, None otherwise
        """
        if not self.config.sync_local_mime or not content:
            return None
        if event.mime_blob_key and await self.mime_storage.exists(event.mime_blob_key):
            return None
        if not force:
            failures = await self.policy.failure_count(event)
            if failures < self.config.resubmit_failures:
                return None

        key = await self.mime_storage.put(event.event_key, content)
        await self.repository.set_mime_blob(event.event_key, key)
        event.mime_blob_key = key
        return key

    def _send_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"o:tag": [TAG_RESUBMIT]}
        if self.config.api_testmode:
            params["o:testmode"] = "yes"
        return params

    async def resubmit(self, event: Event, allow_redeliver: bool = False) -> str:
        """
        Resend the event's message to its recipient only.

        Args:
            event: The failed (or, for manual resends, delivered) event
            allow_redeliver: Skip the already-delivered check

        Returns:
            Message id of the resubmitted message

        Raises:
            ResubmitError: No recipient, already delivered, no content, or send failed
        """
        if not event.recipient:
            raise ResubmitError(
                "Event has no recipient", ResubmitError.NO_RECIPIENT,
                details={"event_key": event.event_key},
            )

        if not allow_redeliver:
            if not event.message_id:
                raise ResubmitError(
                    "Cannot confirm delivery status without a message id",
                    ResubmitError.NO_MESSAGE_ID,
                    details={"event_key": event.event_key},
                )
            try:
                delivered = await self.poller.is_delivered(event.message_id, event.recipient)
            except PollError as e:
                raise ResubmitError(
                    "Delivery check failed", ResubmitError.DELIVERY_CHECK_FAILED,
                    details={"event_key": event.event_key},
                ) from e
            if delivered:
                raise ResubmitError(
                    "Message already delivered, not resubmitting",
                    ResubmitError.ALREADY_DELIVERED,
                    details={"event_key": event.event_key},
                )

        content = await self._fetch_content(event)

        try:
            await self.store_if_required(event, content)
        except (ClientError, BotoCoreError):
            logger.warning(
                "Could not cache MIME content",
                exc_info=True,
                extra={"context": {"event_key": event.event_key}},
            )

        try:
            response = await self.client.send_mime([event.recipient], content, self._send_params())
        except ProviderError as e:
            raise ResubmitError(
                "Resubmit send failed", ResubmitError.SEND_FAILED,
                details={"event_key": event.event_key},
            ) from e

        logger.info(
            "Message resubmitted",
            extra={
                "context": {
                    "event_key": event.event_key,
                    "message_id": event.message_id,
                    "resubmit_message_id": response.message_id,
                }
            },
        )
        return response.message_id

    async def automated_resubmit(self, event: Event) -> bool:
        """
        Resubmit from a scheduled job, subject to the failure ceiling.

        Args:
            event: Locally stored event

        Returns:
            True if a resubmit was attempted, False if the event is not eligible
            (including temporary failures, which the provider retries itself)

        Raises:
            ResubmitError: If the failure ceiling has been reached (no send is made)
        """
        if not event.is_failed_or_rejected:
            return False
        if event.resubmitted or event.failed_then_delivered:
            return False
        if event.is_temporary_failure:
            return False
        if not await self.policy.can_resubmit(event):
            raise ResubmitError(
                "Too many failures, not resubmitting",
                ResubmitError.TOO_MANY_FAILURES,
                details={"event_key": event.event_key, "max_failures": self.config.max_failures},
            )

        try:
            await self.resubmit(event)
        except ResubmitError as e:
            if e.reason == ResubmitError.ALREADY_DELIVERED:
                await self.repository.mark_failed_then_delivered(event.event_key)
                return False
            await self.repository.record_resubmit(event.event_key, succeeded=False)
            logger.warning(
                "Automated resubmit failed",
                extra={"context": {"event_key": event.event_key, "reason": e.reason}},
            )
            return True

        await self.repository.record_resubmit(event.event_key, succeeded=True)
        return True

    async def manual_resubmit(self, event: Event) -> str:
        """
        Resubmit on an operator's request; the failure ceiling does not apply.

        Args:
            event: Failed, rejected or delivered event

        Returns:
            Message id of the resubmitted message

        Raises:
            ResubmitError: If the event type cannot be resubmitted or the resend fails
        """
        if not (event.is_failed_or_rejected or event.is_delivered):
            raise ResubmitError(
                f"Cannot resubmit a {event.event_type.value} event",
                ResubmitError.NOT_RESUBMITTABLE,
                details={"event_key": event.event_key},
            )
        try:
            message_id = await self.resubmit(event, allow_redeliver=True)
        except ResubmitError:
            await self.repository.record_resubmit(event.event_key, succeeded=False)
            raise
        await self.repository.record_resubmit(event.event_key, succeeded=True)
        return message_id
