"""Daily reconciliation of failures later delivered."""

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import Settings
from mailgun_sync.exceptions import StorageError
from mailgun_sync.jobs.base import BaseJob
from mailgun_sync.models.event import Event
from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.repositories.job_repository import JobRepository
from mailgun_sync.repositories.mime_storage import MimeStorage
from mailgun_sync.services.event_poller import EventPoller
from mailgun_sync.utils.dates import days_ago, next_time_of_day


class DeliveryCheckJob(BaseJob):
    """
    Asks the provider whether each recent unresolved failure was delivered.

    Confirmed failures are marked failed_then_delivered and their cached
    MIME copy is released on a best-effort basis. One event's error never
    stops the batch. Reschedules itself for the configured time of day.
    """

    job_type = "delivery_check"
    title = "Check delivery of failed events"
    recurring = True

    def __init__(
        self,
        data: dict[str, Any] | None = None,
        config: Settings | None = None,
        jobs: JobRepository | None = None,
        poller: EventPoller | None = None,
        repository: EventRepository | None = None,
        mime_storage: MimeStorage | None = None,
    ) -> None:
        super().__init__(data, config, jobs)
        self._client: MailgunClient | None = None
        if poller is None:
            self._client = MailgunClient(self.config)
            poller = EventPoller(self._client, self.config)
        self.poller = poller
        self.repository = repository or EventRepository(self.config)
        self.mime_storage = mime_storage or MimeStorage(self.config)

    async def process(self) -> None:
        since = days_ago(self.config.event_retention_days)
        failures = await self.repository.list_unresolved_failures(since)
        delivered = errors = 0

        for event in failures:
            try:
                if not await self.poller.is_delivered(event.message_id, event.recipient):
                    continue
                await self.repository.mark_failed_then_delivered(event.event_key)
            except Exception as e:
                errors += 1
                self.add_message(
                    f"Delivery check failed for {event.event_key}: {e}", logging.WARNING
                )
                continue

            delivered += 1
            if event.mime_blob_key:
                await self._release_blob(event)

        self.data["checked"] = len(failures)
        self.data["delivered"] = delivered
        self.data["errors"] = errors
        self.add_message(
            f"Checked {len(failures)} failures, {delivered} delivered, {errors} errors"
        )

    async def _release_blob(self, event: Event) -> None:
        try:
            await self.mime_storage.delete(event.mime_blob_key)
            await self.repository.set_mime_blob(event.event_key, None)
        except (ClientError, BotoCoreError, StorageError) as e:
            self.add_message(
                f"Could not release cached MIME for {event.event_key}: {e}", logging.WARNING
            )

    async def after_complete(self) -> None:
        await self.reschedule(next_time_of_day(self.config.delivery_check_time_of_day))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
