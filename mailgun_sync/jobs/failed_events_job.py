"""Daily poll of failed events with automated resubmission."""

import logging
from datetime import timedelta
from typing import Any

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import Settings
from mailgun_sync.exceptions import PollError, ResubmitError
from mailgun_sync.jobs.base import BaseJob
from mailgun_sync.models.event import EventType
from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.repositories.job_repository import JobRepository
from mailgun_sync.services.event_poller import EventPoller
from mailgun_sync.services.resubmitter import Resubmitter
from mailgun_sync.utils.dates import next_time_of_day, rfc2822, utc_now

POLL_WINDOW = timedelta(days=1)


class FailedEventsJob(BaseJob):
    """
    Pulls the last day of failed events, stores them and resubmits the
    eligible ones.

    Each event is handled on its own: a storage or resubmit error is
    recorded on the job and the batch carries on.
    """

    job_type = "failed_events"
    title = "Poll failed events and resubmit"
    recurring = True

    def __init__(
        self,
        data: dict[str, Any] | None = None,
        config: Settings | None = None,
        jobs: JobRepository | None = None,
        poller: EventPoller | None = None,
        repository: EventRepository | None = None,
        resubmitter: Resubmitter | None = None,
    ) -> None:
        super().__init__(data, config, jobs)
        self._client: MailgunClient | None = None
        if poller is None or resubmitter is None:
            self._client = MailgunClient(self.config)
        self.repository = repository or EventRepository(self.config)
        self.poller = poller or EventPoller(self._client, self.config)
        self.resubmitter = resubmitter or Resubmitter(
            client=self._client,
            poller=self.poller,
            repository=self.repository,
            config=self.config,
        )

    async def process(self) -> None:
        begin = rfc2822(utc_now() - POLL_WINDOW)
        try:
            result = await self.poller.poll_events(begin=begin, event_filter=EventType.FAILED.value)
        except PollError as e:
            self.add_message(f"Polling failed events failed: {e.message}", logging.ERROR)
            self.data["polled"] = 0
            return

        stored = resubmitted = errors = 0
        for polled in result.events:
            try:
                event, created = await self.repository.create_if_absent(polled)
                if created:
                    stored += 1
                if await self.resubmitter.automated_resubmit(event):
                    resubmitted += 1
            except ResubmitError as e:
                self.add_message(f"{polled.event_key}: {e.message}", logging.WARNING)
            except Exception as e:
                errors += 1
                self.add_message(
                    f"Handling failed event {polled.event_key} failed: {e}", logging.WARNING
                )

        self.data["polled"] = len(result.events)
        self.data["stored"] = stored
        self.data["resubmitted"] = resubmitted
        self.data["errors"] = errors
        self.data["exhausted"] = result.exhausted
        self.add_message(
            f"Polled {len(result.events)} failed events, stored {stored}, "
            f"resubmitted {resubmitted}, {errors} errors"
        )

    async def after_complete(self) -> None:
        await self.reschedule(next_time_of_day(self.config.failed_events_time_of_day))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
