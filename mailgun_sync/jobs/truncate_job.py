"""Removal of old events, cached MIME copies and submissions."""

import logging
from datetime import timedelta
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from mailgun_sync.config import Settings
from mailgun_sync.jobs.base import BaseJob
from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.repositories.job_repository import JobRepository
from mailgun_sync.repositories.mime_storage import MimeStorage
from mailgun_sync.repositories.submission_repository import SubmissionRepository
from mailgun_sync.utils.dates import to_iso, utc_now


class TruncateJob(BaseJob):
    """
    Deletes events and submissions older than `days` (payload) or the
    configured `truncate_days`.

    A cached MIME blob is deleted before its event; if the blob cannot be
    deleted the event is kept so the blob is never orphaned.
    """

    job_type = "truncate"
    title = "Truncate old events"
    recurring = True

    def __init__(
        self,
        data: dict[str, Any] | None = None,
        config: Settings | None = None,
        jobs: JobRepository | None = None,
        repository: EventRepository | None = None,
        submissions: SubmissionRepository | None = None,
        mime_storage: MimeStorage | None = None,
    ) -> None:
        super().__init__(data, config, jobs)
        self.repository = repository or EventRepository(self.config)
        self.submissions = submissions or SubmissionRepository(self.config)
        self.mime_storage = mime_storage or MimeStorage(self.config)

    async def process(self) -> None:
        days = int(self.data.get("days") or self.config.truncate_days)
        cutoff = to_iso(utc_now() - timedelta(days=days))

        events = await self.repository.list_older_than(cutoff)
        deleted = kept = 0
        for event in events:
            if event.mime_blob_key:
                try:
                    await self.mime_storage.delete(event.mime_blob_key)
                except (ClientError, BotoCoreError) as e:
                    kept += 1
                    self.add_message(
                        f"Keeping {event.event_key}, blob delete failed: {e}", logging.WARNING
                    )
                    continue
            if event.submission_id:
                await self.submissions.delete(event.submission_id)
            await self.repository.delete(event.event_key)
            deleted += 1

        submissions = await self.submissions.list_older_than(cutoff)
        for item in submissions:
            await self.submissions.delete(item["submission_id"])

        self.data["deleted_events"] = deleted
        self.data["kept_events"] = kept
        self.data["deleted_submissions"] = len(submissions)
        self.add_message(
            f"Deleted {deleted} events and {len(submissions)} submissions older than "
            f"{days} days, kept {kept}"
        )

    async def after_complete(self) -> None:
        await self.reschedule(utc_now() + timedelta(seconds=self.config.truncate_interval_seconds))
