"""Base class for deferred jobs."""

import hashlib
import json
import logging
from datetime import datetime
from typing import Any, ClassVar

from mailgun_sync.config import Settings, settings
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.job import JobRecord
from mailgun_sync.repositories.job_repository import JobRepository

logger = get_logger(__name__)


def job_signature(job_type: str, data: dict[str, Any]) -> str:
    """Dedup signature: job type plus serialized payload."""
    content = json.dumps({"job_type": job_type, "data": data}, sort_keys=True, default=str)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class BaseJob:
    """
    A unit of background work executed by the JobRunner.

    Subclasses set `job_type` and `title` and implement `process`. Recurring
    jobs set `recurring` and queue their next run from `after_complete`,
    which the runner also calls when such a job breaks.
    """

    job_type: ClassVar[str] = ""
    title: ClassVar[str] = ""
    recurring: ClassVar[bool] = False

    def __init__(
        self,
        data: dict[str, Any] | None = None,
        config: Settings | None = None,
        jobs: JobRepository | None = None,
    ) -> None:
        """
        Initialize job.

        Args:
            data: Job payload, persisted with the job record
            config: Settings (defaults to global settings)
            jobs: JobRepository used to queue follow-up jobs
        """
        self.data: dict[str, Any] = dict(data or {})
        self.config = config or settings
        self.jobs = jobs or JobRepository(self.config)
        self.messages: list[str] = []

    def signature(self) -> str:
        return job_signature(self.job_type, self.data)

    def add_message(self, message: str, level: int = logging.INFO) -> None:
        """Record a line on the job and log it."""
        self.messages.append(f"[{logging.getLevelName(level)}] {message}")
        logger.log(level, message, extra={"context": {"job_type": self.job_type}})

    async def process(self) -> None:
        raise NotImplementedError

    async def after_complete(self) -> None:
        """Hook run after the job completed (or, for recurring jobs, broke)."""

    async def close(self) -> None:
        """Release resources the job created; runs whatever the outcome."""

    async def queue(self, start_after: datetime | None = None) -> JobRecord:
        """
        Queue this job.

        Args:
            start_after: Earliest start time (defaults to now)

        Returns:
            The queued job record
        """
        return await self.jobs.enqueue(
            self.job_type, self.data, self.signature(), self.title, start_after
        )

    @classmethod
    async def schedule(
        cls, jobs: JobRepository, start_after: datetime | None = None
    ) -> JobRecord:
        """
        Queue a run of a recurring job with an empty payload.

        A run already waiting with an empty payload is reused, so repeated
        completions never stack up duplicate schedules.

        Args:
            jobs: JobRepository to queue into
            start_after: Earliest start time (defaults to now)

        Returns:
            The queued (or already waiting) job record
        """
        return await jobs.enqueue(
            cls.job_type, {}, job_signature(cls.job_type, {}), cls.title, start_after
        )

    async def reschedule(self, start_after: datetime) -> JobRecord:
        """Queue the next run of this recurring job."""
        return await self.schedule(self.jobs, start_after)
