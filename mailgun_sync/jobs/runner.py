"""Dequeue and execute due deferred jobs."""

from datetime import datetime
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from mailgun_sync.config import Settings, settings
from mailgun_sync.jobs.base import BaseJob
from mailgun_sync.jobs.delivery_check_job import DeliveryCheckJob
from mailgun_sync.jobs.failed_events_job import FailedEventsJob
from mailgun_sync.jobs.requeue_job import RequeueJob
from mailgun_sync.jobs.send_job import SendJob
from mailgun_sync.jobs.truncate_job import TruncateJob
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.job import JobRecord
from mailgun_sync.repositories.job_repository import JobRepository

logger = get_logger(__name__)

JOB_TYPES: dict[str, type[BaseJob]] = {
    job.job_type: job
    for job in (SendJob, RequeueJob, DeliveryCheckJob, FailedEventsJob, TruncateJob)
}

# Recurring jobs seeded by `schedule_recurring`
RECURRING_JOBS: tuple[type[BaseJob], ...] = (DeliveryCheckJob, FailedEventsJob, TruncateJob)


class JobRunner:
    """
    Runs due jobs one at a time.

    A job is claimed with a conditional status update before it runs, so
    concurrent runners never process the same job twice. A job that raises
    is marked broken with its payload as it stood; everything else is
    marked complete and its after_complete hook runs. Recurring jobs are
    rescheduled either way so the daily chain never stops.
    """

    def __init__(
        self,
        jobs: JobRepository | None = None,
        config: Settings | None = None,
        job_types: dict[str, type[BaseJob]] | None = None,
    ) -> None:
        """
        Initialize JobRunner.

        Args:
            jobs: JobRepository instance (creates new if None)
            config: Settings (defaults to global settings)
            job_types: Registry of job classes by job type
        """
        self.config = config or settings
        self.jobs = jobs or JobRepository(self.config)
        self.job_types = job_types if job_types is not None else JOB_TYPES

    def build(self, record: JobRecord) -> BaseJob | None:
        """Instantiate the job class registered for a record, None if unknown."""
        job_class = self.job_types.get(record.job_type)
        if job_class is None:
            return None
        return job_class(data=record.data, config=self.config, jobs=self.jobs)

    async def run_due_jobs(self, now: datetime | None = None) -> dict[str, int]:
        """
        Run every job whose start time has passed.

        Args:
            now: Reference time (defaults to now)

        Returns:
            Counts of completed, broken and skipped (claimed elsewhere) jobs
        """
        counts = {"complete": 0, "broken": 0, "skipped": 0}
        for record in await self.jobs.list_due(now):
            outcome = await self.run_job(record)
            counts[outcome] += 1
        logger.info("Job run finished", extra={"context": counts})
        return counts

    async def run_job(self, record: JobRecord) -> str:
        """
        Claim and run a single job.

        Args:
            record: Queued job

        Returns:
            "complete", "broken" or "skipped"
        """
        context: dict[str, Any] = {"job_id": record.job_id, "job_type": record.job_type}
        claimed = await self.jobs.claim(record.job_id)
        if claimed is None:
            logger.info("Job already claimed", extra={"context": context})
            return "skipped"

        try:
            job = self.build(claimed)
        except Exception as e:
            logger.error("Could not create job", exc_info=True, extra={"context": context})
            await self.jobs.mark_broken(claimed.job_id, claimed.data, [f"[ERROR] {e}"])
            return "broken"
        if job is None:
            logger.error("Unknown job type", extra={"context": context})
            await self.jobs.mark_broken(
                claimed.job_id, claimed.data, [f"[ERROR] Unknown job type {claimed.job_type}"]
            )
            return "broken"

        try:
            await job.process()
        except Exception as e:
            logger.error("Job failed", exc_info=True, extra={"context": context})
            job.messages.append(f"[ERROR] {e}")
            try:
                await self.jobs.mark_broken(claimed.job_id, job.data, job.messages)
                if job.recurring:
                    await self._reschedule(job, context)
            finally:
                await job.close()
            return "broken"

        try:
            await self.jobs.mark_complete(claimed.job_id, job.data, job.messages)
            await job.after_complete()
        except (ClientError, BotoCoreError):
            logger.error(
                "Could not finalize completed job", exc_info=True, extra={"context": context}
            )
        finally:
            await job.close()

        logger.info("Job complete", extra={"context": context})
        return "complete"

    async def _reschedule(self, job: BaseJob, context: dict[str, Any]) -> None:
        """Queue the next run of a recurring job that broke."""
        try:
            await job.after_complete()
        except (ClientError, BotoCoreError):
            logger.error("Could not reschedule job", exc_info=True, extra={"context": context})
            return
        logger.info("Broken recurring job rescheduled", extra={"context": context})


async def schedule_recurring(
    jobs: JobRepository | None = None, config: Settings | None = None
) -> list[JobRecord]:
    """
    Seed a run of every recurring job, due now.

    A run already waiting is kept instead, so this is safe to call repeatedly.
    """
    config = config or settings
    jobs = jobs or JobRepository(config)
    return [await job_class.schedule(jobs) for job_class in RECURRING_JOBS]
