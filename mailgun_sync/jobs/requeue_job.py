"""Requeue broken send jobs."""

from datetime import timedelta

from mailgun_sync.jobs.base import BaseJob
from mailgun_sync.jobs.send_job import SendJob
from mailgun_sync.models.job import JobStatus
from mailgun_sync.utils.dates import utc_now

REQUEUE_DELAY = timedelta(minutes=1)


class RequeueJob(BaseJob):
    """
    Puts broken send jobs back in the queue, starting in one minute.

    A send job whose parameters were cleared has already sent its message
    and is skipped.
    """

    job_type = "requeue"
    title = "Requeue broken send jobs"

    async def process(self) -> None:
        broken = await self.jobs.list_by_status(JobStatus.BROKEN, job_type=SendJob.job_type)
        start_after = utc_now() + REQUEUE_DELAY
        requeued = skipped = 0
        for record in broken:
            if not record.data.get("parameters"):
                skipped += 1
                continue
            if await self.jobs.requeue(record.job_id, start_after):
                requeued += 1

        self.data["requeued"] = requeued
        self.data["skipped"] = skipped
        self.add_message(f"Requeued {requeued} send jobs, skipped {skipped}")
