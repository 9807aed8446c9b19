"""Deferred job queue stored in DynamoDB."""

import uuid
from datetime import datetime
from typing import Any

from botocore.exceptions import ClientError

from mailgun_sync.config import Settings, settings
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.job import JobRecord, JobStatus
from mailgun_sync.repositories.base import BaseRepository, is_conditional_check_failure
from mailgun_sync.utils.dates import to_iso, utc_now

logger = get_logger(__name__)

STATUS_INDEX = "StatusIndex"


class JobRepository(BaseRepository):
    """
    Repository for deferred jobs.

    Jobs are dequeued by status and start time through the StatusIndex GSI.
    Every status transition is a conditional update on the current status,
    so two workers never run the same job.
    """

    def __init__(self, config: Settings | None = None) -> None:
        """Initialize JobRepository with jobs table."""
        super().__init__((config or settings).dynamodb_table_jobs, config)

    async def enqueue(
        self,
        job_type: str,
        data: dict[str, Any],
        signature: str,
        title: str = "",
        start_after: datetime | None = None,
    ) -> JobRecord:
        """
        Queue a job unless a new job with the same signature is waiting.

        Args:
            job_type: Registered job type
            data: Job payload
            signature: Dedup signature
            title: Human-readable title
            start_after: Earliest start time (defaults to now)

        Returns:
            The queued job, or the existing one with the same signature
        """
        existing = await self.list_by_status(JobStatus.NEW, signature=signature)
        if existing:
            logger.info(
                "Job with same signature already queued",
                extra={"context": {"job_id": existing[0].job_id, "job_type": job_type}},
            )
            return existing[0]

        now = to_iso(utc_now())
        job = JobRecord(
            job_id=str(uuid.uuid4()),
            job_type=job_type,
            job_status=JobStatus.NEW,
            signature=signature,
            title=title,
            start_after=to_iso(start_after) if start_after else now,
            data=data,
            created_at=now,
            updated_at=now,
        )
        await self.put_item(self._serialize_job(job))
        logger.info(
            "Job queued",
            extra={
                "context": {
                    "job_id": job.job_id,
                    "job_type": job_type,
                    "start_after": job.start_after,
                }
            },
        )
        return job

    def _serialize_job(self, job: JobRecord) -> dict[str, Any]:
        item = job.model_dump()
        item["job_status"] = job.job_status.value
        return item

    async def get(self, job_id: str) -> JobRecord | None:
        item = await self.get_item({"job_id": job_id})
        return JobRecord(**item) if item else None

    async def list_by_status(
        self, status: JobStatus, job_type: str | None = None, signature: str | None = None
    ) -> list[JobRecord]:
        """
        List jobs in a status, ordered by start time.

        Args:
            status: Job status
            job_type: Optional job type filter
            signature: Optional signature filter

        Returns:
            Matching jobs
        """
        params: dict[str, Any] = {
            "IndexName": STATUS_INDEX,
            "KeyConditionExpression": "#job_status = :status",
            "ExpressionAttributeNames": {"#job_status": "job_status"},
            "ExpressionAttributeValues": {":status": status.value},
            "ScanIndexForward": True,
        }
        filters = []
        if job_type:
            filters.append("#job_type = :job_type")
            params["ExpressionAttributeNames"]["#job_type"] = "job_type"
            params["ExpressionAttributeValues"][":job_type"] = job_type
        if signature:
            filters.append("#signature = :signature")
            params["ExpressionAttributeNames"]["#signature"] = "signature"
            params["ExpressionAttributeValues"][":signature"] = signature
        if filters:
            params["FilterExpression"] = " AND ".join(filters)

        items = await self.query_all(**params)
        return [JobRecord(**item) for item in items]

    async def list_due(self, now: datetime | None = None) -> list[JobRecord]:
        """
        List new jobs whose start time has passed.

        Args:
            now: Reference time (defaults to now)

        Returns:
            Due jobs, earliest first
        """
        items = await self.query_all(
            IndexName=STATUS_INDEX,
            KeyConditionExpression="#job_status = :status AND #start_after <= :now",
            ExpressionAttributeNames={"#job_status": "job_status", "#start_after": "start_after"},
            ExpressionAttributeValues={
                ":status": JobStatus.NEW.value,
                ":now": to_iso(now or utc_now()),
            },
            ScanIndexForward=True,
        )
        return [JobRecord(**item) for item in items]

    async def _transition(
        self,
        job_id: str,
        from_statuses: tuple[JobStatus, ...],
        to_status: JobStatus,
        extra_set: dict[str, Any] | None = None,
    ) -> JobRecord | None:
        """
        Move a job between statuses if it is currently in one of from_statuses.

        Returns:
            Updated job, None if the job is missing or in another status
        """
        names = {"#job_status": "job_status", "#updated_at": "updated_at"}
        values: dict[str, Any] = {
            ":to_status": to_status.value,
            ":updated_at": to_iso(utc_now()),
        }
        clauses = ["#job_status = :to_status", "#updated_at = :updated_at"]
        for attribute, value in (extra_set or {}).items():
            names[f"#{attribute}"] = attribute
            values[f":{attribute}"] = value
            clauses.append(f"#{attribute} = :{attribute}")

        allowed = []
        for index, status in enumerate(from_statuses):
            values[f":from{index}"] = status.value
            allowed.append(f":from{index}")

        try:
            result = await self.update_item(
                {"job_id": job_id},
                "SET " + ", ".join(clauses),
                values,
                names,
                condition_expression=f"#job_status IN ({', '.join(allowed)})",
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return None
            raise
        return JobRecord(**result)

    async def claim(self, job_id: str) -> JobRecord | None:
        """Mark a new job running; None if another worker got it first."""
        return await self._transition(job_id, (JobStatus.NEW,), JobStatus.RUNNING)

    async def mark_complete(
        self, job_id: str, data: dict[str, Any], messages: list[str]
    ) -> JobRecord | None:
        return await self._transition(
            job_id,
            (JobStatus.RUNNING,),
            JobStatus.COMPLETE,
            {"data": data, "messages": messages},
        )

    async def mark_broken(
        self, job_id: str, data: dict[str, Any], messages: list[str]
    ) -> JobRecord | None:
        """
        Mark a running job broken, keeping its payload for a later requeue.

        Args:
            job_id: Job partition key
            data: Job payload as it stood when the job failed
            messages: Processing log including the failure

        Returns:
            Updated job
        """
        return await self._transition(
            job_id,
            (JobStatus.RUNNING,),
            JobStatus.BROKEN,
            {"data": data, "messages": messages},
        )

    async def cancel(self, job_id: str) -> JobRecord | None:
        """
        Cancel a job that has not been dequeued yet.

        Args:
            job_id: Job partition key

        Returns:
            Cancelled job, None if it is missing or already started
        """
        return await self._transition(job_id, (JobStatus.NEW,), JobStatus.CANCELLED)

    async def requeue(self, job_id: str, start_after: datetime) -> JobRecord | None:
        """
        Put a broken job back in the queue.

        Args:
            job_id: Job partition key
            start_after: Earliest start time

        Returns:
            Requeued job, None if the job is not broken
        """
        return await self._transition(
            job_id,
            (JobStatus.BROKEN,),
            JobStatus.NEW,
            {"start_after": to_iso(start_after)},
        )
