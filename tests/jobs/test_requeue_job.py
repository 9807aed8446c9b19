"""Tests for RequeueJob."""

from unittest.mock import AsyncMock

import pytest

from mailgun_sync.jobs.requeue_job import RequeueJob
from mailgun_sync.models.job import JobRecord, JobStatus


def broken_send(job_id: str, parameters: dict) -> JobRecord:
    return JobRecord(
        job_id=job_id,
        job_type="send",
        job_status=JobStatus.BROKEN,
        signature=job_id,
        start_after="2026-10-18T00:00:00.000000Z",
        data={"domain": "mg.example.com", "parameters": parameters},
        created_at="2026-10-18T00:00:00.000000Z",
        updated_at="2026-10-18T00:00:00.000000Z",
    )


@pytest.mark.asyncio
async def test_requeues_unsent_jobs_only(config) -> None:
    jobs = AsyncMock()
    jobs.list_by_status.return_value = [
        broken_send("job-1", {"from": "a@x"}),
        broken_send("job-2", {}),
        broken_send("job-3", {"from": "b@x"}),
    ]
    job = RequeueJob(config=config, jobs=jobs)

    await job.process()

    jobs.list_by_status.assert_awaited_once_with(JobStatus.BROKEN, job_type="send")
    requeued = [call.args[0] for call in jobs.requeue.await_args_list]
    assert requeued == ["job-1", "job-3"]
    assert job.data == {"requeued": 2, "skipped": 1}


@pytest.mark.asyncio
async def test_lost_race_not_counted(config) -> None:
    jobs = AsyncMock()
    jobs.list_by_status.return_value = [broken_send("job-1", {"from": "a@x"})]
    jobs.requeue.return_value = None
    job = RequeueJob(config=config, jobs=jobs)

    await job.process()

    assert job.data["requeued"] == 0
