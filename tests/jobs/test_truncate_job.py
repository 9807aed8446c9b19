"""Tests for TruncateJob."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import ClientError

from mailgun_sync.jobs.truncate_job import TruncateJob
from mailgun_sync.models.event import Event
from mailgun_sync.utils.dates import utc_now


@pytest.fixture
def collaborators():
    submissions = AsyncMock()
    submissions.list_older_than.return_value = []
    return {
        "jobs": AsyncMock(),
        "repository": AsyncMock(),
        "submissions": submissions,
        "mime_storage": AsyncMock(),
    }


@pytest.fixture
def old_events(event_data_factory) -> list[Event]:
    plain = Event.from_event_data(event_data_factory(recipient="alice@example.com"))
    cached = Event.from_event_data(
        event_data_factory(recipient="bob@example.com", **{"user-variables": {"s": "sub-1"}})
    )
    cached.mime_blob_key = "events/bob/blob.eml"
    return [plain, cached]


@pytest.mark.asyncio
async def test_deletes_events_blobs_and_submissions(collaborators, old_events, config) -> None:
    collaborators["repository"].list_older_than.return_value = old_events
    collaborators["submissions"].list_older_than.return_value = [{"submission_id": "sub-2"}]
    job = TruncateJob(config=config, **collaborators)

    await job.process()

    collaborators["mime_storage"].delete.assert_awaited_once_with("events/bob/blob.eml")
    deleted = [call.args[0] for call in collaborators["repository"].delete.await_args_list]
    assert deleted == [event.event_key for event in old_events]
    removed = [call.args[0] for call in collaborators["submissions"].delete.await_args_list]
    assert removed == ["sub-1", "sub-2"]
    assert job.data == {"deleted_events": 2, "kept_events": 0, "deleted_submissions": 1}


@pytest.mark.asyncio
async def test_blob_delete_failure_keeps_event(collaborators, old_events, config) -> None:
    collaborators["repository"].list_older_than.return_value = old_events
    collaborators["mime_storage"].delete.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
    )
    job = TruncateJob(config=config, **collaborators)

    await job.process()

    collaborators["repository"].delete.assert_awaited_once_with(old_events[0].event_key)
    assert job.data["kept_events"] == 1
    assert job.data["deleted_events"] == 1


@pytest.mark.asyncio
async def test_cutoff_from_payload(collaborators, config) -> None:
    collaborators["repository"].list_older_than.return_value = []
    job = TruncateJob(data={"days": 10}, config=config, **collaborators)

    await job.process()

    cutoff = collaborators["repository"].list_older_than.await_args.args[0]
    expected = (utc_now() - timedelta(days=10)).strftime("%Y-%m-%d")
    assert cutoff.startswith(expected)
    assert collaborators["submissions"].list_older_than.await_args.args[0] == cutoff


@pytest.mark.asyncio
async def test_reschedules_after_interval(collaborators, settings_factory) -> None:
    job = TruncateJob(config=settings_factory(truncate_interval_seconds=3600), **collaborators)
    before = utc_now()

    await job.after_complete()

    start_after = collaborators["jobs"].enqueue.await_args.args[4]
    assert start_after - before >= timedelta(seconds=3600)
    assert start_after - before < timedelta(seconds=3660)
