"""Tests for SendJob and the job base class."""

import logging
from unittest.mock import AsyncMock

import pytest

from mailgun_sync.exceptions import JobProcessingError, ProviderError
from mailgun_sync.jobs.base import job_signature
from mailgun_sync.jobs.send_job import SendJob
from mailgun_sync.schemas.message import ImmediateSend, encode_attachment


@pytest.fixture
def client():
    client = AsyncMock()
    client.send_message.return_value = ImmediateSend(message_id="sent@mg", message="Queued")
    return client


@pytest.fixture
def make_job(client, config):
    def build(data) -> SendJob:
        return SendJob(
            data=data, config=config, jobs=AsyncMock(), client=client, submissions=AsyncMock()
        )

    return build


class TestSendJob:
    """Tests for SendJob.process."""

    @pytest.mark.asyncio
    async def test_sends_and_clears_parameters(self, make_job, client) -> None:
        job = make_job({"domain": "mg.example.com", "parameters": {"from": "a@x", "to": "b@x"}})

        await job.process()

        client.send_message.assert_awaited_once_with({"from": "a@x", "to": "b@x"})
        assert job.data["parameters"] == {}
        assert job.data["message_id"] == "sent@mg"
        assert job.messages == ["[INFO] Sent message sent@mg"]

    @pytest.mark.asyncio
    async def test_decodes_attachments(self, make_job, client) -> None:
        attachment = encode_attachment({"fileContent": b"PDF", "filename": "a.pdf"})
        job = make_job({"domain": "mg.example.com", "parameters": {"attachment": [attachment]}})

        await job.process()

        sent = client.send_message.await_args.args[0]
        assert sent["attachment"][0]["fileContent"] == b"PDF"
        assert sent["attachment"][0]["filename"] == "a.pdf"

    @pytest.mark.asyncio
    async def test_updates_submission(self, make_job) -> None:
        job = make_job(
            {"domain": "mg.example.com", "parameters": {"from": "a@x"}, "submission_id": "sub-1"}
        )

        await job.process()

        job.submissions.set_message_id.assert_awaited_once_with("sub-1", "sent@mg")

    @pytest.mark.asyncio
    async def test_missing_domain(self, make_job, client) -> None:
        with pytest.raises(JobProcessingError):
            await make_job({"parameters": {"from": "a@x"}}).process()
        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_sent_is_not_resent(self, make_job, client) -> None:
        with pytest.raises(JobProcessingError):
            await make_job({"domain": "mg.example.com", "parameters": {}}).process()
        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_parameters(self, make_job, client) -> None:
        client.send_message.side_effect = ProviderError("rejected", status_code=400)
        job = make_job({"domain": "mg.example.com", "parameters": {"from": "a@x"}})

        with pytest.raises(ProviderError):
            await job.process()

        assert job.data["parameters"] == {"from": "a@x"}


class TestBaseJob:
    """Tests for queueing and messages on the base class."""

    def test_add_message_prefixes_level(self, make_job) -> None:
        job = make_job({})
        job.add_message("careful", logging.WARNING)
        assert job.messages == ["[WARNING] careful"]

    def test_data_is_copied(self, make_job) -> None:
        data = {"domain": "mg.example.com"}
        job = make_job(data)
        job.data["extra"] = 1
        assert "extra" not in data

    def test_signature_depends_on_type_and_data(self, make_job) -> None:
        job = make_job({"domain": "mg.example.com"})
        assert job.signature() == job_signature("send", {"domain": "mg.example.com"})
        assert job.signature() != job_signature("send", {"domain": "other.example.com"})

    @pytest.mark.asyncio
    async def test_queue(self, make_job) -> None:
        job = make_job({"domain": "mg.example.com", "parameters": {"from": "a@x"}})

        await job.queue()

        job.jobs.enqueue.assert_awaited_once_with(
            "send", job.data, job.signature(), "Send message", None
        )
