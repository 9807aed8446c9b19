"""Tests for SendDispatcher."""

import base64
from unittest.mock import AsyncMock

import pytest

from mailgun_sync.exceptions import ConfigurationError
from mailgun_sync.models.job import JobRecord
from mailgun_sync.schemas.message import (
    Attachment,
    DeferredSend,
    ImmediateSend,
    OutboundMessage,
    Template,
)
from mailgun_sync.services.dispatcher import SendDispatcher
from mailgun_sync.utils.deduplication import payload_signature


def queued_job(job_type, data, signature, title="", start_after=None) -> JobRecord:
    return JobRecord(
        job_id="job-1",
        job_type=job_type,
        signature=signature,
        title=title,
        start_after="2026-10-19T00:00:00.000000Z",
        data=data,
        created_at="2026-10-19T00:00:00.000000Z",
        updated_at="2026-10-19T00:00:00.000000Z",
    )


@pytest.fixture
def client():
    client = AsyncMock()
    client.send_message.return_value = ImmediateSend(message_id="sent@mg", message="Queued")
    return client


@pytest.fixture
def jobs():
    jobs = AsyncMock()
    jobs.enqueue.side_effect = queued_job
    return jobs


@pytest.fixture
def submissions():
    return AsyncMock()


@pytest.fixture
def make_dispatcher(client, jobs, submissions, config):
    def build(config=config) -> SendDispatcher:
        return SendDispatcher(client=client, jobs=jobs, submissions=submissions, config=config)

    return build


@pytest.fixture
def message() -> OutboundMessage:
    return OutboundMessage(
        from_address="Site <noreply@example.com>",
        to="alice@example.com, bob@example.com",
        subject="Hello",
        text="Hi there",
    )


class TestBuildParameters:
    """Tests for mapping OutboundMessage onto send parameters."""

    def test_basic_fields(self, make_dispatcher, message) -> None:
        params = make_dispatcher().build_parameters(message)

        assert params["from"] == "Site <noreply@example.com>"
        assert params["to"] == "alice@example.com, bob@example.com"
        assert params["subject"] == "Hello"
        assert params["text"] == "Hi there"
        assert "html" not in params
        assert "attachment" not in params

    def test_prefixed_fields(self, make_dispatcher) -> None:
        message = OutboundMessage(
            from_address="noreply@example.com",
            to=["alice@example.com"],
            headers={"Reply-To": "help@example.com"},
            variables={"order": {"id": 7}, "plain": "x"},
            options={"tracking": "no"},
            tags=["welcome"],
            template=Template(name="welcome", version="v2", text=True),
            submission_id="sub-1",
        )

        params = make_dispatcher().build_parameters(message)

        assert params["h:Reply-To"] == "help@example.com"
        assert params["v:order"] == '{"id": 7}'
        assert params["v:plain"] == "x"
        assert params["o:tracking"] == "no"
        assert params["o:tag"] == ["welcome"]
        assert params["template"] == "welcome"
        assert params["t:version"] == "v2"
        assert params["t:text"] == "yes"
        assert params["v:s"] == "sub-1"


class TestNormalize:
    """Tests for the global sending rules."""

    def test_strips_tracing_headers(self, make_dispatcher) -> None:
        params = make_dispatcher().normalize(
            {"from": "a@example.com", "h:x-request-id": "abc", "h:X-Keep": "1"}
        )
        assert "h:x-request-id" not in params
        assert params["h:X-Keep"] == "1"

    def test_sets_sender(self, make_dispatcher) -> None:
        params = make_dispatcher().normalize({"from": "a@example.com"})
        assert params["h:Sender"] == "a@example.com"
        assert params["h:X-Auto-SetSender"] == "1"

    def test_keeps_explicit_sender(self, make_dispatcher) -> None:
        params = make_dispatcher().normalize({"from": "a@example.com", "h:Sender": "b@example.com"})
        assert params["h:Sender"] == "b@example.com"
        assert "h:X-Auto-SetSender" not in params

    def test_testmode(self, make_dispatcher, settings_factory) -> None:
        params = make_dispatcher(settings_factory(api_testmode=True)).normalize({"from": "a@x"})
        assert params["o:testmode"] == "yes"

    def test_default_recipient_for_bcc_only(self, make_dispatcher, settings_factory) -> None:
        dispatcher = make_dispatcher(settings_factory(default_recipient="list@example.com"))
        params = dispatcher.normalize({"from": "a@x", "bcc": "hidden@example.com"})
        assert params["to"] == "list@example.com"

    def test_filter_variable(self, make_dispatcher, settings_factory) -> None:
        dispatcher = make_dispatcher(settings_factory(webhook_filter_variable="site-a"))
        assert dispatcher.normalize({"from": "a@x"})["v:wfv"] == "site-a"

    def test_input_not_mutated(self, make_dispatcher) -> None:
        original = {"from": "a@example.com"}
        make_dispatcher().normalize(original)
        assert original == {"from": "a@example.com"}


class TestShouldDefer:
    """Tests for the send_via_job policy."""

    @pytest.mark.parametrize(
        "policy,attachment,expected",
        [
            ("always", False, True),
            ("always", True, True),
            ("never", False, False),
            ("never", True, False),
            ("when-attachments", False, False),
            ("when-attachments", True, True),
            ("yes", False, True),
            ("no", True, False),
        ],
    )
    def test_policy(self, make_dispatcher, settings_factory, policy, attachment, expected) -> None:
        dispatcher = make_dispatcher(settings_factory(send_via_job=policy))
        params = {"from": "a@x"}
        if attachment:
            params["attachment"] = [{"fileContent": b"x", "filename": "a.txt"}]
        assert dispatcher.should_defer(params) is expected


class TestSend:
    """Tests for direct and deferred sending."""

    @pytest.mark.asyncio
    async def test_without_attachment_sends_directly(
        self, make_dispatcher, client, jobs, message
    ) -> None:
        result = await make_dispatcher().send(message)

        assert isinstance(result, ImmediateSend)
        assert result.message_id == "sent@mg"
        client.send_message.assert_awaited_once()
        jobs.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_with_attachment_defers(self, make_dispatcher, client, jobs, message) -> None:
        message.attachments = [Attachment(file_content=b"PDF", filename="invoice.pdf")]

        result = await make_dispatcher().send(message)

        assert isinstance(result, DeferredSend)
        assert result.job_id == "job-1"
        client.send_message.assert_not_awaited()

        job_type, data, signature = jobs.enqueue.await_args.args
        assert job_type == "send"
        assert data["domain"] == "mg.example.com"
        attachment = data["parameters"]["attachment"][0]
        assert base64.b64decode(attachment["fileContent"]) == b"PDF"
        assert signature == payload_signature("mg.example.com", data["parameters"])
        assert jobs.enqueue.await_args.kwargs["title"] == "Send: Hello"

    @pytest.mark.asyncio
    async def test_send_in_always_defers(
        self, make_dispatcher, client, jobs, message, settings_factory
    ) -> None:
        result = await make_dispatcher(settings_factory(send_via_job="never")).send(
            message, send_in=60
        )

        assert isinstance(result, DeferredSend)
        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_direct_send_updates_submission(
        self, make_dispatcher, submissions, message
    ) -> None:
        message.submission_id = "sub-1"
        await make_dispatcher().send(message)
        submissions.set_message_id.assert_awaited_once_with("sub-1", "sent@mg")

    @pytest.mark.asyncio
    async def test_deferred_send_carries_submission(
        self, make_dispatcher, jobs, message, settings_factory
    ) -> None:
        message.submission_id = "sub-1"
        await make_dispatcher(settings_factory(send_via_job="always")).send(message)
        assert jobs.enqueue.await_args.args[1]["submission_id"] == "sub-1"

    @pytest.mark.asyncio
    async def test_defer_requires_domain(self, make_dispatcher, message, settings_factory) -> None:
        dispatcher = make_dispatcher(settings_factory(send_via_job="always", mailgun_domain=""))
        with pytest.raises(ConfigurationError):
            await dispatcher.send(message)
