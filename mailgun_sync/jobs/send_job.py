"""Deferred send of a message through the provider API."""

from typing import Any

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import Settings
from mailgun_sync.exceptions import JobProcessingError
from mailgun_sync.jobs.base import BaseJob
from mailgun_sync.repositories.job_repository import JobRepository
from mailgun_sync.repositories.submission_repository import SubmissionRepository
from mailgun_sync.schemas.message import ImmediateSend, decode_attachment


class SendJob(BaseJob):
    """
    Sends the parameters queued by the dispatcher.

    Payload: {"domain": str, "parameters": dict, "submission_id": str?}.
    Attachments arrive base64-encoded and are decoded just before sending.
    On success the parameters are cleared so the job can never send twice;
    on failure they are left intact for a requeue.
    """

    job_type = "send"
    title = "Send message"

    def __init__(
        self,
        data: dict[str, Any] | None = None,
        config: Settings | None = None,
        jobs: JobRepository | None = None,
        client: MailgunClient | None = None,
        submissions: SubmissionRepository | None = None,
    ) -> None:
        super().__init__(data, config, jobs)
        self.client = client
        self.submissions = submissions or SubmissionRepository(self.config)

    def _decoded_parameters(self) -> dict[str, Any]:
        params = dict(self.data["parameters"])
        if params.get("attachment"):
            params["attachment"] = [decode_attachment(a) for a in params["attachment"]]
        return params

    async def _send(self, client: MailgunClient, params: dict[str, Any]) -> ImmediateSend:
        return await client.send_message(params)

    async def process(self) -> None:
        """
        Send the queued message.

        Raises:
            JobProcessingError: If the domain or parameters are missing
            ProviderError: If the provider rejects the send
        """
        domain = self.data.get("domain")
        if not domain:
            raise JobProcessingError("Send job has no domain")
        if not self.data.get("parameters"):
            raise JobProcessingError("Send job has no parameters, it may already have been sent")

        params = self._decoded_parameters()
        if self.client is not None:
            result = await self._send(self.client, params)
        else:
            async with MailgunClient(self.config, domain=domain) as client:
                result = await self._send(client, params)

        self.data["parameters"] = {}
        self.data["message_id"] = result.message_id
        self.add_message(f"Sent message {result.message_id}")

        submission_id = self.data.get("submission_id")
        if submission_id:
            await self.submissions.set_message_id(submission_id, result.message_id)
