"""Outbound sending: parameter normalization and direct vs deferred transport."""

import json
from datetime import timedelta
from typing import Any

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import SendViaJob, Settings, settings
from mailgun_sync.exceptions import ConfigurationError
from mailgun_sync.jobs.send_job import SendJob
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.event import FILTER_VARIABLE, SUBMISSION_VARIABLE
from mailgun_sync.repositories.job_repository import JobRepository
from mailgun_sync.repositories.submission_repository import SubmissionRepository
from mailgun_sync.schemas.message import (
    DeferredSend,
    ImmediateSend,
    OutboundMessage,
    encode_attachment,
)
from mailgun_sync.utils.dates import utc_now
from mailgun_sync.utils.deduplication import payload_signature

logger = get_logger(__name__)


class SendDispatcher:
    """
    Turns an outbound message into send API parameters and sends it.

    Depending on `send_via_job`, the message goes straight to the provider
    (ImmediateSend) or into a deferred send job (DeferredSend). Callers
    branch on the result type.
    """

    def __init__(
        self,
        client: MailgunClient | None = None,
        jobs: JobRepository | None = None,
        submissions: SubmissionRepository | None = None,
        config: Settings | None = None,
    ) -> None:
        """
        Initialize SendDispatcher.

        Args:
            client: MailgunClient instance (created on first direct send if None)
            jobs: JobRepository instance (creates new if None)
            submissions: SubmissionRepository instance (creates new if None)
            config: Settings (defaults to global settings)
        """
        self.config = config or settings
        self._client = client
        self.jobs = jobs or JobRepository(self.config)
        self.submissions = submissions or SubmissionRepository(self.config)

    @property
    def client(self) -> MailgunClient:
        if self._client is None:
            self._client = MailgunClient(self.config)
        return self._client

    def build_parameters(self, message: OutboundMessage) -> dict[str, Any]:
        """
        Map an OutboundMessage onto send API parameters.

        Args:
            message: Structured message

        Returns:
            Normalized parameters, attachments holding raw bytes
        """
        params: dict[str, Any] = {"from": message.from_address, "subject": message.subject}
        for field in ("to", "cc", "bcc"):
            addresses = getattr(message, field)
            if addresses:
                params[field] = ", ".join(addresses)
        if message.text is not None:
            params["text"] = message.text
        if message.html is not None:
            params["html"] = message.html
        if message.amp_html:
            params["amp-html"] = message.amp_html
        if message.attachments:
            params["attachment"] = [a.to_parameter() for a in message.attachments]

        for name, value in message.headers.items():
            params[f"h:{name}"] = value
        for name, value in message.variables.items():
            params[f"v:{name}"] = value if isinstance(value, str) else json.dumps(value)
        for name, value in message.options.items():
            params[f"o:{name}"] = value
        if message.tags:
            params["o:tag"] = list(message.tags)
        if message.template:
            params["template"] = message.template.name
            if message.template.version:
                params["t:version"] = message.template.version
            if message.template.text:
                params["t:text"] = "yes"
        if message.recipient_variables:
            params["recipient-variables"] = json.dumps(message.recipient_variables)
        if message.submission_id:
            params[f"v:{SUBMISSION_VARIABLE}"] = message.submission_id

        return self.normalize(params)

    def normalize(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        Apply the global sending rules to send API parameters.

        Strips internal tracing headers, sets the Sender header, applies
        testmode, fills in the default recipient for Cc/Bcc-only mail and
        adds the webhook filter variable.

        Args:
            params: Send API parameters

        Returns:
            New parameter dict
        """
        params = dict(params)

        stripped = {f"h:{name}".lower() for name in self.config.stripped_headers}
        for name in [key for key in params if key.lower() in stripped]:
            del params[name]

        if self.config.always_set_sender and params.get("from") and "h:Sender" not in params:
            params["h:Sender"] = params["from"]
            params["h:X-Auto-SetSender"] = "1"

        if self.config.api_testmode:
            params["o:testmode"] = "yes"

        if not params.get("to") and (params.get("cc") or params.get("bcc")):
            if self.config.default_recipient:
                params["to"] = self.config.default_recipient
            else:
                logger.warning("Message has Cc/Bcc but no To and no default recipient is set")

        if self.config.webhooks_enabled and self.config.webhook_filter_variable:
            params[f"v:{FILTER_VARIABLE}"] = self.config.webhook_filter_variable

        return params

    def should_defer(self, params: dict[str, Any]) -> bool:
        """Whether the send_via_job policy hands these parameters to a job."""
        policy = self.config.send_via_job
        if policy == SendViaJob.ALWAYS:
            return True
        if policy == SendViaJob.WHEN_ATTACHMENTS:
            return bool(params.get("attachment"))
        return False

    async def send(
        self, message: OutboundMessage, send_in: int = 0
    ) -> ImmediateSend | DeferredSend:
        """
        Send a message directly or through a deferred job.

        Args:
            message: Structured message
            send_in: Seconds to wait before sending; a positive value always defers

        Returns:
            ImmediateSend with the message id, or DeferredSend with the job id
        """
        params = self.build_parameters(message)
        return await self.send_parameters(params, send_in, message.submission_id)

    async def send_parameters(
        self,
        params: dict[str, Any],
        send_in: int = 0,
        submission_id: str | None = None,
    ) -> ImmediateSend | DeferredSend:
        """
        Send already normalized parameters.

        Args:
            params: Send API parameters with raw attachment bytes
            send_in: Seconds to wait before sending
            submission_id: Submission to update with the message id

        Returns:
            ImmediateSend or DeferredSend
        """
        if send_in > 0 or self.should_defer(params):
            return await self._defer(params, send_in, submission_id)

        result = await self.client.send_message(params)
        logger.info(
            "Message sent",
            extra={"context": {"message_id": result.message_id, "submission_id": submission_id}},
        )
        if submission_id:
            await self.submissions.set_message_id(submission_id, result.message_id)
        return result

    async def _defer(
        self, params: dict[str, Any], send_in: int, submission_id: str | None
    ) -> DeferredSend:
        domain = self.config.mailgun_domain
        if not domain:
            raise ConfigurationError("Mailgun sending domain is not configured")

        parameters = dict(params)
        if parameters.get("attachment"):
            parameters["attachment"] = [encode_attachment(a) for a in parameters["attachment"]]

        data: dict[str, Any] = {"domain": domain, "parameters": parameters}
        if submission_id:
            data["submission_id"] = submission_id

        start_after = utc_now() + timedelta(seconds=max(send_in, 0))
        job = await self.jobs.enqueue(
            SendJob.job_type,
            data,
            payload_signature(domain, parameters),
            title=f"Send: {parameters.get('subject', '')}"[:200],
            start_after=start_after,
        )
        return DeferredSend(job_id=job.job_id, start_after=job.start_after)
