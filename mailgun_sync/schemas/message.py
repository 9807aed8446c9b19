"""Outbound message schemas and send results."""

import base64
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator


class Attachment(BaseModel):
    """A file attached to an outbound message."""

    file_content: bytes = Field(..., description="Raw file content")
    filename: str = Field(..., min_length=1, description="File name shown to the recipient")
    mimetype: str = Field("application/octet-stream", description="MIME type")

    def to_parameter(self) -> dict[str, Any]:
        """Send API `attachment` entry."""
        return {
            "fileContent": self.file_content,
            "filename": self.filename,
            "mimetype": self.mimetype,
        }


def encode_attachment(attachment: dict[str, Any]) -> dict[str, Any]:
    """Base64-encode an `attachment` parameter so it survives serialization."""
    encoded = dict(attachment)
    content = encoded.get("fileContent", b"")
    if isinstance(content, str):
        content = content.encode("utf-8")
    encoded["fileContent"] = base64.b64encode(content).decode("ascii")
    return encoded


def decode_attachment(attachment: dict[str, Any]) -> dict[str, Any]:
    """Reverse of encode_attachment."""
    decoded = dict(attachment)
    decoded["fileContent"] = base64.b64decode(decoded.get("fileContent", ""))
    return decoded


class Template(BaseModel):
    """Provider-side template selection."""

    name: str = Field(..., min_length=1)
    version: str | None = None
    text: bool = Field(False, description="Also render a text part from the template")


class OutboundMessage(BaseModel):
    """
    A structured message to hand to the send dispatcher.

    Attributes:
        from_address: Sender, e.g. "Site <noreply@example.com>"
        to: Primary recipients
        cc: Carbon-copy recipients
        bcc: Blind carbon-copy recipients
        subject: Subject line
        text: Plain text body
        html: HTML body
        amp_html: AMP HTML body
        attachments: Files to attach
        headers: Custom headers (without the `h:` prefix)
        variables: Custom variables (without the `v:` prefix)
        options: Provider options (without the `o:` prefix)
        tags: Tags for the message
        template: Provider template
        recipient_variables: Batch sending variables
        submission_id: Correlated Submission id
    """

    from_address: str = Field(..., min_length=1)
    to: list[str] = Field(default_factory=list)
    cc: list[str] = Field(default_factory=list)
    bcc: list[str] = Field(default_factory=list)
    subject: str = ""
    text: str | None = None
    html: str | None = None
    amp_html: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    template: Template | None = None
    recipient_variables: dict[str, dict[str, Any]] = Field(default_factory=dict)
    submission_id: str | None = None

    @field_validator("to", "cc", "bcc", mode="before")
    @classmethod
    def split_addresses(cls, v):
        """Accept a comma-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v


class ImmediateSend(BaseModel):
    """The provider accepted the message synchronously."""

    kind: Literal["immediate"] = "immediate"
    message_id: str = Field(..., description="Provider message id without brackets")
    message: str = Field("", description="Provider response message")


class DeferredSend(BaseModel):
    """The message was handed to a deferred send job."""

    kind: Literal["deferred"] = "deferred"
    job_id: str = Field(..., description="Deferred job id")
    start_after: str = Field(..., description="Earliest start time (ISO 8601)")


SendResult = Annotated[ImmediateSend | DeferredSend, Field(discriminator="kind")]
