"""Submission model linking a business record to a provider message id."""

from pydantic import BaseModel, Field


class Submission(BaseModel):
    """
    Correlation between "the thing that triggered an email" and the message.

    Attributes:
        submission_id: Unique identifier (UUID v4), sent as user variable `s`
        source_type: Kind of originating record, e.g. "form-submission"
        source_id: Identifier of the originating record
        recipient_ref: Optional reference to the recipient record
        message_id: Provider message id once the send was accepted
        domain: Sending domain
        created_at: ISO 8601 timestamp of record creation
        updated_at: ISO 8601 timestamp of last update
    """

    submission_id: str = Field(..., description="Submission identifier (UUID)")
    source_type: str = Field(..., min_length=1, description="Originating record type")
    source_id: str = Field(..., min_length=1, description="Originating record id")
    recipient_ref: str | None = Field(None, description="Recipient reference")
    message_id: str | None = Field(None, description="Provider message id")
    domain: str | None = Field(None, description="Sending domain")
    created_at: str = Field(..., description="ISO 8601 creation timestamp")
    updated_at: str = Field(..., description="ISO 8601 update timestamp")


class SubmissionStatus(BaseModel):
    """Delivery state of a Submission, derived from its message's events."""

    submission_id: str = Field(..., description="Submission identifier")
    message_id: str | None = Field(None, description="Provider message id")
    accepted: bool = Field(False, description="An accepted event was stored")
    delivered: bool = Field(False, description="A delivered event was stored")
    stored: bool = Field(False, description="A stored event was stored")
    failed: bool = Field(False, description="A failed or rejected event was stored")
