"""Delivery event model for DynamoDB."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from mailgun_sync.utils.dates import from_timestamp, to_iso, utc_date, utc_now
from mailgun_sync.utils.deduplication import event_fingerprint, normalize_timestamp
from mailgun_sync.utils.message_id import clean_message_id

# Tag applied to resubmitted messages
TAG_RESUBMIT = "resubmit"

# User variable carrying the Submission id on outbound mail
SUBMISSION_VARIABLE = "s"

# User variable carrying the webhook filter value on outbound mail
FILTER_VARIABLE = "wfv"


class EventType(str, Enum):
    """Delivery-lifecycle event types reported by the provider."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DELIVERED = "delivered"
    FAILED = "failed"
    OPENED = "opened"
    CLICKED = "clicked"
    UNSUBSCRIBED = "unsubscribed"
    COMPLAINED = "complained"
    STORED = "stored"


USER_ACTION_TYPES = frozenset(
    {EventType.OPENED, EventType.CLICKED, EventType.UNSUBSCRIBED, EventType.COMPLAINED}
)


class Severity(str, Enum):
    """Failure severity, only meaningful for failed events."""

    PERMANENT = "permanent"
    TEMPORARY = "temporary"


class DeliveryStatus(BaseModel):
    """SMTP-level delivery details reported with an event."""

    message: str = Field("", description="Free-text status, e.g. 'mailbox full'")
    description: str = Field("", description="Verbose status description")
    code: int | None = Field(None, description="SMTP code, e.g. 550")
    attempt_no: int | None = Field(None, description="Delivery attempt number")
    session_seconds: Decimal | None = Field(None, description="SMTP session duration")
    mx_host: str = Field("", description="Remote MX host")

    @classmethod
    def from_event_data(cls, data: dict[str, Any] | None) -> "DeliveryStatus":
        """Build from the provider's `delivery-status` object."""
        data = data or {}
        code = data.get("code")
        session = data.get("session-seconds")
        return cls(
            message=data.get("message") or "",
            description=data.get("description") or "",
            code=code if isinstance(code, int) else None,
            attempt_no=data.get("attempt-no"),
            session_seconds=Decimal(str(session)) if session is not None else None,
            mx_host=data.get("mx-host") or "",
        )


class Event(BaseModel):
    """
    One delivery-lifecycle occurrence for a (message, recipient) pair.

    Attributes:
        event_key: Dedup key, hash of (message_id, timestamp, recipient, event_type)
        event_id: Provider event id, unique only within a calendar day
        message_id: Provider message id without angle brackets
        event_type: Event type
        severity: permanent or temporary (failed events only)
        utc_event_date: UTC date of the event (YYYY-MM-DD)
        timestamp: Event time in seconds, microsecond precision
        recipient: Single recipient address, lowercased
        reason: Provider reason code
        delivery_status: SMTP-level delivery details
        storage_url: Provider storage URL for the raw MIME (valid for 3 days)
        tags: Tags on the message
        user_variables: Custom variables on the message
        submission_id: Correlated Submission, if the message carried one
        failed_then_delivered: Failure later confirmed delivered
        resubmitted: An automated resubmit succeeded for this event
        resubmits: Number of resubmit attempts made for this event
        mime_blob_key: Key of a locally cached MIME copy
        created_at: ISO 8601 timestamp of record creation
        updated_at: ISO 8601 timestamp of last update
    """

    event_key: str = Field(..., description="Dedup key (SHA256)")
    event_id: str | None = Field(None, description="Provider event id")
    message_id: str | None = Field(None, description="Provider message id")
    event_type: EventType = Field(..., description="Event type")
    severity: Severity | None = Field(None, description="Failure severity")
    utc_event_date: str = Field(..., description="UTC date of the event")
    timestamp: Decimal = Field(..., description="Event timestamp (seconds)")
    recipient: str = Field("", description="Recipient address")
    reason: str | None = Field(None, description="Provider reason code")
    delivery_status: DeliveryStatus = Field(default_factory=DeliveryStatus)
    storage_url: str | None = Field(None, description="Raw MIME storage URL")
    tags: list[str] = Field(default_factory=list)
    user_variables: dict[str, Any] = Field(default_factory=dict)
    submission_id: str | None = Field(None, description="Correlated Submission id")
    failed_then_delivered: bool = Field(False, description="Resolved by a later delivery")
    resubmitted: bool = Field(False, description="Automated resubmit succeeded")
    resubmits: int = Field(0, description="Resubmit attempts")
    mime_blob_key: str | None = Field(None, description="Cached MIME blob key")
    created_at: str = Field(..., description="ISO 8601 creation timestamp")
    updated_at: str = Field(..., description="ISO 8601 update timestamp")

    @field_validator("message_id", mode="before")
    @classmethod
    def strip_delimiters(cls, v):
        """Store message ids without angle brackets; empty becomes None."""
        if v is None:
            return None
        return clean_message_id(str(v)) or None

    @classmethod
    def from_event_data(cls, data: dict[str, Any]) -> "Event":
        """
        Build an Event from a provider `event-data` object.

        Webhook payloads and event-search items share this shape.

        Args:
            data: Provider event object

        Returns:
            Unsaved Event

        Raises:
            ValueError: If the event type or timestamp is missing or invalid
        """
        if "event" not in data or "timestamp" not in data:
            raise ValueError("event-data requires 'event' and 'timestamp'")

        event_type = EventType(data["event"])
        timestamp = normalize_timestamp(data["timestamp"])
        try:
            event_date = utc_date(timestamp)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Timestamp out of range: {timestamp}") from e
        headers = (data.get("message") or {}).get("headers") or {}
        message_id = clean_message_id(headers.get("message-id"))
        recipient = (data.get("recipient") or "").strip().lower()
        user_variables = data.get("user-variables") or {}
        severity = data.get("severity")
        now = to_iso(utc_now())

        return cls(
            event_key=event_fingerprint(message_id, timestamp, recipient, event_type.value),
            event_id=data.get("id") or None,
            message_id=message_id or None,
            event_type=event_type,
            severity=Severity(severity) if severity else None,
            utc_event_date=event_date,
            timestamp=timestamp,
            recipient=recipient,
            reason=data.get("reason") or None,
            delivery_status=DeliveryStatus.from_event_data(data.get("delivery-status")),
            storage_url=(data.get("storage") or {}).get("url") or None,
            tags=list(data.get("tags") or []),
            user_variables=user_variables,
            submission_id=user_variables.get(SUBMISSION_VARIABLE) or None,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_failed(self) -> bool:
        return self.event_type == EventType.FAILED

    @property
    def is_rejected(self) -> bool:
        return self.event_type == EventType.REJECTED

    @property
    def is_failed_or_rejected(self) -> bool:
        return self.event_type in (EventType.FAILED, EventType.REJECTED)

    @property
    def is_delivered(self) -> bool:
        return self.event_type == EventType.DELIVERED

    @property
    def is_accepted(self) -> bool:
        return self.event_type == EventType.ACCEPTED

    @property
    def is_user_event(self) -> bool:
        """Recipient actions: opened, clicked, unsubscribed, complained."""
        return self.event_type in USER_ACTION_TYPES

    @property
    def is_temporary_failure(self) -> bool:
        return self.is_failed and self.severity == Severity.TEMPORARY

    def utc_datetime(self) -> datetime:
        """Event time as an aware UTC datetime."""
        return from_timestamp(self.timestamp)

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "event_key": "4c1f0e9a0f3c4b8d9f1e2a3b4c5d6e7f8091a2b3c4d5e6f708192a3b4c5d6e7f",
                "event_id": "CPgfbmQMTCKtHW6uIWtuVe",
                "message_id": "20261019005140.1.ABC123@mg.example.com",
                "event_type": "failed",
                "severity": "permanent",
                "utc_event_date": "2026-10-19",
                "timestamp": "1792371100.908181",
                "recipient": "alice@example.com",
                "reason": "bounce",
                "delivery_status": {
                    "message": "Mailbox full",
                    "description": "",
                    "code": 552,
                    "attempt_no": 1,
                    "session_seconds": "0.4",
                    "mx_host": "mx.example.com",
                },
                "failed_then_delivered": False,
                "created_at": "2026-10-19T00:51:40.000000Z",
                "updated_at": "2026-10-19T00:51:40.000000Z",
            }
        }
