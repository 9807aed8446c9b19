"""Data models for Mailgun Sync."""

from mailgun_sync.models.event import DeliveryStatus, Event, EventType, Severity
from mailgun_sync.models.job import JobRecord, JobStatus
from mailgun_sync.models.submission import Submission, SubmissionStatus

__all__ = [
    "DeliveryStatus",
    "Event",
    "EventType",
    "JobRecord",
    "JobStatus",
    "Severity",
    "Submission",
    "SubmissionStatus",
]
