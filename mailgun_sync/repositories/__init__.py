"""Repository layer for DynamoDB and S3 operations."""

from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.repositories.job_repository import JobRepository
from mailgun_sync.repositories.mime_storage import MimeStorage
from mailgun_sync.repositories.submission_repository import SubmissionRepository

__all__ = ["EventRepository", "JobRepository", "MimeStorage", "SubmissionRepository"]
