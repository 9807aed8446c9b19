"""Submission repository for DynamoDB operations."""

import uuid
from typing import Any

from botocore.exceptions import ClientError

from mailgun_sync.config import Settings, settings
from mailgun_sync.models.submission import Submission
from mailgun_sync.repositories.base import BaseRepository, is_conditional_check_failure
from mailgun_sync.utils.dates import to_iso, utc_now
from mailgun_sync.utils.message_id import clean_message_id

MESSAGE_ID_INDEX = "MessageIdIndex"


class SubmissionRepository(BaseRepository):
    """Repository for Submission correlation records."""

    def __init__(self, config: Settings | None = None) -> None:
        """Initialize SubmissionRepository with submissions table."""
        super().__init__((config or settings).dynamodb_table_submissions, config)

    async def create(
        self,
        source_type: str,
        source_id: str,
        recipient_ref: str | None = None,
        domain: str | None = None,
    ) -> Submission:
        """
        Create a Submission before the message is sent.

        Args:
            source_type: Originating record type
            source_id: Originating record id
            recipient_ref: Optional recipient reference
            domain: Sending domain

        Returns:
            The created Submission
        """
        now = to_iso(utc_now())
        submission = Submission(
            submission_id=str(uuid.uuid4()),
            source_type=source_type,
            source_id=source_id,
            recipient_ref=recipient_ref,
            domain=domain,
            created_at=now,
            updated_at=now,
        )
        await self.put_item(submission.model_dump(exclude_none=True))
        return submission

    async def get(self, submission_id: str) -> Submission | None:
        item = await self.get_item({"submission_id": submission_id})
        return Submission(**item) if item else None

    async def set_message_id(self, submission_id: str, message_id: str) -> Submission | None:
        """
        Record the provider message id after a successful send.

        Args:
            submission_id: Submission partition key
            message_id: Provider message id (brackets are stripped)

        Returns:
            Updated Submission, None if it does not exist
        """
        try:
            result = await self.update_item(
                {"submission_id": submission_id},
                "SET #message_id = :message_id, #updated_at = :updated_at",
                {":message_id": clean_message_id(message_id), ":updated_at": to_iso(utc_now())},
                {
                    "#message_id": "message_id",
                    "#updated_at": "updated_at",
                    "#submission_id": "submission_id",
                },
                condition_expression="attribute_exists(#submission_id)",
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return None
            raise
        return Submission(**result)

    async def find_by_message_id(self, message_id: str) -> list[Submission]:
        items = await self.query_all(
            IndexName=MESSAGE_ID_INDEX,
            KeyConditionExpression="#message_id = :message_id",
            ExpressionAttributeNames={"#message_id": "message_id"},
            ExpressionAttributeValues={":message_id": clean_message_id(message_id)},
        )
        return [Submission(**item) for item in items]

    async def list_older_than(self, cutoff: str) -> list[dict[str, Any]]:
        """Raw items of submissions created before a cutoff."""
        return await self.scan_all(
            FilterExpression="#created_at < :cutoff",
            ExpressionAttributeNames={"#created_at": "created_at"},
            ExpressionAttributeValues={":cutoff": cutoff},
        )

    async def delete(self, submission_id: str) -> None:
        await self.delete_item({"submission_id": submission_id})
