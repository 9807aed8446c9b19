"""Delivery status lookups for Submissions."""

from mailgun_sync.config import Settings, settings
from mailgun_sync.models.event import EventType
from mailgun_sync.models.submission import SubmissionStatus
from mailgun_sync.repositories.event_repository import EventRepository
from mailgun_sync.repositories.submission_repository import SubmissionRepository


class SubmissionService:
    """Answers "did my notification get delivered?" for a Submission."""

    def __init__(
        self,
        submissions: SubmissionRepository | None = None,
        events: EventRepository | None = None,
        config: Settings | None = None,
    ) -> None:
        self.config = config or settings
        self.submissions = submissions or SubmissionRepository(self.config)
        self.events = events or EventRepository(self.config)

    async def status(self, submission_id: str) -> SubmissionStatus | None:
        """
        Summarize the events stored for a Submission's message.

        Args:
            submission_id: Submission identifier

        Returns:
            SubmissionStatus, or None if the Submission does not exist
        """
        submission = await self.submissions.get(submission_id)
        if submission is None:
            return None
        if not submission.message_id:
            return SubmissionStatus(submission_id=submission_id)

        events = await self.events.list_for_message(submission.message_id)
        types = {event.event_type for event in events}
        return SubmissionStatus(
            submission_id=submission_id,
            message_id=submission.message_id,
            accepted=EventType.ACCEPTED in types,
            delivered=EventType.DELIVERED in types,
            stored=EventType.STORED in types,
            failed=bool(types & {EventType.FAILED, EventType.REJECTED}),
        )
