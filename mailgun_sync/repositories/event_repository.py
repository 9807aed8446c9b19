"""Event store: DynamoDB repository for delivery events."""

from datetime import date
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from mailgun_sync.config import Settings, settings
from mailgun_sync.exceptions import StorageError
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.event import Event, EventType
from mailgun_sync.repositories.base import BaseRepository, is_conditional_check_failure
from mailgun_sync.utils.dates import to_iso, utc_now

logger = get_logger(__name__)

MESSAGE_ID_INDEX = "MessageIdIndex"
EVENT_TYPE_DATE_INDEX = "EventTypeDateIndex"
EVENT_ID_INDEX = "EventIdIndex"


class EventRepository(BaseRepository):
    """
    Repository for delivery events in DynamoDB.

    The partition key is the dedup fingerprint of (message id, timestamp,
    recipient, event type), so the same event arriving by webhook and by
    polling is stored once. Rows are written once and afterwards only
    flagged (resolved, resubmitted, cached MIME) or deleted by truncation.
    """

    def __init__(self, config: Settings | None = None) -> None:
        """Initialize EventRepository with events table."""
        super().__init__((config or settings).dynamodb_table_events, config)

    def _serialize_event(self, event: Event) -> dict[str, Any]:
        """
        Convert Event model to a DynamoDB item.

        Args:
            event: Event to convert

        Returns:
            Item dict; None values are dropped so GSI keys stay sparse
        """
        item = event.model_dump(exclude_none=True)
        item["event_type"] = event.event_type.value
        if event.severity is not None:
            item["severity"] = event.severity.value
        item["delivery_status"] = event.delivery_status.model_dump(exclude_none=True)
        return item

    def _deserialize_event(self, item: dict[str, Any]) -> Event:
        """Convert DynamoDB item to Event model."""
        return Event(**item)

    async def create_if_absent(self, event: Event) -> tuple[Event, bool]:
        """
        Store an event unless its dedup key already exists.

        Args:
            event: Event to store

        Returns:
            Tuple of (stored or existing event, whether a row was created)

        Raises:
            StorageError: If the write fails for any other reason
        """
        try:
            await self.put_item(
                self._serialize_event(event),
                condition_expression="attribute_not_exists(event_key)",
            )
        except ClientError as e:
            if not is_conditional_check_failure(e):
                raise StorageError(
                    "Failed to store event", details={"event_key": event.event_key}
                ) from e
            existing = await self.get(event.event_key)
            logger.debug(
                "Duplicate event ignored",
                extra={"context": {"event_key": event.event_key}},
            )
            return existing or event, False
        except BotoCoreError as e:
            raise StorageError(
                "Failed to store event", details={"event_key": event.event_key}
            ) from e
        return event, True

    async def get(self, event_key: str) -> Event | None:
        """
        Get event by dedup key.

        Args:
            event_key: Event partition key

        Returns:
            Event if found, None otherwise
        """
        item = await self.get_item({"event_key": event_key})
        if item:
            return self._deserialize_event(item)
        return None

    async def find_by_event_id(self, event_id: str, utc_event_date: str) -> Event | None:
        """
        Find an event by provider event id.

        Provider ids are only unique within a calendar day, so the UTC date
        is part of the lookup.

        Args:
            event_id: Provider event id
            utc_event_date: UTC date (YYYY-MM-DD)

        Returns:
            Event if found, None otherwise
        """
        items = await self.query_all(
            IndexName=EVENT_ID_INDEX,
            KeyConditionExpression="#event_id = :event_id AND #utc_event_date = :date",
            ExpressionAttributeNames={
                "#event_id": "event_id",
                "#utc_event_date": "utc_event_date",
            },
            ExpressionAttributeValues={":event_id": event_id, ":date": utc_event_date},
        )
        return self._deserialize_event(items[0]) if items else None

    async def list_for_message(self, message_id: str) -> list[Event]:
        """
        List all events recorded for a message, oldest first.

        Args:
            message_id: Provider message id

        Returns:
            Events for all recipients of the message
        """
        items = await self.query_all(
            IndexName=MESSAGE_ID_INDEX,
            KeyConditionExpression="#message_id = :message_id",
            ExpressionAttributeNames={"#message_id": "message_id"},
            ExpressionAttributeValues={":message_id": message_id},
            ScanIndexForward=True,
        )
        return [self._deserialize_event(item) for item in items]

    async def count_recipient_failures(self, message_id: str | None, recipient: str) -> int:
        """
        Count failed or rejected events for a (message, recipient) pair.

        Args:
            message_id: Provider message id
            recipient: Recipient address

        Returns:
            Number of failures, 0 when the message id is unknown
        """
        if not message_id:
            return 0
        return await self.count_all(
            IndexName=MESSAGE_ID_INDEX,
            KeyConditionExpression="#message_id = :message_id",
            FilterExpression="#recipient = :recipient AND #event_type IN (:failed, :rejected)",
            ExpressionAttributeNames={
                "#message_id": "message_id",
                "#recipient": "recipient",
                "#event_type": "event_type",
            },
            ExpressionAttributeValues={
                ":message_id": message_id,
                ":recipient": recipient.strip().lower(),
                ":failed": EventType.FAILED.value,
                ":rejected": EventType.REJECTED.value,
            },
        )

    async def _list_by_type_since(
        self, event_type: EventType, since: date, resubmitted: bool | None = None
    ) -> list[Event]:
        filter_expression = "#failed_then_delivered = :false AND attribute_exists(#message_id)"
        names = {
            "#event_type": "event_type",
            "#utc_event_date": "utc_event_date",
            "#failed_then_delivered": "failed_then_delivered",
            "#message_id": "message_id",
        }
        values: dict[str, Any] = {
            ":event_type": event_type.value,
            ":since": since.isoformat(),
            ":false": False,
        }
        if resubmitted is not None:
            filter_expression += " AND #resubmitted = :resubmitted"
            names["#resubmitted"] = "resubmitted"
            values[":resubmitted"] = resubmitted

        items = await self.query_all(
            IndexName=EVENT_TYPE_DATE_INDEX,
            KeyConditionExpression="#event_type = :event_type AND #utc_event_date >= :since",
            FilterExpression=filter_expression,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
        return [self._deserialize_event(item) for item in items]

    async def list_unresolved_failures(self, since: date) -> list[Event]:
        """
        List failed events on or after a date that are not yet resolved.

        Only events with a message id are returned, since they cannot be
        checked against the provider otherwise.

        Args:
            since: Earliest UTC event date

        Returns:
            Events, oldest first
        """
        events = await self._list_by_type_since(EventType.FAILED, since)
        return sorted(events, key=lambda e: (e.timestamp, e.created_at))

    async def list_resubmit_candidates(self, since: date) -> list[Event]:
        """
        List failed or rejected events eligible for automated resubmission.

        Args:
            since: Earliest UTC event date

        Returns:
            Unresolved, not yet resubmitted events, oldest first
        """
        events: list[Event] = []
        for event_type in (EventType.FAILED, EventType.REJECTED):
            events.extend(
                await self._list_by_type_since(event_type, since, resubmitted=False)
            )
        return sorted(events, key=lambda e: (e.timestamp, e.created_at))

    async def _update_existing(
        self,
        event_key: str,
        set_clauses: list[str],
        values: dict[str, Any],
        names: dict[str, str],
        remove: list[str] | None = None,
    ) -> Event | None:
        """Apply an update to an existing row; None if the row is gone."""
        set_clauses = [*set_clauses, "#updated_at = :updated_at"]
        expression = "SET " + ", ".join(set_clauses)
        if remove:
            expression += " REMOVE " + ", ".join(remove)
        try:
            result = await self.update_item(
                {"event_key": event_key},
                expression,
                {**values, ":updated_at": to_iso(utc_now())},
                {**names, "#updated_at": "updated_at", "#event_key": "event_key"},
                condition_expression="attribute_exists(#event_key)",
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return None
            raise
        return self._deserialize_event(result)

    async def mark_failed_then_delivered(self, event_key: str) -> Event | None:
        """
        Flag a failure as since confirmed delivered.

        Args:
            event_key: Event partition key

        Returns:
            Updated Event, None if not found
        """
        return await self._update_existing(
            event_key,
            ["#failed_then_delivered = :true"],
            {":true": True},
            {"#failed_then_delivered": "failed_then_delivered"},
        )

    async def record_resubmit(self, event_key: str, succeeded: bool) -> Event | None:
        """
        Count a resubmit attempt, and flag the event if it succeeded.

        Args:
            event_key: Event partition key
            succeeded: Whether the provider accepted the resubmission

        Returns:
            Updated Event, None if not found
        """
        clauses = ["#resubmits = if_not_exists(#resubmits, :zero) + :one"]
        values: dict[str, Any] = {":zero": 0, ":one": 1}
        names = {"#resubmits": "resubmits"}
        if succeeded:
            clauses.append("#resubmitted = :true")
            values[":true"] = True
            names["#resubmitted"] = "resubmitted"
        return await self._update_existing(event_key, clauses, values, names)

    async def set_mime_blob(self, event_key: str, blob_key: str | None) -> Event | None:
        """
        Link (or unlink, with None) a locally cached MIME blob.

        Args:
            event_key: Event partition key
            blob_key: Blob key in the MIME store

        Returns:
            Updated Event, None if not found
        """
        names = {"#mime_blob_key": "mime_blob_key"}
        if blob_key is None:
            return await self._update_existing(
                event_key, [], {}, names, remove=["#mime_blob_key"]
            )
        return await self._update_existing(
            event_key, ["#mime_blob_key = :blob_key"], {":blob_key": blob_key}, names
        )

    async def list_older_than(self, cutoff: str) -> list[Event]:
        """
        List events created before a cutoff.

        Args:
            cutoff: ISO 8601 timestamp

        Returns:
            Events created before the cutoff
        """
        items = await self.scan_all(
            FilterExpression="#created_at < :cutoff",
            ExpressionAttributeNames={"#created_at": "created_at"},
            ExpressionAttributeValues={":cutoff": cutoff},
        )
        return [self._deserialize_event(item) for item in items]

    async def delete(self, event_key: str) -> None:
        """Delete an event row."""
        await self.delete_item({"event_key": event_key})
