"""Event search against the provider with bounded pagination."""

from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import Settings, settings
from mailgun_sync.exceptions import PollError, ProviderError
from mailgun_sync.logging.config import get_logger
from mailgun_sync.models.event import Event, EventType
from mailgun_sync.schemas.events import PollResult
from mailgun_sync.utils.dates import rfc2822, utc_now

logger = get_logger(__name__)

# Page size for delivery lookups of a single (message, recipient) pair
DELIVERY_CHECK_LIMIT = 25


class EventPoller:
    """
    Pulls events from the provider's event search API.

    Known limitation: the provider does not guarantee events are indexed in
    chronological order relative to polling time, and very recent events may
    appear later. The trustworthy-window algorithm (only trust a page once its
    last event is older than a threshold, otherwise wait and poll again) is
    not implemented, so a poll of the recent past can miss late-indexed
    events. Callers that need completeness should poll a window that ended a
    while ago, as the delivery check does by looking back over days.
    """

    def __init__(self, client: MailgunClient | None = None, config: Settings | None = None) -> None:
        """
        Initialize EventPoller.

        Args:
            client: MailgunClient instance (creates new if None)
            config: Settings (defaults to global settings)
        """
        self.config = config or settings
        self.client = client or MailgunClient(self.config)

    async def poll_events(
        self,
        begin: str | None = None,
        event_filter: str | None = None,
        extra_params: dict[str, Any] | None = None,
    ) -> PollResult:
        """
        Fetch every page of an event search.

        Pagination stops at the first empty page. A page ceiling guards
        against a provider fault returning pages forever; when it trips the
        result is marked exhausted and a warning is logged.

        Args:
            begin: RFC 2822 lower bound, None for no lower bound
            event_filter: Event type or OR-expression, e.g. "failed OR rejected"
            extra_params: Passthrough filters such as message-id or recipient

        Returns:
            PollResult with all events, deduplicated

        Raises:
            PollError: If any page request fails
        """
        params: dict[str, Any] = {
            "ascending": "yes",
            "limit": self.config.event_poll_page_limit,
        }
        if begin:
            params["begin"] = begin
        if event_filter:
            params["event"] = event_filter
        params.update(extra_params or {})

        max_pages = self.config.event_poll_max_pages
        events: list[Event] = []
        seen: set[str] = set()
        pages = 0
        exhausted = False

        try:
            page = await self.client.get_events(params)
            pages = 1
            while page.items:
                for item in page.items:
                    event = self._to_event(item)
                    if event is not None and event.event_key not in seen:
                        seen.add(event.event_key)
                        events.append(event)
                if not page.next_url:
                    break
                if pages >= max_pages:
                    exhausted = True
                    break
                page = await self.client.get_page(page.next_url)
                pages += 1
        except ProviderError as e:
            raise PollError(
                "Event poll failed",
                status_code=e.status_code,
                details={"params": params, "pages": pages},
            ) from e

        if exhausted:
            logger.warning(
                "Event poll stopped at page ceiling, result may be incomplete",
                extra={"context": {"pages": pages, "events": len(events), "params": params}},
            )

        return PollResult(events=events, pages=pages, exhausted=exhausted)

    def _to_event(self, item: dict[str, Any]) -> Event | None:
        try:
            return Event.from_event_data(item)
        except (ValidationError, ValueError):
            logger.warning(
                "Skipping unparseable event",
                extra={"context": {"event_id": item.get("id"), "event": item.get("event")}},
            )
            return None

    async def is_delivered(self, message_id: str, recipient: str) -> bool:
        """
        Whether a delivered event exists for a (message, recipient) pair.

        Looks back over the provider's retention window.

        Args:
            message_id: Provider message id
            recipient: Recipient address

        Returns:
            True if at least one delivered event was found

        Raises:
            ValueError: If message_id is empty
            PollError: If the search fails
        """
        if not message_id:
            raise ValueError("Cannot check delivery without a message id")

        begin = rfc2822(utc_now() - timedelta(days=self.config.event_retention_days))
        params = {"limit": DELIVERY_CHECK_LIMIT, "message-id": message_id}
        if recipient:
            params["recipient"] = recipient
        result = await self.poll_events(begin, EventType.DELIVERED.value, params)
        return any(
            event.is_delivered
            and (not recipient or event.recipient.lower() == recipient.lower())
            for event in result.events
        )
