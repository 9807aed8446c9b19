"""Schemas for provider event search results."""

from typing import Any

from pydantic import BaseModel, Field

from mailgun_sync.models.event import Event


class EventPage(BaseModel):
    """One page of the provider's event search."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    next_url: str | None = Field(None, description="URL of the next page")


class PollResult(BaseModel):
    """
    Materialized result of an event search across all pages.

    `exhausted` is set when the page ceiling stopped pagination before an
    empty page was seen, meaning the result may be incomplete.
    """

    events: list[Event] = Field(default_factory=list)
    pages: int = Field(0, description="Pages fetched")
    exhausted: bool = Field(False, description="Page ceiling reached")
