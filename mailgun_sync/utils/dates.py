"""Date helpers shared by the event store, poller and jobs."""

from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from email.utils import format_datetime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """
    Format a datetime as a fixed-width ISO 8601 UTC string.

    The fixed width keeps stored values lexicographically sortable.

    Args:
        value: Aware or naive (assumed UTC) datetime

    Returns:
        String such as "2026-10-19T13:00:00.000000Z"
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def rfc2822(value: datetime) -> str:
    """Format a datetime the way the provider's event search expects."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return format_datetime(value.astimezone(UTC))


def from_timestamp(timestamp: Decimal | float) -> datetime:
    """Convert a provider event timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(float(timestamp), tz=UTC)


def utc_date(timestamp: Decimal | float) -> str:
    """UTC calendar date (YYYY-MM-DD) of a provider event timestamp."""
    return from_timestamp(timestamp).date().isoformat()


def days_ago(days: int, now: datetime | None = None) -> date:
    """UTC date that lies `days` days before now."""
    now = now or utc_now()
    return (now - timedelta(days=days)).date()


def next_time_of_day(time_of_day: str, now: datetime | None = None) -> datetime:
    """
    Next occurrence of a HH:MM[:SS] time of day, in UTC.

    Today at that time if it is still ahead, otherwise tomorrow.

    Args:
        time_of_day: Time such as "13:00:00"
        now: Reference time (defaults to now)

    Returns:
        Aware UTC datetime of the next run
    """
    now = now or utc_now()
    at = time.fromisoformat(time_of_day)
    candidate = datetime.combine(now.date(), at, tzinfo=UTC)
    if now > candidate:
        candidate += timedelta(days=1)
    return candidate
