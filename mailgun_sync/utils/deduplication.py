"""
Fingerprints used to deduplicate events and deferred jobs.

Events are unique on (message id, timestamp, recipient, event type); the
fingerprint of that tuple is the event table's partition key, so a second
write of the same event fails its conditional put instead of adding a row.
"""

import hashlib
import json
from decimal import Decimal, InvalidOperation
from typing import Any

TIMESTAMP_QUANTUM = Decimal("0.000001")


def normalize_timestamp(timestamp: Decimal | float | int | str) -> Decimal:
    """
    Normalize a provider timestamp to microsecond precision.

    Args:
        timestamp: Seconds since the epoch, possibly fractional

    Returns:
        Decimal quantized to six decimal places

    Raises:
        ValueError: If the timestamp is not a finite number
    """
    try:
        value = Decimal(str(timestamp)).quantize(TIMESTAMP_QUANTUM)
    except InvalidOperation as e:
        raise ValueError(f"Invalid timestamp: {timestamp!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid timestamp: {timestamp!r}")
    return value


def event_fingerprint(
    message_id: str, timestamp: Decimal | float, recipient: str, event_type: str
) -> str:
    """
    Generate the dedup key for an event.

    Args:
        message_id: Cleaned provider message id (may be empty)
        timestamp: Event timestamp
        recipient: Recipient address
        event_type: Event type value

    Returns:
        SHA256 hash of the dedup tuple
    """
    content = json.dumps(
        [
            message_id or "",
            f"{normalize_timestamp(timestamp):f}",
            (recipient or "").lower(),
            event_type,
        ]
    )
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def payload_signature(domain: str, parameters: dict[str, Any]) -> str:
    """
    Generate the signature of a deferred send.

    Args:
        domain: Sending domain
        parameters: Send API parameters (attachments already encoded)

    Returns:
        SHA256 hash of domain and serialized parameters
    """
    content = json.dumps(
        {"domain": domain, "parameters": parameters}, sort_keys=True, default=str
    )
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
