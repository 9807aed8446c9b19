"""Provider bounce (suppression) list management."""

import re
from datetime import datetime
from typing import Any

from mailgun_sync.clients.mailgun import MailgunClient
from mailgun_sync.config import Settings, settings
from mailgun_sync.exceptions import InvalidAddressError
from mailgun_sync.logging.config import get_logger
from mailgun_sync.utils.dates import rfc2822

logger = get_logger(__name__)

ADDRESS_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_address(address: str) -> str:
    """
    Check an address has the basic local@domain.tld shape.

    Raises:
        InvalidAddressError: If it does not
    """
    address = (address or "").strip()
    if not ADDRESS_PATTERN.match(address):
        raise InvalidAddressError(f"Invalid email address: {address!r}")
    return address


class BounceService:
    """Adds and removes addresses on the provider's bounce list."""

    def __init__(self, client: MailgunClient | None = None, config: Settings | None = None) -> None:
        self.config = config or settings
        self.client = client or MailgunClient(self.config)

    async def add(
        self,
        address: str,
        code: int = 550,
        error: str = "",
        created_at: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Suppress delivery to an address.

        Args:
            address: Email address
            code: SMTP error code recorded with the bounce
            error: Error text recorded with the bounce
            created_at: Bounce time (defaults to the provider's now)

        Returns:
            Provider response body

        Raises:
            InvalidAddressError: If the address is malformed
            ProviderError: If the provider call fails
        """
        address = validate_address(address)
        params: dict[str, Any] = {"code": code, "error": error}
        if created_at is not None:
            params["created_at"] = rfc2822(created_at)
        result = await self.client.add_bounce(address, params)
        logger.info("Bounce added", extra={"context": {"address": address, "code": code}})
        return result

    async def remove(self, address: str) -> dict[str, Any]:
        """Lift the suppression for an address."""
        address = validate_address(address)
        result = await self.client.delete_bounce(address)
        logger.info("Bounce removed", extra={"context": {"address": address}})
        return result
