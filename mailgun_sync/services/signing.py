"""Webhook signature verification."""

import hashlib
import hmac
from typing import Any

from mailgun_sync.config import Settings, settings
from mailgun_sync.exceptions import ConfigurationError

TOKEN_LENGTH = 50


class SigningVerifier:
    """Validates provider callbacks with the shared webhook signing key."""

    def __init__(self, config: Settings | None = None) -> None:
        """
        Initialize SigningVerifier.

        Args:
            config: Settings holding the webhook signing key
        """
        self.config = config or settings

    def sign(self, timestamp: str, token: str) -> str:
        """
        Compute the expected signature for a timestamp and token.

        Args:
            timestamp: Timestamp as sent by the provider
            token: Random token as sent by the provider

        Returns:
            Hex HMAC-SHA256 of timestamp + token

        Raises:
            ConfigurationError: If no signing key is configured
        """
        key = self.config.webhook_signing_key
        if not key:
            raise ConfigurationError("Webhook signing key is not configured")
        return hmac.new(
            key.encode("utf-8"),
            f"{timestamp}{token}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    @staticmethod
    def is_well_formed(signature: Any) -> bool:
        """All three fields present and the token has the expected length."""
        if not isinstance(signature, dict):
            return False
        timestamp = signature.get("timestamp")
        token = signature.get("token")
        expected = signature.get("signature")
        return (
            timestamp not in (None, "")
            and isinstance(token, str)
            and len(token) == TOKEN_LENGTH
            and isinstance(expected, str)
            and expected != ""
        )

    def verify(self, signature: Any) -> bool:
        """
        Verify a signature block.

        Malformed blocks are invalid, not errors.

        Args:
            signature: Dict with timestamp, token and signature

        Returns:
            True if the signature matches

        Raises:
            ConfigurationError: If no signing key is configured
        """
        if not self.config.webhook_signing_key:
            raise ConfigurationError("Webhook signing key is not configured")
        if not self.is_well_formed(signature):
            return False
        expected = self.sign(str(signature["timestamp"]), signature["token"])
        return hmac.compare_digest(
            expected.encode("utf-8"), signature["signature"].encode("utf-8")
        )
