"""Custom exception classes for Mailgun Sync."""

from typing import Any


class MailgunSyncError(Exception):
    """Base exception for Mailgun Sync."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            details: Additional error details (logged, never returned to callers)
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class WebhookError(MailgunSyncError):
    """Base for webhook outcomes that map onto an HTTP status code."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize WebhookError.

        Args:
            message: Error message
            status_code: HTTP status code, defaults to the class status code
            details: Additional error details
        """
        super().__init__(message, details)
        if status_code is not None:
            self.status_code = status_code


class WebhookClientError(WebhookError):
    """Malformed or unauthenticated webhook request (400)."""

    status_code = 400


class WebhookServerError(WebhookError):
    """Local transient fault while handling a webhook (503)."""

    status_code = 503


class WebhookNotAcceptableError(WebhookError):
    """Permanent rejection; the provider stops retrying (406)."""

    status_code = 406


class ConfigurationError(MailgunSyncError):
    """Raised when a required setting (signing key, API key, domain) is missing."""


class ProviderError(MailgunSyncError):
    """Raised when a call to the provider API fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize ProviderError.

        Args:
            message: Error message
            status_code: HTTP status returned by the provider, None for transport errors
            details: Additional error details
        """
        super().__init__(message, details)
        self.status_code = status_code


class PollError(ProviderError):
    """Raised when an event search against the provider fails."""


class ResubmitError(MailgunSyncError):
    """Raised when a message cannot be resubmitted."""

    NO_RECIPIENT = "no-recipient"
    NO_MESSAGE_ID = "no-message-id"
    NO_CONTENT = "no-content"
    ALREADY_DELIVERED = "already-delivered"
    DELIVERY_CHECK_FAILED = "delivery-check-failed"
    TOO_MANY_FAILURES = "too-many-failures"
    NOT_RESUBMITTABLE = "not-resubmittable"
    SEND_FAILED = "send-failed"

    def __init__(
        self,
        message: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize ResubmitError.

        Args:
            message: Error message
            reason: One of the reason constants on this class
            details: Additional error details
        """
        error_details = details or {}
        error_details["reason"] = reason
        super().__init__(message, error_details)
        self.reason = reason


class JobProcessingError(MailgunSyncError):
    """Raised when a deferred job cannot be processed."""


class InvalidAddressError(MailgunSyncError):
    """Raised when an email address is rejected before calling the provider."""


class StorageError(MailgunSyncError):
    """Raised when a write to the event store fails."""
