"""
Async client for the Mailgun HTTP API.

Covers the calls the sync engine needs: sending (structured and raw MIME),
event search with cursor pagination, stored message retrieval and the
bounce suppression list.
"""

from typing import Any

import httpx

from mailgun_sync.config import Settings, settings
from mailgun_sync.exceptions import ConfigurationError, ProviderError
from mailgun_sync.logging.config import get_logger
from mailgun_sync.schemas.events import EventPage
from mailgun_sync.schemas.message import ImmediateSend
from mailgun_sync.utils.message_id import clean_message_id

logger = get_logger(__name__)

API_ENDPOINT_DEFAULT = "https://api.mailgun.net"
API_ENDPOINT_EU = "https://api.eu.mailgun.net"


def api_endpoint(region: str) -> str:
    """Base URL for a region ("" or "eu")."""
    return API_ENDPOINT_EU if region.strip().lower() == "eu" else API_ENDPOINT_DEFAULT


def _form_fields(params: dict[str, Any]) -> dict[str, Any]:
    """
    Convert send parameters to multipart form fields.

    Lists become repeated fields, booleans become yes/no.
    """
    fields: dict[str, Any] = {}
    for name, value in params.items():
        if name == "attachment" or value is None:
            continue
        if isinstance(value, bool):
            fields[name] = "yes" if value else "no"
        elif isinstance(value, list | tuple):
            fields[name] = [str(v) for v in value]
        else:
            fields[name] = str(value)
    return fields


def _attachment_files(params: dict[str, Any]) -> list[tuple[str, tuple[str, bytes, str]]]:
    files = []
    for attachment in params.get("attachment") or []:
        files.append(
            (
                "attachment",
                (
                    attachment.get("filename") or "attachment",
                    attachment["fileContent"],
                    attachment.get("mimetype") or "application/octet-stream",
                ),
            )
        )
    return files


class MailgunClient:
    """
    Async client for the Mailgun API.

    Every request uses a bounded timeout; transport failures and non-2xx
    responses raise ProviderError.
    """

    def __init__(
        self,
        config: Settings | None = None,
        domain: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Settings holding API key, domain, region and timeout
            domain: Sending domain, overrides the configured one
            transport: Optional httpx transport (tests use httpx.MockTransport)

        Raises:
            ConfigurationError: If no API key or domain is configured
        """
        self.config = config or settings
        self.domain = domain or self.config.mailgun_domain
        if not self.config.mailgun_api_key:
            raise ConfigurationError("Mailgun API key is not configured")
        if not self.domain:
            raise ConfigurationError("Mailgun sending domain is not configured")

        self.base_url = api_endpoint(self.config.mailgun_region)
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=("api", self.config.mailgun_api_key),
            timeout=self.config.mailgun_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "MailgunClient":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Context manager exit."""
        await self.close()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(
                "Mailgun request failed",
                extra={"context": {"method": method, "url": url, "error": str(e)}},
            )
            raise ProviderError(f"Mailgun request failed: {e}") from e

        if response.status_code >= 400:
            logger.warning(
                "Mailgun returned an error",
                extra={
                    "context": {
                        "method": method,
                        "url": url,
                        "status_code": response.status_code,
                    }
                },
            )
            raise ProviderError(
                f"Mailgun returned HTTP {response.status_code}",
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )
        return response

    def _send_response(self, response: httpx.Response) -> ImmediateSend:
        body = response.json()
        message_id = clean_message_id(body.get("id"))
        if not message_id:
            raise ProviderError("Mailgun accepted the message without an id")
        return ImmediateSend(message_id=message_id, message=body.get("message", ""))

    async def send_message(self, params: dict[str, Any]) -> ImmediateSend:
        """
        Send a message through the structured send API.

        Args:
            params: Send API parameters; `attachment` entries hold raw bytes

        Returns:
            ImmediateSend with the cleaned message id
        """
        response = await self._request(
            "POST",
            f"/v3/{self.domain}/messages",
            data=_form_fields(params),
            files=_attachment_files(params) or None,
        )
        return self._send_response(response)

    async def send_mime(
        self, recipients: list[str], mime: bytes, params: dict[str, Any] | None = None
    ) -> ImmediateSend:
        """
        Send raw MIME content.

        Args:
            recipients: Envelope recipients (resubmits use exactly one)
            mime: Raw MIME message
            params: Extra `o:`/`h:`/`v:` parameters

        Returns:
            ImmediateSend with the cleaned message id
        """
        fields = _form_fields(params or {})
        fields["to"] = ",".join(recipients)
        response = await self._request(
            "POST",
            f"/v3/{self.domain}/messages.mime",
            data=fields,
            files={"message": ("message.mime", mime, "message/rfc822")},
        )
        return self._send_response(response)

    def _event_page(self, response: httpx.Response) -> EventPage:
        body = response.json()
        return EventPage(
            items=body.get("items") or [],
            next_url=(body.get("paging") or {}).get("next"),
        )

    async def get_events(self, params: dict[str, Any]) -> EventPage:
        """
        First page of an event search.

        Args:
            params: Search parameters (ascending, begin, event, limit, filters)

        Returns:
            EventPage with items and next page URL
        """
        response = await self._request("GET", f"/v3/{self.domain}/events", params=params)
        return self._event_page(response)

    async def get_page(self, url: str) -> EventPage:
        """Follow a pagination URL returned with a previous page."""
        response = await self._request("GET", url)
        return self._event_page(response)

    async def get_stored_message(self, storage_url: str) -> bytes:
        """
        Download the raw MIME of a stored message.

        Args:
            storage_url: Storage URL from an event (absolute)

        Returns:
            Raw MIME bytes

        Raises:
            ProviderError: If the message is gone or has no MIME body
        """
        response = await self._request(
            "GET", storage_url, headers={"Accept": "message/rfc2822"}
        )
        body = response.json()
        mime = body.get("body-mime")
        if not mime:
            raise ProviderError("Stored message has no MIME content")
        return mime.encode("utf-8")

    async def add_bounce(self, address: str, params: dict[str, Any]) -> dict[str, Any]:
        """
        Add an address to the bounce suppression list.

        Args:
            address: Email address
            params: code, error and created_at

        Returns:
            Provider response body
        """
        response = await self._request(
            "POST",
            f"/v3/{self.domain}/bounces",
            data=_form_fields({"address": address, **params}),
        )
        return response.json()

    async def delete_bounce(self, address: str) -> dict[str, Any]:
        response = await self._request("DELETE", f"/v3/{self.domain}/bounces/{address}")
        return response.json()
