"""Tests for BounceService."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from mailgun_sync.exceptions import InvalidAddressError
from mailgun_sync.services.bounce_service import BounceService, validate_address


class TestValidateAddress:
    """Tests for validate_address."""

    def test_valid_address_trimmed(self) -> None:
        assert validate_address("  alice@example.com ") == "alice@example.com"

    @pytest.mark.parametrize("address", ["", "alice", "alice@", "@example.com", "a b@x.com"])
    def test_invalid_addresses(self, address) -> None:
        with pytest.raises(InvalidAddressError):
            validate_address(address)


class TestBounceService:
    """Tests for adding and removing bounces."""

    @pytest.mark.asyncio
    async def test_add(self, config) -> None:
        client = AsyncMock()
        client.add_bounce.return_value = {"message": "1 address has been added"}
        service = BounceService(client=client, config=config)

        result = await service.add(
            "alice@example.com",
            code=552,
            error="Mailbox full",
            created_at=datetime(2026, 10, 19, 12, 0, tzinfo=UTC),
        )

        assert result == {"message": "1 address has been added"}
        address, params = client.add_bounce.await_args.args
        assert address == "alice@example.com"
        assert params["code"] == 552
        assert params["error"] == "Mailbox full"
        assert params["created_at"].startswith("Mon, 19 Oct 2026 12:00:00")

    @pytest.mark.asyncio
    async def test_add_defaults(self, config) -> None:
        client = AsyncMock()
        await BounceService(client=client, config=config).add("alice@example.com")
        assert client.add_bounce.await_args.args[1] == {"code": 550, "error": ""}

    @pytest.mark.asyncio
    async def test_add_invalid_address_makes_no_call(self, config) -> None:
        client = AsyncMock()
        with pytest.raises(InvalidAddressError):
            await BounceService(client=client, config=config).add("not-an-address")
        client.add_bounce.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove(self, config) -> None:
        client = AsyncMock()
        client.delete_bounce.return_value = {"message": "Bounced address has been removed"}

        result = await BounceService(client=client, config=config).remove("alice@example.com")

        client.delete_bounce.assert_awaited_once_with("alice@example.com")
        assert result["message"] == "Bounced address has been removed"
