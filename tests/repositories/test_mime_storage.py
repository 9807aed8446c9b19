"""Tests for MimeStorage against a moto S3 server."""

import pytest

from mailgun_sync.repositories.mime_storage import MimeStorage


@pytest.fixture
def storage(aws_config) -> MimeStorage:
    return MimeStorage(aws_config)


@pytest.mark.asyncio
async def test_put_get_delete(storage) -> None:
    key = await storage.put("event-key", b"From: a@example.com\r\n\r\nHello")

    assert key.startswith("events/event-key/")
    assert key.endswith(".eml")
    assert await storage.exists(key) is True
    assert await storage.get(key) == b"From: a@example.com\r\n\r\nHello"

    await storage.delete(key)

    assert await storage.exists(key) is False
    assert await storage.get(key) is None


@pytest.mark.asyncio
async def test_each_put_gets_a_new_key(storage) -> None:
    first = await storage.put("event-key", b"one")
    second = await storage.put("event-key", b"two")

    assert first != second
    assert await storage.get(first) == b"one"


@pytest.mark.asyncio
async def test_empty_blob_does_not_count_as_existing(storage) -> None:
    key = await storage.put("event-key", b"")
    assert await storage.exists(key) is False


@pytest.mark.asyncio
async def test_missing_key(storage) -> None:
    assert await storage.get("events/none/missing.eml") is None
    assert await storage.exists("events/none/missing.eml") is False
