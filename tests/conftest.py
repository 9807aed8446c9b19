"""Shared fixtures for Mailgun Sync tests."""

import hashlib
import hmac
import uuid
from collections.abc import Callable, Generator
from typing import Any

import pytest
from moto.server import ThreadedMotoServer

from infrastructure.dynamodb_tables import create_all
from mailgun_sync.config import Settings

SIGNING_KEY = "key-test-signing-0123456789"
TOKEN = "t" * 50
MOTO_PORT = 5123


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values: dict[str, Any] = {
        "aws_region": "us-east-1",
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "mailgun_api_key": "key-test",
        "mailgun_domain": "mg.example.com",
        "webhook_signing_key": SIGNING_KEY,
        "webhook_filter_variable": "",
        "webhook_previous_filter_variable": "",
        "send_via_job": "when-attachments",
        "api_testmode": False,
        "sync_local_mime": False,
        "default_recipient": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_signature(
    timestamp: str = "1792371100", token: str = TOKEN, key: str = SIGNING_KEY
) -> dict[str, str]:
    """Signature block as the provider would send it."""
    digest = hmac.new(
        key.encode("utf-8"), f"{timestamp}{token}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return {"timestamp": timestamp, "token": token, "signature": digest}


def make_event_data(
    event: str = "failed",
    message_id: str = "<20261019005140.1.ABC123@mg.example.com>",
    recipient: str = "alice@example.com",
    timestamp: float = 1792371100.908181,
    **extra: Any,
) -> dict[str, Any]:
    """Provider event-data object."""
    data: dict[str, Any] = {
        "id": uuid.uuid4().hex[:22],
        "event": event,
        "timestamp": timestamp,
        "recipient": recipient,
        "message": {"headers": {"message-id": message_id}},
        "tags": [],
        "user-variables": {},
    }
    if event == "failed":
        data["severity"] = "permanent"
        data["reason"] = "bounce"
        data["delivery-status"] = {
            "message": "Mailbox does not exist",
            "code": 550,
            "attempt-no": 1,
            "session-seconds": 0.4,
            "mx-host": "mx.example.com",
        }
        data["storage"] = {
            "url": "https://storage.api.mailgun.net/v3/domains/mg.example.com/messages/KEY"
        }
    data.update(extra)
    return data


@pytest.fixture
def config() -> Settings:
    """Default test settings."""
    return make_settings()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Build settings with overrides."""
    return make_settings


@pytest.fixture
def event_data_factory() -> Callable[..., dict[str, Any]]:
    """Build provider event-data objects."""
    return make_event_data


@pytest.fixture
def signature_factory() -> Callable[..., dict[str, str]]:
    """Build signature blocks signed with the test key."""
    return make_signature


@pytest.fixture(scope="session")
def moto_server() -> Generator[str, None, None]:
    """Moto server shared by the repository tests (aioboto3 needs a real endpoint)."""
    server = ThreadedMotoServer(ip_address="127.0.0.1", port=MOTO_PORT)
    server.start()
    yield f"http://127.0.0.1:{MOTO_PORT}"
    server.stop()


@pytest.fixture
async def aws_config(moto_server: str) -> Settings:
    """Settings pointing at fresh tables and a fresh bucket on the moto server."""
    suffix = uuid.uuid4().hex[:8]
    config = make_settings(
        dynamodb_endpoint_url=moto_server,
        s3_endpoint_url=moto_server,
        dynamodb_table_events=f"events-{suffix}",
        dynamodb_table_submissions=f"submissions-{suffix}",
        dynamodb_table_jobs=f"jobs-{suffix}",
        mime_bucket=f"mime-{suffix}",
    )
    await create_all(config)
    return config
