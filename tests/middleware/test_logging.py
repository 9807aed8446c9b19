"""Tests for logging middleware."""

import contextlib
import json
import logging
import sys
import uuid
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from mailgun_sync.logging.config import JSONFormatter, configure_logging
from mailgun_sync.middleware.logging import LoggingMiddleware


@pytest.fixture
def app_with_logging() -> FastAPI:
    """Create a test FastAPI app with logging middleware."""
    app = FastAPI()
    app.add_middleware(LoggingMiddleware)

    @app.get("/test")
    async def test_endpoint(request: Request) -> dict[str, str]:
        """Test endpoint that returns correlation ID."""
        return {"correlation_id": request.state.correlation_id}

    @app.get("/error")
    async def error_endpoint() -> None:
        """Test endpoint that raises an exception."""
        raise ValueError("Test error")

    return app


@pytest.mark.asyncio
async def test_logging_middleware_adds_correlation_id(
    app_with_logging: FastAPI,
) -> None:
    """Test that middleware adds correlation ID to request state."""
    transport = ASGITransport(app=app_with_logging)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/test")

    assert response.status_code == 200
    data = response.json()
    uuid.UUID(data["correlation_id"])
    assert response.headers["x-request-id"] == data["correlation_id"]


@pytest.mark.asyncio
async def test_logging_middleware_uses_existing_correlation_id(
    app_with_logging: FastAPI,
) -> None:
    """Test that middleware uses X-Request-ID header if provided."""
    correlation_id = str(uuid.uuid4())
    transport = ASGITransport(app=app_with_logging)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/test", headers={"X-Request-ID": correlation_id})

    assert response.json()["correlation_id"] == correlation_id
    assert response.headers["x-request-id"] == correlation_id


@pytest.mark.asyncio
async def test_logging_middleware_logs_request_and_response(
    app_with_logging: FastAPI,
) -> None:
    """Test that middleware logs request start and completion."""
    with patch("mailgun_sync.middleware.logging.logger") as mock_logger:
        transport = ASGITransport(app=app_with_logging)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.get("/test")

    first_call, last_call = mock_logger.info.call_args_list[0], mock_logger.info.call_args_list[-1]
    assert "Request started" in first_call[0]
    assert first_call[1]["extra"]["context"]["method"] == "GET"
    assert first_call[1]["extra"]["context"]["path"] == "/test"
    assert "Request completed" in last_call[0]
    assert last_call[1]["extra"]["context"]["status_code"] == 200
    assert last_call[1]["extra"]["context"]["response_time_ms"] >= 0


@pytest.mark.asyncio
async def test_logging_middleware_logs_errors(
    app_with_logging: FastAPI,
) -> None:
    """Test that middleware logs exceptions."""
    with patch("mailgun_sync.middleware.logging.logger") as mock_logger:
        transport = ASGITransport(app=app_with_logging)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            with contextlib.suppress(Exception):
                await client.get("/error")

    error_call = mock_logger.error.call_args_list[0]
    assert "Request failed with exception" in error_call[0]
    assert "exc_info" in error_call[1]


def test_json_formatter_output() -> None:
    """Test that JSONFormatter produces valid JSON with context fields."""
    log_stream = StringIO()
    handler = logging.StreamHandler(log_stream)
    handler.setFormatter(JSONFormatter())

    logger = logging.getLogger("test_json_logger")
    logger.handlers = [handler]
    logger.setLevel(logging.INFO)
    logger.propagate = False

    logger.info(
        "Test message",
        extra={"correlation_id": "test-correlation-id", "context": {"event_key": "abc"}},
    )

    log_data = json.loads(log_stream.getvalue().strip())
    assert log_data["level"] == "INFO"
    assert log_data["message"] == "Test message"
    assert log_data["correlation_id"] == "test-correlation-id"
    assert log_data["event_key"] == "abc"
    assert "timestamp" in log_data
    assert "logger" in log_data


def test_json_formatter_serializes_decimals() -> None:
    """Test that DynamoDB Decimals in context do not break formatting."""
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    record.context = {"event_timestamp": Decimal("1792371100.908181")}

    log_data = json.loads(JSONFormatter().format(record))

    assert log_data["event_timestamp"] == "1792371100.908181"
    assert log_data["message"] == "msg"


def test_json_formatter_includes_exception_info() -> None:
    """Test that JSONFormatter includes exception details."""
    try:
        raise ValueError("Test exception")
    except ValueError:
        record = logging.LogRecord(
            "x", logging.ERROR, __file__, 1, "Error occurred", None, sys.exc_info()
        )

    log_data = json.loads(JSONFormatter().format(record))

    assert "ValueError" in log_data["exception"]
    assert "Test exception" in log_data["exception"]


def test_configure_logging_sets_level(settings_factory) -> None:
    """Test that configure_logging applies the configured level."""
    configure_logging(settings_factory(log_level="WARNING"))
    try:
        assert logging.getLogger().level == logging.WARNING
    finally:
        configure_logging(settings_factory(log_level="INFO"))


def test_json_formatter_keeps_reserved_fields() -> None:
    """Test that context keys cannot overwrite the record's own fields."""
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "stored", None, None)
    record.context = {"message": "spoofed", "level": "DEBUG", "event_type": "failed"}

    log_data = json.loads(JSONFormatter(service="Mailgun Sync").format(record))

    assert log_data["message"] == "stored"
    assert log_data["level"] == "INFO"
    assert log_data["context_message"] == "spoofed"
    assert log_data["context_level"] == "DEBUG"
    assert log_data["event_type"] == "failed"
    assert log_data["service"] == "Mailgun Sync"


def test_json_formatter_adds_location_at_debug() -> None:
    """Test that DEBUG records carry their source location."""
    record = logging.LogRecord("x", logging.DEBUG, "/app/jobs.py", 42, "tick", None, None)

    log_data = json.loads(JSONFormatter().format(record))

    assert log_data["location"].startswith("/app/jobs.py:42")
    assert "service" not in log_data


def test_configure_logging_quiets_dependencies(settings_factory) -> None:
    """Test that AWS and HTTP client loggers stay at WARNING outside DEBUG."""
    configure_logging(settings_factory(log_level="INFO"))

    assert logging.getLogger("botocore").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
    assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)


def test_configure_logging_unknown_level_falls_back_to_info(settings_factory) -> None:
    """Test that an unrecognised level name does not break startup."""
    configure_logging(settings_factory(log_level="chatty"))
    try:
        assert logging.getLogger().level == logging.INFO
    finally:
        configure_logging(settings_factory(log_level="INFO"))
