"""Tests for the Lambda entry points."""

from unittest.mock import AsyncMock, MagicMock, patch

from mangum import Mangum

from mailgun_sync import lambda_handler


def test_http_handler_wraps_app() -> None:
    assert isinstance(lambda_handler.handler, Mangum)


def test_job_handler_runs_due_jobs() -> None:
    runner = MagicMock()
    runner.run_due_jobs = AsyncMock(return_value={"complete": 2, "broken": 0, "skipped": 1})

    with patch("mailgun_sync.lambda_handler.JobRunner", return_value=runner):
        result = lambda_handler.job_handler({}, None)

    assert result == {"complete": 2, "broken": 0, "skipped": 1}
    runner.run_due_jobs.assert_awaited_once()
