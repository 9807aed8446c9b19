"""Configuration management using Pydantic Settings."""

import os
from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SendViaJob(str, Enum):
    """Policy for handing outbound messages to a deferred job."""

    ALWAYS = "always"
    NEVER = "never"
    WHEN_ATTACHMENTS = "when-attachments"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Only load .env file in development (not Lambda/production)
        env_file=".env" if os.getenv("AWS_EXECUTION_ENV") is None else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AWS Configuration
    aws_region: str = "ap-southeast-2"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None  # Required for temporary credentials

    @field_validator(
        "aws_access_key_id", "aws_secret_access_key", "aws_session_token", mode="before"
    )
    @classmethod
    def convert_empty_string_to_none(cls, v):
        """Convert empty strings to None so boto3 can use IAM role in Lambda."""
        if v is None:
            return None
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    # DynamoDB / S3 Configuration
    dynamodb_endpoint_url: str | None = None
    s3_endpoint_url: str | None = None
    dynamodb_table_events: str = "mailgun-events"
    dynamodb_table_submissions: str = "mailgun-submissions"
    dynamodb_table_jobs: str = "mailgun-jobs"
    mime_bucket: str = "mailgun-mime"

    # Application Configuration
    log_level: str = "INFO"
    api_title: str = "Mailgun Sync"
    api_version: str = "1.0.0"
    max_request_size_bytes: int = 512 * 1024  # 512KB

    # Provider API
    mailgun_api_key: str = ""
    mailgun_domain: str = ""
    mailgun_region: str = ""  # "" for the default endpoint, "eu" for the EU endpoint
    mailgun_timeout_seconds: float = 30.0

    # Sending
    api_testmode: bool = False
    always_set_sender: bool = True
    send_via_job: SendViaJob = SendViaJob.WHEN_ATTACHMENTS
    default_recipient: str = ""
    stripped_headers: list[str] = [
        "X-Request-ID",
        "X-Correlation-ID",
        "X-Site-ID",
        "X-Originating-Script",
    ]

    @field_validator("send_via_job", mode="before")
    @classmethod
    def convert_legacy_send_via_job(cls, v):
        """Accept the legacy yes/no values."""
        if isinstance(v, str):
            legacy = {"yes": SendViaJob.ALWAYS, "no": SendViaJob.NEVER}
            return legacy.get(v.strip().lower(), v)
        return v

    # Webhooks
    webhooks_enabled: bool = True
    webhook_signing_key: str = ""
    webhook_filter_variable: str = ""
    webhook_previous_filter_variable: str = ""

    # Resubmission
    max_failures: int = 3
    sync_local_mime: bool = False
    resubmit_failures: int = 2

    # Jobs
    delivery_check_time_of_day: str = "13:00:00"
    failed_events_time_of_day: str = "11:00:00"
    event_retention_days: int = 30
    truncate_days: int = 90
    truncate_interval_seconds: int = 86400
    event_poll_page_limit: int = 300
    event_poll_max_pages: int = 100


# Global settings instance
settings = Settings()
