"""Deferred job record stored in DynamoDB."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Lifecycle of a deferred job."""

    NEW = "new"
    RUNNING = "running"
    COMPLETE = "complete"
    BROKEN = "broken"
    CANCELLED = "cancelled"


class JobRecord(BaseModel):
    """
    A queued unit of background work.

    Attributes:
        job_id: Unique identifier (UUID v4)
        job_type: Registered job type, e.g. "send"
        job_status: Current status
        signature: Dedup key; no two new jobs share one
        title: Human-readable title
        start_after: ISO 8601 time before which the job is not dequeued
        data: Job payload
        messages: Log lines recorded while processing
        created_at: ISO 8601 timestamp of record creation
        updated_at: ISO 8601 timestamp of last update
    """

    job_id: str = Field(..., description="Job identifier (UUID)")
    job_type: str = Field(..., description="Job type")
    job_status: JobStatus = Field(JobStatus.NEW, description="Job status")
    signature: str = Field(..., description="Dedup signature")
    title: str = Field("", description="Job title")
    start_after: str = Field(..., description="Earliest start time (ISO 8601)")
    data: dict[str, Any] = Field(default_factory=dict, description="Job payload")
    messages: list[str] = Field(default_factory=list, description="Processing log")
    created_at: str = Field(..., description="ISO 8601 creation timestamp")
    updated_at: str = Field(..., description="ISO 8601 update timestamp")
