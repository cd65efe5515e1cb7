"""
API response models.

Sandi Metz Principles:
- Small classes with clear purpose
- Immutable response data
- Clear naming conventions
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from gengate.models.artifact import Artifact
from gengate.models.decision import RejectionReason
from gengate.models.job import JobState
from gengate.models.ratelimit import RateLimitInfo
from gengate.models.statistics import (
    CacheStatistics,
    NotifierStatistics,
    QueueStatistics,
)


class SubmissionResponse(BaseModel):
    """Outcome of submitting a generation request."""

    status: Literal["cached", "accepted", "rejected"] = Field(
        ..., description="Submission outcome"
    )
    job_id: Optional[str] = Field(None, description="Job ID when accepted")
    state: Optional[JobState] = Field(None, description="Job state when accepted")
    artifact: Optional[Artifact] = Field(None, description="Artifact when cached")
    reason: Optional[RejectionReason] = Field(None, description="Rejection reason")
    reset_at: Optional[datetime] = Field(None, description="Window reset time")
    retry_after: Optional[int] = Field(None, ge=0, description="Suggested backoff")
    quota_remaining: Optional[int] = Field(None, ge=0, description="Quota remaining")
    categories: list[str] = Field(default_factory=list, description="Policy categories")
    fingerprint: Optional[str] = Field(None, description="Request fingerprint")
    correlation_id: str = Field(..., description="Correlation ID")
    rate_limit: Optional[RateLimitInfo] = Field(
        None, exclude=True, description="Short-window usage for response headers"
    )

    @property
    def from_cache(self) -> bool:
        """Check if submission was served from cache."""
        return self.status == "cached"

    @property
    def accepted(self) -> bool:
        """Check if a job was enqueued."""
        return self.status == "accepted"


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Service status")
    environment: str = Field(..., description="Environment name")
    version: str = Field(..., description="Application version")


class MetricsResponse(BaseModel):
    """Runtime counters."""

    cache: CacheStatistics = Field(..., description="Result cache counters")
    queue: QueueStatistics = Field(..., description="Job queue counters")
    notifications: NotifierStatistics = Field(..., description="Notifier counters")
    workers: int = Field(..., ge=0, description="Running workers")


class QueueOverview(BaseModel):
    """Queue load and wait estimate for callers."""

    queued: int = Field(..., ge=0, description="Jobs waiting for a worker")
    active: int = Field(..., ge=0, description="Jobs being generated")
    max_concurrent: int = Field(..., ge=0, description="Worker count")
    current_concurrent: int = Field(..., ge=0, description="Busy workers")
    estimated_wait_seconds: int = Field(
        ..., ge=0, description="Expected wait before a new job starts"
    )
    processing_rate_per_minute: float = Field(
        ..., ge=0.0, description="Expected jobs finished per minute"
    )
