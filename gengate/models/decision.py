"""
Admission decision models.

Sandi Metz Principles:
- Small classes with clear purpose
- Denials are values, not exceptions
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from gengate.models.artifact import Artifact
from gengate.models.ratelimit import RateLimitInfo


class RejectionReason(str, Enum):
    """Machine-readable rejection reason codes."""

    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    CONTENT_VIOLATION = "content_violation"
    QUEUE_SATURATED = "queue_saturated"
    SERVICE_UNAVAILABLE = "service_unavailable"

    @property
    def is_retryable(self) -> bool:
        """Check if the caller may retry later with the same content."""
        return self is not RejectionReason.CONTENT_VIOLATION


class RestrictionDecision(BaseModel):
    """Synchronous result of admission evaluation."""

    allowed: bool = Field(..., description="Whether the request may proceed")
    reason: Optional[RejectionReason] = Field(None, description="Rejection reason")
    cached_artifact: Optional[Artifact] = Field(
        None, description="Artifact served from cache"
    )
    quota_remaining: Optional[int] = Field(
        None, ge=0, description="Long-period units remaining"
    )
    reset_at: Optional[datetime] = Field(
        None, description="When the violated window resets"
    )
    retry_after: Optional[int] = Field(
        None, ge=0, description="Suggested backoff in seconds"
    )
    categories: List[str] = Field(
        default_factory=list, description="Content policy categories"
    )
    fingerprint: Optional[str] = Field(None, description="Request fingerprint")
    rate_limit: Optional[RateLimitInfo] = Field(
        None, description="Short-window usage for response headers"
    )
    reservations: List[str] = Field(
        default_factory=list,
        exclude=True,
        description="Counter keys consumed by this admission",
    )

    @model_validator(mode="after")
    def validate_reason(self) -> "RestrictionDecision":
        """Denials must carry a reason; admissions must not."""
        if not self.allowed and self.reason is None:
            raise ValueError("denied decision requires a reason")
        if self.allowed and self.reason is not None:
            raise ValueError("allowed decision cannot carry a reason")
        return self

    @classmethod
    def admit(
        cls,
        fingerprint: Optional[str],
        quota_remaining: Optional[int] = None,
        rate_limit: Optional[RateLimitInfo] = None,
        reservations: Optional[List[str]] = None,
    ) -> "RestrictionDecision":
        """Create admission that should proceed to enqueue."""
        return cls(
            allowed=True,
            fingerprint=fingerprint,
            quota_remaining=quota_remaining,
            rate_limit=rate_limit,
            reservations=reservations or [],
        )

    @classmethod
    def serve_cached(cls, fingerprint: str, artifact: Artifact) -> "RestrictionDecision":
        """Create admission served from cache."""
        return cls(allowed=True, fingerprint=fingerprint, cached_artifact=artifact)

    @classmethod
    def reject(
        cls,
        reason: RejectionReason,
        fingerprint: Optional[str] = None,
        reset_at: Optional[datetime] = None,
        retry_after: Optional[int] = None,
        quota_remaining: Optional[int] = None,
        categories: Optional[List[str]] = None,
        rate_limit: Optional[RateLimitInfo] = None,
    ) -> "RestrictionDecision":
        """Create rejection."""
        return cls(
            allowed=False,
            reason=reason,
            fingerprint=fingerprint,
            reset_at=reset_at,
            retry_after=retry_after,
            quota_remaining=quota_remaining,
            categories=categories or [],
            rate_limit=rate_limit,
        )

    @property
    def is_cache_hit(self) -> bool:
        """Check if decision served a cached artifact."""
        return self.allowed and self.cached_artifact is not None

    @property
    def should_enqueue(self) -> bool:
        """Check if caller should proceed to enqueue."""
        return self.allowed and self.cached_artifact is None
