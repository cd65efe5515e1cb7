"""
Error response models.

Sandi Metz Principles:
- Small classes with clear purpose
- Consistent error handling
- Clear naming conventions
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standard error codes for API responses."""

    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    CONTENT_VIOLATION = "content_violation"
    QUEUE_SATURATED = "queue_saturated"
    SERVICE_UNAVAILABLE = "service_unavailable"
    JOB_NOT_FOUND = "job_not_found"
    BATCH_NOT_FOUND = "batch_not_found"
    BATCH_TOO_LARGE = "batch_too_large"
    INVALID_TRANSITION = "invalid_transition"
    INTERNAL_ERROR = "internal_error"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    detail: str = Field(..., description="Error message describing what went wrong")
    error_code: ErrorCode = Field(..., description="Standard error code")
    reset_at: Optional[datetime] = Field(None, description="When to retry (UTC)")
    retry_after: Optional[int] = Field(None, ge=0, description="Seconds to wait")
    categories: List[str] = Field(
        default_factory=list, description="Content policy categories"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Error timestamp (ISO 8601)",
    )

    @classmethod
    def job_not_found(cls, job_id: str) -> "ErrorResponse":
        """Create job not found error."""
        return cls(detail=f"Job not found: {job_id}", error_code=ErrorCode.JOB_NOT_FOUND)

    @classmethod
    def batch_not_found(cls, batch_id: str) -> "ErrorResponse":
        """Create batch not found error."""
        return cls(
            detail=f"Batch not found: {batch_id}", error_code=ErrorCode.BATCH_NOT_FOUND
        )

    @classmethod
    def batch_too_large(cls, detail: str) -> "ErrorResponse":
        """Create oversized batch error."""
        return cls(detail=detail, error_code=ErrorCode.BATCH_TOO_LARGE)

    @classmethod
    def service_unavailable(cls, detail: str) -> "ErrorResponse":
        """Create storage outage error."""
        return cls(detail=detail, error_code=ErrorCode.SERVICE_UNAVAILABLE, retry_after=5)

    @classmethod
    def invalid_transition(cls, detail: str) -> "ErrorResponse":
        """Create invalid state transition error."""
        return cls(detail=detail, error_code=ErrorCode.INVALID_TRANSITION)

    @classmethod
    def internal_error(cls, detail: Optional[str] = None) -> "ErrorResponse":
        """Create internal server error."""
        return cls(
            detail=detail or "Internal server error",
            error_code=ErrorCode.INTERNAL_ERROR,
        )

    @classmethod
    def rejection(
        cls,
        code: ErrorCode,
        detail: str,
        reset_at: Optional[datetime] = None,
        retry_after: Optional[int] = None,
        categories: Optional[List[str]] = None,
    ) -> "ErrorResponse":
        """Create admission rejection error."""
        return cls(
            detail=detail,
            error_code=code,
            reset_at=reset_at,
            retry_after=retry_after,
            categories=categories or [],
        )
