"""
Cache entry models.

Sandi Metz Principles:
- Single Responsibility: Cache data structure
- Clear naming: Descriptive fields
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from gengate.models.artifact import Artifact
from gengate.utils.clock import utc_now


class CacheEntry(BaseModel):
    """Cached artifact for a request fingerprint."""

    fingerprint: str = Field(..., description="Fingerprint of the normalized request")
    artifact: Artifact = Field(..., description="Cached artifact")
    created_at: datetime = Field(
        default_factory=utc_now, description="Cache entry creation time"
    )
    expires_at: datetime = Field(..., description="Expiry time")
    hit_count: int = Field(default=0, ge=0, description="Number of cache hits")

    @model_validator(mode="after")
    def validate_expiry(self) -> "CacheEntry":
        """Validate expires_at is after created_at."""
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        return self

    @classmethod
    def create(
        cls,
        fingerprint: str,
        artifact: Artifact,
        ttl_seconds: float,
        now: Optional[datetime] = None,
    ) -> "CacheEntry":
        """
        Create entry expiring ttl_seconds from now.

        Args:
            fingerprint: Fingerprint key
            artifact: Artifact to cache
            ttl_seconds: Time-to-live in seconds
            now: Creation time (defaults to current time)

        Returns:
            CacheEntry instance
        """
        created_at = now or utc_now()
        return cls(
            fingerprint=fingerprint,
            artifact=artifact,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl_seconds),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if entry has expired."""
        return (now or utc_now()) >= self.expires_at

    def ttl_remaining(self, now: Optional[datetime] = None) -> float:
        """Get remaining lifetime in seconds (0 when expired)."""
        delta = self.expires_at - (now or utc_now())
        return max(0.0, delta.total_seconds())

    @property
    def ttl_seconds(self) -> float:
        """Get configured lifetime in seconds."""
        return (self.expires_at - self.created_at).total_seconds()

    def increment_hit_count(self) -> None:
        """Increment cache hit counter."""
        self.hit_count += 1
