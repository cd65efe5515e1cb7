"""
Rate limiting and quota models.

Sandi Metz Principles:
- Small classes with clear purpose
- Immutable rate limit data
- Clear naming conventions
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from gengate.utils.clock import utc_now


class WindowConfig(BaseModel):
    """A counting window: at most `limit` units per `window_seconds`."""

    name: str = Field(..., description="Counter name (rate or quota)")
    limit: int = Field(..., ge=1, description="Units allowed per window")
    window_seconds: int = Field(..., ge=1, description="Window length in seconds")

    @classmethod
    def per_minute(cls, limit: int, name: str = "rate") -> "WindowConfig":
        """Create per-minute window."""
        return cls(name=name, limit=limit, window_seconds=60)

    @classmethod
    def per_day(cls, limit: int, name: str = "quota") -> "WindowConfig":
        """Create per-day window."""
        return cls(name=name, limit=limit, window_seconds=86400)

    def window_start(self, now: datetime) -> datetime:
        """
        Get start of the fixed window containing now.

        Windows are aligned to the Unix epoch.

        Args:
            now: Reference time (UTC)

        Returns:
            Window start time
        """
        epoch_seconds = int(now.timestamp())
        start = epoch_seconds - (epoch_seconds % self.window_seconds)
        return datetime.fromtimestamp(start, tz=timezone.utc)

    def reset_at(self, now: datetime) -> datetime:
        """Get when the window containing now rolls over."""
        return self.window_start(now) + timedelta(seconds=self.window_seconds)

    def counter_key(self, subject_id: str, now: datetime) -> str:
        """
        Build counter key for subject and window.

        Args:
            subject_id: Rate-limited actor
            now: Reference time

        Returns:
            Key unique to subject, counter name and window
        """
        start = int(self.window_start(now).timestamp())
        return f"counter:{self.name}:{subject_id}:{start}"


class QuotaState(BaseModel):
    """Usage of one counting window for one subject."""

    subject_id: str = Field(..., description="Rate-limited actor")
    window_usage: int = Field(..., ge=0, description="Units used in window")
    window_limit: int = Field(..., ge=1, description="Units allowed in window")
    window_reset_at: datetime = Field(..., description="When the window rolls over")

    @property
    def remaining(self) -> int:
        """Get remaining units."""
        return max(0, self.window_limit - self.window_usage)

    @property
    def is_exceeded(self) -> bool:
        """Check if no units remain."""
        return self.window_usage >= self.window_limit

    def seconds_until_reset(self, now: Optional[datetime] = None) -> int:
        """
        Get seconds until reset, rounded up.

        Returns:
            Seconds until reset (0 if already reset)
        """
        now = now or utc_now()
        if now >= self.window_reset_at:
            return 0
        delta = (self.window_reset_at - now).total_seconds()
        return int(delta) + (1 if delta % 1 else 0)


class WindowUsage(BaseModel):
    """Outcome of a check-and-increment against a window."""

    key: str = Field(..., description="Counter key")
    allowed: bool = Field(..., description="Whether a unit was acquired")
    state: QuotaState = Field(..., description="Window state after the attempt")


class RateLimitInfo(BaseModel):
    """Rate limit information for API responses."""

    limit: int = Field(..., ge=1, description="Total units allowed per window")
    remaining: int = Field(..., ge=0, description="Units remaining in window")
    reset_at: datetime = Field(..., description="When the limit resets (UTC)")
    retry_after: int = Field(default=0, ge=0, description="Seconds to wait")

    @model_validator(mode="after")
    def validate_remaining(self) -> "RateLimitInfo":
        """Validate remaining doesn't exceed limit."""
        if self.remaining > self.limit:
            raise ValueError(
                f"remaining ({self.remaining}) cannot exceed limit ({self.limit})"
            )
        return self

    @classmethod
    def from_state(
        cls, state: QuotaState, now: Optional[datetime] = None
    ) -> "RateLimitInfo":
        """
        Create from a window state.

        Args:
            state: Quota state
            now: Reference time

        Returns:
            RateLimitInfo instance
        """
        return cls(
            limit=state.window_limit,
            remaining=state.remaining,
            reset_at=state.window_reset_at,
            retry_after=state.seconds_until_reset(now) if state.is_exceeded else 0,
        )

    def to_headers(self) -> dict[str, str]:
        """Build X-RateLimit-* headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at.timestamp())),
        }
        if self.retry_after:
            headers["Retry-After"] = str(self.retry_after)
        return headers
