"""
Runtime statistics models.

Sandi Metz Principles:
- Small classes with clear purpose
- Computed properties for derived metrics
- Clear naming conventions
"""

import math
from typing import Dict

from pydantic import BaseModel, Field


class CacheStatistics(BaseModel):
    """Result cache counters."""

    hits: int = Field(default=0, ge=0, description="Lookups served from cache")
    misses: int = Field(default=0, ge=0, description="Lookups not served")
    stores: int = Field(default=0, ge=0, description="Entries written")
    evictions: int = Field(default=0, ge=0, description="Explicit invalidations")
    expirations: int = Field(default=0, ge=0, description="Entries removed on expiry")
    size: int = Field(default=0, ge=0, description="Live entries")

    @property
    def lookups(self) -> int:
        """Get total lookups."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Get hit rate percentage (0.0-100.0)."""
        if self.lookups == 0:
            return 0.0
        return (self.hits / self.lookups) * 100.0


class QueueStatistics(BaseModel):
    """Job queue counters."""

    depth: int = Field(default=0, ge=0, description="Non-terminal jobs")
    max_depth: int = Field(..., ge=1, description="Depth ceiling")
    by_state: Dict[str, int] = Field(default_factory=dict, description="Jobs per state")
    queued: int = Field(default=0, ge=0, description="Jobs waiting for a worker")
    active: int = Field(default=0, ge=0, description="Jobs being generated")
    enqueued: int = Field(default=0, ge=0, description="Jobs accepted")
    rejected: int = Field(default=0, ge=0, description="Enqueues refused (saturated)")
    retries: int = Field(default=0, ge=0, description="Retries scheduled")
    unpersisted: int = Field(
        default=0, ge=0, description="Transitions awaiting a repository write"
    )
    average_run_seconds: float = Field(
        default=0.0, ge=0.0, description="Mean duration of recent attempts"
    )

    @property
    def utilization(self) -> float:
        """Get depth as percentage of ceiling."""
        return (self.depth / self.max_depth) * 100.0

    @property
    def success_rate(self) -> float:
        """Get succeeded share of finished jobs as percentage."""
        succeeded = self.by_state.get("succeeded", 0)
        finished = succeeded + self.by_state.get("dead_lettered", 0)
        if finished == 0:
            return 0.0
        return (succeeded / finished) * 100.0

    def estimated_wait_seconds(self, concurrency: int) -> int:
        """
        Estimate how long a newly queued job waits for a worker.

        Args:
            concurrency: Number of workers draining the queue

        Returns:
            Seconds, rounded up
        """
        if concurrency < 1:
            return 0
        return math.ceil(self.queued * self.average_run_seconds / concurrency)

    def processing_rate_per_minute(self, concurrency: int) -> float:
        """Estimate jobs finished per minute at the current attempt duration."""
        if concurrency < 1 or self.average_run_seconds <= 0:
            return 0.0
        return round(concurrency * 60.0 / self.average_run_seconds, 2)


class NotifierStatistics(BaseModel):
    """Completion notifier counters."""

    published: int = Field(default=0, ge=0, description="Events accepted")
    delivered: int = Field(default=0, ge=0, description="Webhook deliveries")
    failed: int = Field(default=0, ge=0, description="Deliveries given up")
    duplicates: int = Field(default=0, ge=0, description="Repeat notify calls ignored")
    pending: int = Field(default=0, ge=0, description="Events awaiting delivery")
    retained: int = Field(default=0, ge=0, description="Events kept for replay")
