"""
Priority Ranker.

Scores admitted requests for dequeue ordering.

Sandi Metz Principles:
- Single Responsibility: Priority calculation
- Pure functions: Output depends only on inputs
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from gengate.config import AppConfig
from gengate.models.job import Job
from gengate.models.request import GenerationRequest

MAX_PRIORITY_HINT = 9


@dataclass(frozen=True)
class RankerConfig:
    """Weights used to compute priorities."""

    tier_weights: Dict[str, int] = field(
        default_factory=lambda: {"free": 0, "pro": 1000, "enterprise": 2000}
    )
    hint_weight: int = 100
    aging_interval_seconds: int = 30
    max_age_boost: int = 500

    @classmethod
    def from_config(cls, app_config: AppConfig) -> "RankerConfig":
        """Build ranker config from application configuration."""
        return cls(
            tier_weights={
                tier: app_config.tier_weight_for(tier)
                for tier in ("free", "pro", "enterprise")
            },
            hint_weight=app_config.priority_hint_weight,
            aging_interval_seconds=app_config.aging_interval_seconds,
            max_age_boost=app_config.max_age_boost,
        )


@dataclass(frozen=True)
class RankingMetadata:
    """Inputs to ranking that are not part of the request."""

    now: datetime
    created_at: Optional[datetime] = None


class PriorityRanker:
    """
    Computes scheduling priority.

    priority = tier weight + hint * hint weight + age boost, where the age
    boost grows by one per aging interval up to a cap.
    """

    def __init__(self, config: Optional[RankerConfig] = None):
        """
        Initialize ranker.

        Args:
            config: Ranker configuration (defaults if None)
        """
        self._config = config or RankerConfig()

    def rank(self, request: GenerationRequest, metadata: RankingMetadata) -> int:
        """
        Rank an admitted request.

        Args:
            request: Admitted request
            metadata: Ranking metadata (current time, original creation time)

        Returns:
            Priority (higher runs first)
        """
        created_at = metadata.created_at or request.requested_at
        return self._score(request.tier, request.priority_hint, created_at, metadata.now)

    def rank_job(self, job: Job, now: datetime) -> int:
        """
        Re-rank a job being re-queued.

        Args:
            job: Job to rank
            now: Current time

        Returns:
            Priority (higher runs first)
        """
        return self._score(job.tier, job.priority_hint, job.created_at, now)

    def age_boost(self, created_at: datetime, now: datetime) -> int:
        """
        Get starvation boost for a request of given age.

        Args:
            created_at: When the request was first received
            now: Current time

        Returns:
            Boost, monotonically non-decreasing in age and capped
        """
        age = max(0.0, (now - created_at).total_seconds())
        steps = int(age // self._config.aging_interval_seconds)
        return min(steps, self._config.max_age_boost)

    def _score(self, tier: str, hint: int, created_at: datetime, now: datetime) -> int:
        tier_weight = self._config.tier_weights.get(
            tier, self._config.tier_weights.get("free", 0)
        )
        hint = max(0, min(hint, MAX_PRIORITY_HINT))
        return (
            tier_weight
            + hint * self._config.hint_weight
            + self.age_boost(created_at, now)
        )

    @staticmethod
    def sort_key(
        priority: int, enqueued_at: datetime, sequence: int
    ) -> Tuple[int, float, int]:
        """
        Build total-order dequeue key.

        Higher priority first, then earliest enqueue, then arrival order.

        Args:
            priority: Job priority
            enqueued_at: Enqueue time
            sequence: Monotonic arrival counter

        Returns:
            Sortable tuple (smallest dequeues first)
        """
        return (-priority, enqueued_at.timestamp(), sequence)
