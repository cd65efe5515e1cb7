"""
Admission policy configuration.

Sandi Metz Principles:
- Single Responsibility: Per-tier limits and outage policy
- Immutable: Built once from configuration
"""

from dataclasses import dataclass, field
from typing import Dict, Literal, Tuple

from gengate.config import AppConfig
from gengate.models.ratelimit import WindowConfig

FailurePolicy = Literal["closed", "open"]


@dataclass(frozen=True)
class AdmissionPolicy:
    """Limits and outage behavior applied by the admission gate."""

    rate_limits: Dict[str, int] = field(
        default_factory=lambda: {"free": 10, "pro": 60, "enterprise": 600}
    )
    quotas: Dict[str, int] = field(
        default_factory=lambda: {"free": 100, "pro": 2000, "enterprise": 50000}
    )
    rate_window_seconds: int = 60
    quota_period_seconds: int = 86400
    moderation_timeout_seconds: float = 2.0
    moderation_failure_policy: FailurePolicy = "closed"
    cache_enabled: bool = True

    @classmethod
    def from_config(cls, app_config: AppConfig) -> "AdmissionPolicy":
        """
        Build policy from application configuration.

        Args:
            app_config: Application configuration

        Returns:
            AdmissionPolicy instance
        """
        tiers = ("free", "pro", "enterprise")
        return cls(
            rate_limits={tier: app_config.rate_limit_for(tier) for tier in tiers},
            quotas={tier: app_config.quota_for(tier) for tier in tiers},
            rate_window_seconds=app_config.rate_limit_window_seconds,
            quota_period_seconds=app_config.quota_period_seconds,
            moderation_timeout_seconds=app_config.moderation_timeout_seconds,
            moderation_failure_policy=app_config.moderation_failure_policy,
            cache_enabled=app_config.enable_result_cache,
        )

    def windows_for(self, tier: str) -> Tuple[WindowConfig, WindowConfig]:
        """
        Get rate and quota windows for a tier.

        Unknown tiers get free tier limits.

        Args:
            tier: Subscription tier

        Returns:
            Tuple of (rate window, quota window)
        """
        rate = WindowConfig(
            name="rate",
            limit=self.rate_limits.get(tier, self.rate_limits["free"]),
            window_seconds=self.rate_window_seconds,
        )
        quota = WindowConfig(
            name="quota",
            limit=self.quotas.get(tier, self.quotas["free"]),
            window_seconds=self.quota_period_seconds,
        )
        return rate, quota

    @property
    def fails_closed(self) -> bool:
        """Check if moderation outages deny requests."""
        return self.moderation_failure_policy == "closed"
