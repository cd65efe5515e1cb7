"""
Application configuration management.

Following Sandi Metz principles:
- Single Responsibility: Configuration loading and validation
- Clear naming: Descriptive property names
"""

import uuid
from typing import List, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Tier = Literal["free", "pro", "enterprise"]


class AppConfig(BaseSettings):
    """
    Application configuration with validation.

    Loads from environment variables with fallback to .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="GenGate", description="Application name")
    app_env: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="CORS allowed origins",
    )

    # Storage backend
    storage_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Backend for cache, counters and jobs"
    )
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    redis_db: int = Field(default=0, ge=0, le=15, description="Redis database")
    redis_password: str = Field(default="", description="Redis password")
    redis_max_connections: int = Field(default=10, ge=1, description="Max connections")

    # Rate limits (short window) per tier
    rate_limit_free: int = Field(default=10, ge=1, description="Free tier requests/window")
    rate_limit_pro: int = Field(default=60, ge=1, description="Pro tier requests/window")
    rate_limit_enterprise: int = Field(
        default=600, ge=1, description="Enterprise tier requests/window"
    )
    rate_limit_window_seconds: int = Field(
        default=60, ge=1, description="Rate limit window"
    )

    # Quotas (long period) per tier
    quota_free: int = Field(default=100, ge=1, description="Free tier daily quota")
    quota_pro: int = Field(default=2000, ge=1, description="Pro tier daily quota")
    quota_enterprise: int = Field(
        default=50000, ge=1, description="Enterprise tier daily quota"
    )
    quota_period_seconds: int = Field(default=86400, ge=1, description="Quota period")

    # Result cache settings
    enable_result_cache: bool = Field(default=True, description="Enable result cache")
    cache_ttl_seconds: int = Field(default=3600, ge=1, description="TTL seconds")
    cache_flagged_ttl_seconds: int = Field(
        default=300, ge=1, description="TTL for flagged or low-confidence artifacts"
    )
    cache_low_confidence_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Confidence below which TTL shortens"
    )
    cache_max_entries: int = Field(default=10000, ge=1, description="Max cached entries")
    cache_sweep_interval_seconds: float = Field(
        default=60.0, gt=0, description="Expired entry sweep interval"
    )

    # Moderation settings
    moderation_provider: Literal["none", "keyword", "openai"] = Field(
        default="keyword", description="Content moderation collaborator"
    )
    moderation_timeout_seconds: float = Field(
        default=2.0, gt=0, description="Hard timeout for moderation calls"
    )
    moderation_failure_policy: Literal["closed", "open"] = Field(
        default="closed", description="Decision when moderation is unavailable"
    )
    moderation_blocked_terms: str = Field(
        default="", description="Comma separated blocked terms for keyword moderation"
    )

    # Queue and worker settings
    max_queue_depth: int = Field(default=1000, ge=1, description="Max pending jobs")
    worker_pool_size: int = Field(default=4, ge=1, le=64, description="Worker count")
    max_attempts: int = Field(default=3, ge=1, description="Max execution attempts")
    retry_initial_delay: float = Field(default=1.0, ge=0.0, description="First backoff")
    retry_max_delay: float = Field(default=60.0, ge=0.0, description="Backoff cap")
    retry_exponential_base: float = Field(default=2.0, ge=1.0, description="Backoff base")
    generation_timeout_seconds: float = Field(
        default=120.0, gt=0, description="Provider call timeout"
    )
    job_retention_seconds: int = Field(
        default=86400, ge=0, description="Retention after terminal state"
    )
    max_batch_size: int = Field(default=50, ge=1, le=500, description="Items per batch")

    # Replica coordination
    instance_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Identity of this process in the shared job repository",
    )
    instance_lease_seconds: int = Field(
        default=30, ge=1, description="Heartbeat lifetime before jobs are adopted"
    )
    maintenance_interval_seconds: float = Field(
        default=10.0, gt=0, description="Heartbeat, adoption and purge interval"
    )

    # Priority ranking
    tier_weight_free: int = Field(default=0, ge=0, description="Free tier weight")
    tier_weight_pro: int = Field(default=1000, ge=0, description="Pro tier weight")
    tier_weight_enterprise: int = Field(
        default=2000, ge=0, description="Enterprise tier weight"
    )
    priority_hint_weight: int = Field(default=100, ge=0, description="Hint multiplier")
    aging_interval_seconds: int = Field(default=30, ge=1, description="Aging step")
    max_age_boost: int = Field(default=500, ge=0, description="Aging cap")

    # Completion notifications
    notification_max_attempts: int = Field(default=5, ge=1, description="Delivery tries")
    notification_initial_delay: float = Field(
        default=0.5, ge=0.0, description="First delivery backoff"
    )
    notification_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Webhook request timeout"
    )
    notification_workers: int = Field(default=2, ge=1, description="Delivery tasks")

    # Generation provider
    openai_api_key: str = Field(default="", description="OpenAI API key")
    image_model: str = Field(default="dall-e-3", description="Image model")
    default_image_size: str = Field(default="1024x1024", description="Image size")

    @field_validator("moderation_blocked_terms")
    @classmethod
    def strip_terms(cls, v: str) -> str:
        """Normalize blocked terms list."""
        return v.strip()

    @model_validator(mode="after")
    def check_lease_outlives_maintenance(self) -> "AppConfig":
        """Require heartbeats to renew before the instance lease runs out."""
        if self.maintenance_interval_seconds >= self.instance_lease_seconds:
            raise ValueError(
                "maintenance_interval_seconds must be shorter than instance_lease_seconds"
            )
        return self

    @property
    def blocked_terms_list(self) -> List[str]:
        """Get blocked terms as list."""
        return [
            term.strip().lower()
            for term in self.moderation_blocked_terms.split(",")
            if term.strip()
        ]

    @property
    def allowed_origins_list(self) -> List[str]:
        """Get allowed origins as list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def redis_url(self) -> str:
        """Build Redis URL."""
        if self.redis_password:
            return (
                f"redis://:{self.redis_password}@"
                f"{self.redis_host}:{self.redis_port}/{self.redis_db}"
            )
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    def rate_limit_for(self, tier: str) -> int:
        """Get short-window request limit for a tier."""
        return {
            "free": self.rate_limit_free,
            "pro": self.rate_limit_pro,
            "enterprise": self.rate_limit_enterprise,
        }.get(tier, self.rate_limit_free)

    def quota_for(self, tier: str) -> int:
        """Get long-period quota for a tier."""
        return {
            "free": self.quota_free,
            "pro": self.quota_pro,
            "enterprise": self.quota_enterprise,
        }.get(tier, self.quota_free)

    def tier_weight_for(self, tier: str) -> int:
        """Get scheduling weight for a tier."""
        return {
            "free": self.tier_weight_free,
            "pro": self.tier_weight_pro,
            "enterprise": self.tier_weight_enterprise,
        }.get(tier, self.tier_weight_free)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


# Global configuration instance
config = AppConfig()
