"""Test configuration module."""

import pytest
from pydantic import ValidationError

from gengate.config import AppConfig


class TestAppConfig:
    """Test application configuration."""

    def test_should_load_default_values(self):
        """Test default configuration."""
        config = AppConfig()
        assert config.app_name == "GenGate"
        assert config.storage_backend == "memory"
        assert config.max_queue_depth == 1000
        assert config.moderation_failure_policy == "closed"

    def test_should_build_redis_url(self):
        """Test Redis URL generation."""
        config = AppConfig(redis_host="localhost", redis_port=6379, redis_db=0)
        assert "redis://localhost:6379/0" in config.redis_url

    def test_should_build_redis_url_with_password(self):
        """Test Redis URL with password."""
        config = AppConfig(
            redis_host="localhost", redis_port=6379, redis_db=0, redis_password="secret"
        )
        assert "redis://:secret@localhost:6379/0" == config.redis_url

    def test_should_parse_allowed_origins(self):
        """Test allowed origins parsing."""
        config = AppConfig(
            allowed_origins="http://localhost:3000,http://localhost:8000"
        )
        origins = config.allowed_origins_list
        assert len(origins) == 2
        assert "http://localhost:3000" in origins

    def test_should_parse_blocked_terms(self):
        """Test blocked terms are trimmed and lowercased."""
        config = AppConfig(moderation_blocked_terms=" Gore, ,Violence ")
        assert config.blocked_terms_list == ["gore", "violence"]

    def test_should_resolve_tier_limits(self):
        """Test per-tier limits with free tier fallback."""
        config = AppConfig(rate_limit_pro=42, quota_enterprise=7)
        assert config.rate_limit_for("pro") == 42
        assert config.quota_for("enterprise") == 7
        assert config.rate_limit_for("unknown") == config.rate_limit_free

    def test_should_resolve_tier_weights(self):
        """Test tier weights increase with tier."""
        config = AppConfig()
        assert (
            config.tier_weight_for("free")
            < config.tier_weight_for("pro")
            < config.tier_weight_for("enterprise")
        )

    def test_should_identify_development_environment(self):
        """Test environment detection."""
        config = AppConfig(app_env="development")
        assert config.is_development is True
        assert config.is_production is False

    def test_should_require_maintenance_within_lease(self):
        """Test heartbeat interval must be shorter than the instance lease."""
        with pytest.raises(ValidationError):
            AppConfig(instance_lease_seconds=5, maintenance_interval_seconds=5.0)

    def test_should_generate_distinct_instance_ids(self):
        """Test each process gets its own instance identity."""
        assert AppConfig().instance_id != AppConfig().instance_id
