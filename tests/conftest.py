"""
Pytest configuration and fixtures.

Provides common fixtures for testing.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from gengate.config import AppConfig
from gengate.models.artifact import Artifact
from gengate.models.job import Job
from gengate.models.request import GenerationParameters, GenerationRequest

EPOCH_ALIGNED = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: datetime = EPOCH_ALIGNED):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def test_config() -> AppConfig:
    """
    Create test configuration.

    Returns:
        Test configuration instance
    """
    return AppConfig(
        app_env="development",
        storage_backend="memory",
        redis_host="localhost",
        redis_port=6379,
        openai_api_key="test-key",
        moderation_provider="keyword",
        moderation_blocked_terms="forbidden,banned",
        retry_initial_delay=0.0,
        notification_initial_delay=0.0,
        cache_sweep_interval_seconds=3600,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Create manually advanced clock."""
    return FakeClock()


@pytest.fixture
def sample_artifact() -> Artifact:
    """Create sample artifact."""
    return Artifact(
        uris=["https://cdn.example.com/images/abc.png"],
        model="dall-e-3",
        confidence=0.9,
    )


@pytest.fixture
def make_request():
    """
    Build generation requests with overridable fields.

    Returns:
        Factory function
    """

    def _make(
        prompt: str = "A lighthouse at dusk",
        subject_id: str = "user-1",
        tier: str = "free",
        priority_hint: int = 0,
        parameters: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            subject_id=subject_id,
            tier=tier,
            priority_hint=priority_hint,
            parameters=GenerationParameters(**(parameters or {})),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_job():
    """
    Build queued jobs with overridable fields.

    Returns:
        Factory function
    """

    def _make(priority: int = 0, **kwargs: Any) -> Job:
        data = {
            "fingerprint": "gen:abc",
            "subject_id": "user-1",
            "correlation_id": "corr-1",
            "payload": {"prompt": "A lighthouse at dusk", "n": 1},
            "priority": priority,
        }
        data.update(kwargs)
        return Job(**data)

    return _make


@pytest.fixture
def mock_redis_pool():
    """
    Mock Redis connection pool.

    Returns:
        Mocked Redis pool
    """
    pool = MagicMock()
    pool.disconnect = AsyncMock()
    return pool


@pytest.fixture
def mock_redis_client():
    """
    Mock Redis client usable as an async context manager.

    Returns:
        Mocked Redis client
    """
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.get = AsyncMock(return_value=None)
    client.mget = AsyncMock(return_value=[])
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.eval = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    client.smembers = AsyncMock(return_value=set())
    return client
