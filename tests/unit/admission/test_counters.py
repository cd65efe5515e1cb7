"""Test rate limit and quota counters."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import RedisError

from gengate.admission.counters import (
    InMemoryCounterStore,
    RedisCounterStore,
    WindowLimiter,
)
from gengate.exceptions import CounterStoreError
from gengate.models.ratelimit import WindowConfig


class TestInMemoryCounterStore:
    """Test process-local counters."""

    @pytest.mark.asyncio
    async def test_should_stop_at_limit(self, clock):
        """Test acquire refuses once limit is reached."""
        store = InMemoryCounterStore(clock)
        expires = clock.now + timedelta(seconds=60)

        results = [await store.acquire("k", 2, expires) for _ in range(3)]

        assert results == [(True, 1), (True, 2), (False, 2)]

    @pytest.mark.asyncio
    async def test_should_never_exceed_limit_under_concurrency(self, clock):
        """Test concurrent acquires admit exactly limit units."""
        store = InMemoryCounterStore(clock)
        expires = clock.now + timedelta(seconds=60)

        results = await asyncio.gather(*(store.acquire("k", 10, expires) for _ in range(50)))

        assert sum(1 for ok, _ in results if ok) == 10
        assert await store.usage("k") == 10

    @pytest.mark.asyncio
    async def test_should_release_without_going_negative(self, clock):
        """Test release floors at zero."""
        store = InMemoryCounterStore(clock)
        await store.acquire("k", 5, clock.now + timedelta(seconds=60))

        assert await store.release("k") == 0
        assert await store.release("k") == 0

    @pytest.mark.asyncio
    async def test_should_reset_after_expiry(self, clock):
        """Test counter reads zero once its window expired."""
        store = InMemoryCounterStore(clock)
        await store.acquire("k", 1, clock.now + timedelta(seconds=60))
        clock.advance(61)

        assert await store.usage("k") == 0
        assert await store.acquire("k", 1, clock.now + timedelta(seconds=60)) == (True, 1)


class TestRedisCounterStore:
    """Test Redis counters."""

    @pytest.mark.asyncio
    async def test_should_run_acquire_script(
        self, mock_redis_pool, mock_redis_client, clock
    ):
        """Test script result is decoded."""
        mock_redis_client.eval = AsyncMock(return_value=[1, 3])
        with patch("gengate.admission.counters.Redis", return_value=mock_redis_client):
            store = RedisCounterStore(mock_redis_pool, clock)
            result = await store.acquire("k", 5, clock.now + timedelta(seconds=30))

        assert result == (True, 3)
        args = mock_redis_client.eval.call_args.args
        assert args[1:] == (1, "k", 5, 30000)

    @pytest.mark.asyncio
    async def test_should_wrap_redis_errors(self, mock_redis_pool, mock_redis_client, clock):
        """Test RedisError becomes CounterStoreError."""
        mock_redis_client.eval = AsyncMock(side_effect=RedisError("down"))
        with patch("gengate.admission.counters.Redis", return_value=mock_redis_client):
            store = RedisCounterStore(mock_redis_pool, clock)
            with pytest.raises(CounterStoreError):
                await store.acquire("k", 5, clock.now + timedelta(seconds=30))

    @pytest.mark.asyncio
    async def test_should_read_usage(self, mock_redis_pool, mock_redis_client):
        """Test missing key reads zero."""
        with patch("gengate.admission.counters.Redis", return_value=mock_redis_client):
            assert await RedisCounterStore(mock_redis_pool).usage("k") == 0


class TestWindowLimiter:
    """Test fixed-window limiting."""

    @pytest.mark.asyncio
    async def test_should_report_window_state(self, clock):
        """Test usage state and reset time."""
        limiter = WindowLimiter(InMemoryCounterStore(clock), clock)
        window = WindowConfig.per_minute(2)

        usage = await limiter.try_acquire("user-1", window)

        assert usage.allowed
        assert usage.state.remaining == 1
        assert usage.state.window_reset_at == clock.now + timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_should_isolate_subjects(self, clock):
        """Test one subject's usage does not affect another."""
        limiter = WindowLimiter(InMemoryCounterStore(clock), clock)
        window = WindowConfig.per_minute(1)

        assert (await limiter.try_acquire("a", window)).allowed
        assert not (await limiter.try_acquire("a", window)).allowed
        assert (await limiter.try_acquire("b", window)).allowed

    @pytest.mark.asyncio
    async def test_should_admit_again_in_next_window(self, clock):
        """Test window rollover restores capacity."""
        limiter = WindowLimiter(InMemoryCounterStore(clock), clock)
        window = WindowConfig.per_minute(1)
        await limiter.try_acquire("a", window)
        clock.advance(60)

        assert (await limiter.try_acquire("a", window)).allowed

    @pytest.mark.asyncio
    async def test_should_refund_released_unit(self, clock):
        """Test release gives capacity back."""
        limiter = WindowLimiter(InMemoryCounterStore(clock), clock)
        window = WindowConfig.per_minute(1)
        usage = await limiter.try_acquire("a", window)
        await limiter.release(usage.key)

        state = await limiter.state("a", window)
        assert state.window_usage == 0
