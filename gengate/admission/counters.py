"""
Rate limit and quota counters.

Sandi Metz Principles:
- Single Responsibility: Atomic per-subject window counting
- Small methods: Each method < 15 lines
- Dependency Injection: Backend and clock injected
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from gengate.exceptions import CounterStoreError
from gengate.models.ratelimit import QuotaState, WindowConfig, WindowUsage
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

# In-memory stale window cleanup cadence (acquires)
PURGE_EVERY = 1000

_ACQUIRE_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current >= tonumber(ARGV[1]) then
    return {0, current}
end
current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return {1, current}
"""

_RELEASE_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current > 0 then
    return redis.call('DECR', KEYS[1])
end
return 0
"""


class CounterStore(ABC):
    """Backend holding window counters."""

    @abstractmethod
    async def acquire(
        self, key: str, limit: int, expires_at: datetime
    ) -> Tuple[bool, int]:
        """
        Increment counter if it is below limit.

        Check and increment happen as one atomic step per key.

        Returns:
            Tuple of (acquired, usage after the attempt)
        """

    @abstractmethod
    async def release(self, key: str) -> int:
        """Give back one unit (never below zero); returns usage."""

    @abstractmethod
    async def usage(self, key: str) -> int:
        """Current usage for key."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check backend availability."""


class InMemoryCounterStore(CounterStore):
    """
    Process-local counters.

    Each key has its own lock so unrelated subjects never contend.
    """

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize store.

        Args:
            clock: Time source for expiring old windows
        """
        self._counts: Dict[str, Tuple[int, datetime]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._clock = clock or utc_now
        self._acquires = 0

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _current(self, key: str) -> int:
        count, expires_at = self._counts.get(key, (0, None))
        if expires_at is not None and self._clock() >= expires_at:
            return 0
        return count

    async def acquire(
        self, key: str, limit: int, expires_at: datetime
    ) -> Tuple[bool, int]:
        async with self._lock_for(key):
            current = self._current(key)
            if current >= limit:
                return (False, current)
            self._counts[key] = (current + 1, expires_at)
        self._acquires += 1
        if self._acquires % PURGE_EVERY == 0:
            self._purge_expired()
        return (True, current + 1)

    async def release(self, key: str) -> int:
        async with self._lock_for(key):
            current = self._current(key)
            if current == 0:
                return 0
            _, expires_at = self._counts[key]
            self._counts[key] = (current - 1, expires_at)
            return current - 1

    async def usage(self, key: str) -> int:
        return self._current(key)

    async def ping(self) -> bool:
        return True

    def _purge_expired(self) -> None:
        """Drop counters of windows that have rolled over."""
        now = self._clock()
        stale = [key for key, (_, exp) in self._counts.items() if now >= exp]
        for key in stale:
            lock = self._locks.get(key)
            if lock is not None and lock.locked():
                continue
            self._counts.pop(key, None)
            self._locks.pop(key, None)


class RedisCounterStore(CounterStore):
    """
    Redis counters.

    Check-and-increment runs as a single Lua script, so concurrent
    admissions from any number of replicas never exceed the limit.
    """

    def __init__(self, pool: ConnectionPool, clock: Optional[Clock] = None):
        """
        Initialize store.

        Args:
            pool: Redis connection pool
            clock: Time source for computing key expiry
        """
        self._pool = pool
        self._clock = clock or utc_now

    async def acquire(
        self, key: str, limit: int, expires_at: datetime
    ) -> Tuple[bool, int]:
        ttl_ms = max(1, int((expires_at - self._clock()).total_seconds() * 1000))
        try:
            async with Redis(connection_pool=self._pool) as client:
                allowed, current = await client.eval(
                    _ACQUIRE_SCRIPT, 1, key, limit, ttl_ms
                )
        except RedisError as e:
            logger.error("Counter acquire failed", key=key, error=str(e))
            raise CounterStoreError(f"Counter acquire failed: {e}") from e
        return (bool(int(allowed)), int(current))

    async def release(self, key: str) -> int:
        try:
            async with Redis(connection_pool=self._pool) as client:
                return int(await client.eval(_RELEASE_SCRIPT, 1, key))
        except RedisError as e:
            logger.error("Counter release failed", key=key, error=str(e))
            raise CounterStoreError(f"Counter release failed: {e}") from e

    async def usage(self, key: str) -> int:
        try:
            async with Redis(connection_pool=self._pool) as client:
                value = await client.get(key)
                return int(value or 0)
        except RedisError as e:
            logger.error("Counter read failed", key=key, error=str(e))
            raise CounterStoreError(f"Counter read failed: {e}") from e

    async def ping(self) -> bool:
        try:
            async with Redis(connection_pool=self._pool) as client:
                await client.ping()
                return True
        except RedisError as e:
            logger.error("Redis ping failed", error=str(e))
            return False


class WindowLimiter:
    """
    Fixed-window limiter over a counter store.

    Windows are aligned to the epoch, so every subject's window for a given
    config rolls over at the same instant.
    """

    def __init__(self, store: CounterStore, clock: Optional[Clock] = None):
        """
        Initialize limiter.

        Args:
            store: Counter backend
            clock: Time source
        """
        self._store = store
        self._clock = clock or utc_now

    async def try_acquire(self, subject_id: str, window: WindowConfig) -> WindowUsage:
        """
        Consume one unit of the subject's current window if available.

        Args:
            subject_id: Rate-limited actor
            window: Window configuration

        Returns:
            Usage outcome with the window state after the attempt

        Raises:
            CounterStoreError: If the backend is unreachable
        """
        now = self._clock()
        key = window.counter_key(subject_id, now)
        reset_at = window.reset_at(now)
        allowed, used = await self._store.acquire(
            key, window.limit, reset_at + timedelta(seconds=1)
        )
        state = QuotaState(
            subject_id=subject_id,
            window_usage=used,
            window_limit=window.limit,
            window_reset_at=reset_at,
        )
        return WindowUsage(key=key, allowed=allowed, state=state)

    async def release(self, key: str) -> None:
        """
        Return one unit to a window.

        Args:
            key: Counter key from a previous acquire
        """
        await self._store.release(key)

    async def state(self, subject_id: str, window: WindowConfig) -> QuotaState:
        """
        Get subject's current window state without consuming.

        Args:
            subject_id: Rate-limited actor
            window: Window configuration

        Returns:
            Quota state
        """
        now = self._clock()
        used = await self._store.usage(window.counter_key(subject_id, now))
        return QuotaState(
            subject_id=subject_id,
            window_usage=used,
            window_limit=window.limit,
            window_reset_at=window.reset_at(now),
        )

    async def health_check(self) -> bool:
        """Check backend health."""
        return await self._store.ping()
