"""
Result cache repositories.

Sandi Metz Principles:
- Single Responsibility: Cache data access
- Small methods: Each operation isolated
- Dependency Injection: Redis pool injected
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from gengate.exceptions import CacheError
from gengate.models.cache_entry import CacheEntry
from gengate.utils.hasher import generate_hits_key
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

ENTRY_PREFIX = "cache:"

# Increment only while the entry itself is still live
_INCREMENT_HITS_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return -1
end
return redis.call('INCR', KEYS[2])
"""


class CacheRepository(ABC):
    """Storage for cache entries keyed by fingerprint."""

    @abstractmethod
    async def fetch(self, fingerprint: str) -> Optional[CacheEntry]:
        """Fetch entry (possibly expired) or None."""

    @abstractmethod
    async def store(self, entry: CacheEntry) -> None:
        """Store entry, replacing any entry for the same fingerprint."""

    @abstractmethod
    async def delete(self, fingerprint: str) -> bool:
        """Delete entry; True if one existed."""

    @abstractmethod
    async def increment_hits(self, fingerprint: str) -> Optional[int]:
        """Increment hit count; None if the entry vanished."""

    @abstractmethod
    async def purge_expired(self, now: datetime) -> int:
        """Remove expired entries; returns number removed."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored entries."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check backend availability."""


class InMemoryCacheRepository(CacheRepository):
    """
    Process-local cache storage.

    Least-recently-used entries are dropped once max_entries is reached.
    Updates are serialized per fingerprint.
    """

    def __init__(self, max_entries: int = 10000):
        """
        Initialize repository.

        Args:
            max_entries: Maximum number of stored entries
        """
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        self.lru_evictions = 0

    def _lock_for(self, fingerprint: str) -> asyncio.Lock:
        lock = self._locks.get(fingerprint)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[fingerprint] = lock
        return lock

    async def fetch(self, fingerprint: str) -> Optional[CacheEntry]:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        self._entries.move_to_end(fingerprint)
        return entry.model_copy()

    async def store(self, entry: CacheEntry) -> None:
        async with self._lock_for(entry.fingerprint):
            self._entries[entry.fingerprint] = entry.model_copy()
            self._entries.move_to_end(entry.fingerprint)
            self._enforce_bound()

    async def delete(self, fingerprint: str) -> bool:
        async with self._lock_for(fingerprint):
            removed = self._entries.pop(fingerprint, None) is not None
        self._locks.pop(fingerprint, None)
        return removed

    async def increment_hits(self, fingerprint: str) -> Optional[int]:
        async with self._lock_for(fingerprint):
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            entry.increment_hit_count()
            return entry.hit_count

    async def purge_expired(self, now: datetime) -> int:
        expired = [fp for fp, entry in self._entries.items() if entry.is_expired(now)]
        for fingerprint in expired:
            await self.delete(fingerprint)
        return len(expired)

    async def count(self) -> int:
        return len(self._entries)

    async def ping(self) -> bool:
        return True

    def _enforce_bound(self) -> None:
        """Drop least recently used entries above the bound."""
        while len(self._entries) > self._max_entries:
            fingerprint, _ = self._entries.popitem(last=False)
            self._locks.pop(fingerprint, None)
            self.lru_evictions += 1
            logger.debug("Cache entry evicted (LRU)", fingerprint=fingerprint)


class RedisCacheRepository(CacheRepository):
    """
    Redis cache storage.

    The entry JSON and its hit counter live under separate keys with the
    same expiry; Redis enforces TTL itself.
    """

    def __init__(self, pool: ConnectionPool):
        """
        Initialize repository.

        Args:
            pool: Redis connection pool
        """
        self._pool = pool

    @staticmethod
    def _entry_key(fingerprint: str) -> str:
        return f"{ENTRY_PREFIX}{fingerprint}"

    async def fetch(self, fingerprint: str) -> Optional[CacheEntry]:
        try:
            async with Redis(connection_pool=self._pool) as client:
                data, hits = await client.mget(
                    [self._entry_key(fingerprint), generate_hits_key(fingerprint)]
                )
        except RedisError as e:
            logger.error("Redis cache fetch failed", fingerprint=fingerprint, error=str(e))
            raise CacheError(f"Cache fetch failed: {e}") from e

        if not data:
            return None
        entry = CacheEntry(**json.loads(data))
        entry.hit_count = int(hits or 0)
        return entry

    async def store(self, entry: CacheEntry) -> None:
        ttl_ms = max(1, int(entry.ttl_remaining() * 1000))
        try:
            async with Redis(connection_pool=self._pool) as client:
                async with client.pipeline(transaction=True) as pipe:
                    pipe.set(
                        self._entry_key(entry.fingerprint),
                        entry.model_dump_json(),
                        px=ttl_ms,
                    )
                    pipe.set(
                        generate_hits_key(entry.fingerprint), entry.hit_count, px=ttl_ms
                    )
                    await pipe.execute()
        except RedisError as e:
            logger.error(
                "Redis cache store failed", fingerprint=entry.fingerprint, error=str(e)
            )
            raise CacheError(f"Cache store failed: {e}") from e

    async def delete(self, fingerprint: str) -> bool:
        try:
            async with Redis(connection_pool=self._pool) as client:
                result = await client.delete(
                    self._entry_key(fingerprint), generate_hits_key(fingerprint)
                )
                return result > 0
        except RedisError as e:
            logger.error("Redis cache delete failed", fingerprint=fingerprint, error=str(e))
            raise CacheError(f"Cache delete failed: {e}") from e

    async def increment_hits(self, fingerprint: str) -> Optional[int]:
        try:
            async with Redis(connection_pool=self._pool) as client:
                result = await client.eval(
                    _INCREMENT_HITS_SCRIPT,
                    2,
                    self._entry_key(fingerprint),
                    generate_hits_key(fingerprint),
                )
        except RedisError as e:
            logger.error("Redis hit increment failed", fingerprint=fingerprint, error=str(e))
            raise CacheError(f"Cache hit increment failed: {e}") from e

        result = int(result)
        return None if result < 0 else result

    async def purge_expired(self, now: datetime) -> int:
        # Redis expires keys on its own
        return 0

    async def count(self) -> int:
        try:
            async with Redis(connection_pool=self._pool) as client:
                total = 0
                async for _ in client.scan_iter(match=f"{ENTRY_PREFIX}*"):
                    total += 1
                return total
        except RedisError as e:
            logger.error("Redis cache count failed", error=str(e))
            raise CacheError(f"Cache count failed: {e}") from e

    async def ping(self) -> bool:
        try:
            async with Redis(connection_pool=self._pool) as client:
                await client.ping()
                return True
        except RedisError as e:
            logger.error("Redis ping failed", error=str(e))
            return False
