"""
Result cache service.

Content-addressed store of generated artifacts keyed by request
fingerprint, with TTL expiry and hit accounting.

Sandi Metz Principles:
- Single Responsibility: Cache policy (TTL, expiry, counters)
- Small methods: Each operation < 15 lines
- Dependency Injection: Repository injected
"""

import asyncio
from typing import Optional

from gengate.config import config
from gengate.exceptions import CacheError
from gengate.models.artifact import Artifact
from gengate.models.cache_entry import CacheEntry
from gengate.models.statistics import CacheStatistics
from gengate.repositories.cache_repository import CacheRepository
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger, log_cache_hit, log_cache_miss

logger = get_logger(__name__)


class ResultCache:
    """
    Result cache service.

    Expired entries are treated as misses and removed on lookup; an optional
    background sweep reclaims the rest.
    """

    def __init__(
        self,
        repository: CacheRepository,
        default_ttl: Optional[float] = None,
        flagged_ttl: Optional[float] = None,
        low_confidence_threshold: Optional[float] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize cache service.

        Args:
            repository: Cache storage
            default_ttl: Default TTL in seconds (config if None)
            flagged_ttl: TTL for flagged / low-confidence artifacts
            low_confidence_threshold: Confidence below which flagged_ttl applies
            clock: Time source
        """
        self._repository = repository
        self._default_ttl = default_ttl or config.cache_ttl_seconds
        self._flagged_ttl = flagged_ttl or config.cache_flagged_ttl_seconds
        self._threshold = (
            low_confidence_threshold
            if low_confidence_threshold is not None
            else config.cache_low_confidence_threshold
        )
        self._clock = clock or utc_now
        self._stats = CacheStatistics()
        self._sweeper: Optional[asyncio.Task] = None

    async def lookup(self, fingerprint: str) -> Optional[CacheEntry]:
        """
        Get live entry for fingerprint.

        Increments the entry's hit count on a hit.

        Args:
            fingerprint: Fingerprint key

        Returns:
            Cache entry if live, None otherwise

        Raises:
            CacheError: If the backend is unreachable
        """
        entry = await self._repository.fetch(fingerprint)

        if entry is not None and entry.is_expired(self._clock()):
            await self._repository.delete(fingerprint)
            self._stats.expirations += 1
            entry = None

        hit_count = None
        if entry is not None:
            hit_count = await self._repository.increment_hits(fingerprint)

        if entry is None or hit_count is None:
            self._stats.misses += 1
            log_cache_miss(fingerprint)
            return None

        entry.hit_count = hit_count
        self._stats.hits += 1
        log_cache_hit(fingerprint, hit_count)
        return entry

    async def store(
        self, fingerprint: str, artifact: Artifact, ttl: Optional[float] = None
    ) -> CacheEntry:
        """
        Store artifact, replacing any live entry for the fingerprint.

        Args:
            fingerprint: Fingerprint key
            artifact: Artifact to cache
            ttl: TTL override in seconds

        Returns:
            Stored entry
        """
        entry = CacheEntry.create(
            fingerprint, artifact, ttl or self.ttl_for(artifact), now=self._clock()
        )
        await self._repository.store(entry)
        self._stats.stores += 1
        logger.info("Cache stored", fingerprint=fingerprint, ttl=entry.ttl_seconds)
        return entry

    async def evict(self, fingerprint: str) -> bool:
        """
        Invalidate entry explicitly.

        Args:
            fingerprint: Fingerprint key

        Returns:
            True if an entry was removed
        """
        removed = await self._repository.delete(fingerprint)
        if removed:
            self._stats.evictions += 1
            logger.info("Cache entry evicted", fingerprint=fingerprint)
        return removed

    def ttl_for(self, artifact: Artifact) -> float:
        """
        Get TTL for an artifact.

        Args:
            artifact: Artifact to cache

        Returns:
            Shortened TTL for flagged / low-confidence artifacts, default otherwise
        """
        if artifact.is_low_confidence(self._threshold):
            return min(self._flagged_ttl, self._default_ttl)
        return self._default_ttl

    async def sweep(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        removed = await self._repository.purge_expired(self._clock())
        self._stats.expirations += removed
        if removed:
            logger.info("Cache sweep completed", removed=removed)
        return removed

    def start_sweeper(self, interval_seconds: Optional[float] = None) -> asyncio.Task:
        """
        Start periodic sweep in the background.

        Args:
            interval_seconds: Sweep interval (config if None)

        Returns:
            Sweeper task
        """
        interval = interval_seconds or config.cache_sweep_interval_seconds
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(interval))
        return self._sweeper

    async def stop_sweeper(self) -> None:
        """Stop background sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error("Cache sweep failed", error=str(e))

    async def stats(self) -> CacheStatistics:
        """
        Get cache counters.

        Returns:
            Cache statistics snapshot
        """
        snapshot = self._stats.model_copy()
        try:
            snapshot.size = await self._repository.count()
        except CacheError as e:
            logger.warning("Cache size unavailable", error=str(e))
        return snapshot

    async def health_check(self) -> bool:
        """
        Check backend health.

        Returns:
            True if healthy
        """
        return await self._repository.ping()
