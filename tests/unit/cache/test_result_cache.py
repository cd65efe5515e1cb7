"""Test result cache service."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from gengate.exceptions import CacheError
from gengate.models.artifact import Artifact
from gengate.repositories.cache_repository import InMemoryCacheRepository
from gengate.cache.result_cache import ResultCache


@pytest.fixture
def cache(clock):
    """Create cache with fixed TTLs and a manual clock."""
    return ResultCache(
        InMemoryCacheRepository(),
        default_ttl=3600,
        flagged_ttl=60,
        low_confidence_threshold=0.5,
        clock=clock,
    )


class TestResultCache:
    """Test cache policy."""

    @pytest.mark.asyncio
    async def test_should_miss_then_hit(self, cache, sample_artifact):
        """Test lookup after store returns the artifact."""
        assert await cache.lookup("gen:a") is None

        await cache.store("gen:a", sample_artifact)
        entry = await cache.lookup("gen:a")

        assert entry.artifact == sample_artifact
        assert entry.hit_count == 1
        stats = await cache.stats()
        assert (stats.hits, stats.misses, stats.stores, stats.size) == (1, 1, 1, 1)

    @pytest.mark.asyncio
    async def test_should_count_hits_monotonically(self, cache, sample_artifact):
        """Test hit count grows with each hit."""
        await cache.store("gen:a", sample_artifact)
        counts = [(await cache.lookup("gen:a")).hit_count for _ in range(3)]
        assert counts == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_should_count_concurrent_hits_exactly(self, cache, sample_artifact):
        """Test concurrent lookups never lose hit increments."""
        await cache.store("gen:a", sample_artifact)
        entries = await asyncio.gather(*(cache.lookup("gen:a") for _ in range(20)))

        assert sorted(e.hit_count for e in entries) == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_should_treat_expired_entry_as_miss(
        self, cache, sample_artifact, clock
    ):
        """Test entry past its TTL is removed on lookup."""
        await cache.store("gen:a", sample_artifact)
        clock.advance(3600)

        assert await cache.lookup("gen:a") is None
        stats = await cache.stats()
        assert stats.expirations == 1
        assert stats.size == 0

    @pytest.mark.asyncio
    async def test_should_shorten_ttl_for_low_confidence(self, cache):
        """Test flagged and low confidence artifacts get the short TTL."""
        low = Artifact(uris=["u"], confidence=0.2)
        flagged = Artifact(uris=["u"], flagged=True)
        normal = Artifact(uris=["u"], confidence=0.9)

        assert cache.ttl_for(low) == 60
        assert cache.ttl_for(flagged) == 60
        assert cache.ttl_for(normal) == 3600

        entry = await cache.store("gen:low", low)
        assert entry.ttl_seconds == 60

    @pytest.mark.asyncio
    async def test_should_replace_existing_entry(self, cache, sample_artifact):
        """Test second store overwrites."""
        await cache.store("gen:a", sample_artifact)
        replacement = Artifact(uris=["https://cdn.example.com/other.png"])
        await cache.store("gen:a", replacement)

        assert (await cache.lookup("gen:a")).artifact == replacement

    @pytest.mark.asyncio
    async def test_should_evict(self, cache, sample_artifact):
        """Test explicit invalidation."""
        await cache.store("gen:a", sample_artifact)

        assert await cache.evict("gen:a")
        assert not await cache.evict("gen:a")
        assert await cache.lookup("gen:a") is None

    @pytest.mark.asyncio
    async def test_should_sweep_expired(self, cache, sample_artifact, clock):
        """Test sweep removes expired entries."""
        await cache.store("gen:a", sample_artifact, ttl=10)
        await cache.store("gen:b", sample_artifact, ttl=1000)
        clock.advance(20)

        assert await cache.sweep() == 1
        assert (await cache.stats()).size == 1

    @pytest.mark.asyncio
    async def test_should_propagate_backend_errors_on_lookup(self):
        """Test unreachable backend raises CacheError."""
        repository = AsyncMock()
        repository.fetch = AsyncMock(side_effect=CacheError("down"))
        cache = ResultCache(repository, default_ttl=60)

        with pytest.raises(CacheError):
            await cache.lookup("gen:a")

    @pytest.mark.asyncio
    async def test_should_tolerate_size_failure_in_stats(self):
        """Test stats survive an unreachable backend."""
        repository = AsyncMock()
        repository.count = AsyncMock(side_effect=CacheError("down"))
        cache = ResultCache(repository, default_ttl=60)

        stats = await cache.stats()
        assert stats.size == 0

    @pytest.mark.asyncio
    async def test_should_start_and_stop_sweeper(self, cache):
        """Test background sweeper lifecycle."""
        task = cache.start_sweeper(interval_seconds=3600)
        assert cache.start_sweeper(interval_seconds=3600) is task

        await cache.stop_sweeper()
        assert task.cancelled()
