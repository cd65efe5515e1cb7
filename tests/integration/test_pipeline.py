"""Integration tests for the admission and execution pipeline."""

import asyncio
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from gengate.admission.counters import InMemoryCounterStore, WindowLimiter
from gengate.admission.gate import AdmissionGate
from gengate.admission.policy import AdmissionPolicy
from gengate.cache.result_cache import ResultCache
from gengate.exceptions import TransientGenerationError
from gengate.generation.provider import BaseGenerationProvider
from gengate.jobs.queue import JobQueue
from gengate.jobs.worker import WorkerPool
from gengate.models.decision import RejectionReason
from gengate.models.job import JobState
from gengate.moderation.client import KeywordModerationClient
from gengate.notifications.notifier import CompletionNotifier
from gengate.repositories.cache_repository import InMemoryCacheRepository
from gengate.repositories.job_repository import InMemoryJobRepository
from gengate.scheduling.ranker import PriorityRanker
from gengate.services.generation_service import GenerationService
from gengate.utils.retry import RetryPolicy


class ScriptedProvider(BaseGenerationProvider):
    """Provider that plays back a list of outcomes, then succeeds."""

    def __init__(self, artifact, outcomes=None):
        self._artifact = artifact
        self._outcomes = list(outcomes or [])
        self.calls = 0

    async def generate(self, payload):
        self.calls += 1
        if self._outcomes:
            outcome = self._outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
        return self._artifact

    def get_name(self):
        return "scripted"


@pytest.fixture
def build_pipeline(clock, sample_artifact):
    """
    Wire the pipeline over in-memory backends.

    Returns:
        Factory function
    """

    def _build(rate_limit=10, max_depth=100, outcomes=None, workers=2):
        transport = MagicMock()
        transport.deliver = AsyncMock()
        transport.close = AsyncMock()

        cache = ResultCache(InMemoryCacheRepository(), default_ttl=3600, clock=clock)
        store = InMemoryCounterStore(clock)
        ranker = PriorityRanker()
        queue = JobQueue(
            InMemoryJobRepository(),
            ranker=ranker,
            max_depth=max_depth,
            retry_policy=RetryPolicy(max_attempts=3, initial_delay=0.0),
            clock=clock,
        )
        notifier = CompletionNotifier(transport=transport, clock=clock)
        provider = ScriptedProvider(sample_artifact, outcomes)
        pool = WorkerPool(queue, provider, cache=cache, notifier=notifier, size=workers)
        gate = AdmissionGate(
            WindowLimiter(store, clock),
            KeywordModerationClient(["forbidden"]),
            cache=cache,
            policy=AdmissionPolicy(
                rate_limits={"free": rate_limit}, quotas={"free": 1000}
            ),
            clock=clock,
        )
        service = GenerationService(
            gate,
            queue,
            ranker=ranker,
            notifier=notifier,
            cache=cache,
            workers=pool,
            clock=clock,
        )
        return SimpleNamespace(
            cache=cache,
            queue=queue,
            notifier=notifier,
            transport=transport,
            provider=provider,
            workers=pool,
            service=service,
        )

    return _build


async def _drain(pipeline):
    await pipeline.workers.start()
    await asyncio.wait_for(pipeline.queue.join(), timeout=5)
    await pipeline.workers.stop()


class TestDuplicateBurst:
    """Identical requests arriving in a burst."""

    @pytest.mark.asyncio
    async def test_should_serve_cache_after_first_completion(
        self, build_pipeline, make_request, clock
    ):
        """Test requests after completion are cache hits without rate cost."""
        pipeline = build_pipeline(rate_limit=10)
        first = await pipeline.service.submit(make_request())
        assert first.accepted

        await _drain(pipeline)
        clock.advance(0.5)

        later = [await pipeline.service.submit(make_request()) for _ in range(11)]

        assert all(r.from_cache for r in later)
        assert pipeline.provider.calls == 1
        follow_up = await pipeline.service.submit(make_request(prompt="new prompt"))
        assert follow_up.accepted
        assert follow_up.rate_limit.remaining == 8

    @pytest.mark.asyncio
    async def test_should_rate_limit_beyond_budget_before_caching(
        self, build_pipeline, make_request, clock
    ):
        """Test burst beyond budget before completion is rejected."""
        pipeline = build_pipeline(rate_limit=10)

        responses = [await pipeline.service.submit(make_request()) for _ in range(12)]

        assert [r.status for r in responses] == ["accepted"] * 10 + ["rejected"] * 2
        rejected = responses[-1]
        assert rejected.reason is RejectionReason.RATE_LIMITED
        assert rejected.reset_at == clock.now + timedelta(seconds=60)
        assert rejected.retry_after == 60


class TestRetries:
    """Transient failures and the retry bound."""

    @pytest.mark.asyncio
    async def test_should_succeed_on_third_attempt(
        self, build_pipeline, make_request
    ):
        """Test two transient failures then success notifies once."""
        pipeline = build_pipeline(
            outcomes=[TransientGenerationError("503"), TransientGenerationError("503")],
            workers=1,
        )
        response = await pipeline.service.submit(
            make_request(callback_url="https://hooks.example.com/done")
        )
        await pipeline.notifier.start()

        await _drain(pipeline)
        await asyncio.wait_for(pipeline.notifier.join(), timeout=1)
        await pipeline.notifier.stop()

        job = await pipeline.queue.get(response.job_id)
        assert job.state is JobState.SUCCEEDED
        assert job.attempts == 3
        assert pipeline.notifier.stats().published == 1
        assert pipeline.transport.deliver.call_count == 1
        event = pipeline.transport.deliver.call_args.args[1]
        assert event.succeeded

    @pytest.mark.asyncio
    async def test_should_dead_letter_after_exhausting_attempts(
        self, build_pipeline, make_request
    ):
        """Test always-failing job runs exactly max attempts."""
        pipeline = build_pipeline(
            outcomes=[TransientGenerationError("503")] * 5, workers=1
        )
        response = await pipeline.service.submit(make_request())

        await _drain(pipeline)

        job = await pipeline.queue.get(response.job_id)
        assert job.state is JobState.DEAD_LETTERED
        assert job.attempts == 3
        assert pipeline.provider.calls == 3
        assert [j.job_id for j in await pipeline.service.dead_letters()] == [job.job_id]
        assert (await pipeline.cache.stats()).stores == 0


class TestBackpressure:
    """Queue saturation."""

    @pytest.mark.asyncio
    async def test_should_never_exceed_max_depth(self, build_pipeline, make_request):
        """Test enqueue fails fast once the queue is full."""
        pipeline = build_pipeline(rate_limit=100, max_depth=3)

        responses = [
            await pipeline.service.submit(make_request(prompt=f"prompt {i}"))
            for i in range(5)
        ]

        assert [r.status for r in responses] == ["accepted"] * 3 + ["rejected"] * 2
        assert responses[-1].reason is RejectionReason.QUEUE_SATURATED
        assert pipeline.queue.depth == 3
        assert pipeline.queue.stats().rejected == 2


class TestConcurrency:
    """Concurrent admission."""

    @pytest.mark.asyncio
    async def test_should_admit_exactly_limit_concurrently(
        self, build_pipeline, make_request
    ):
        """Test simultaneous submissions never over-admit."""
        pipeline = build_pipeline(rate_limit=10)

        responses = await asyncio.gather(
            *(
                pipeline.service.submit(make_request(prompt=f"prompt {i}"))
                for i in range(50)
            )
        )

        accepted = [r for r in responses if r.accepted]
        rejected = [r for r in responses if r.status == "rejected"]
        assert len(accepted) == 10
        assert all(r.reason is RejectionReason.RATE_LIMITED for r in rejected)
        assert len({r.job_id for r in accepted}) == 10

    @pytest.mark.asyncio
    async def test_should_process_each_job_once(self, build_pipeline, make_request):
        """Test workers never share a job and every job notifies once."""
        pipeline = build_pipeline(rate_limit=100, workers=4)
        for i in range(20):
            await pipeline.service.submit(make_request(prompt=f"prompt {i}"))

        await _drain(pipeline)

        stats = pipeline.notifier.stats()
        assert pipeline.provider.calls == 20
        assert stats.published == 20
        assert stats.duplicates == 0
        assert pipeline.queue.stats().by_state == {"succeeded": 20}
