"""
Generation submission service.

Orchestrates admission, ranking and enqueueing, and exposes job status,
cancellation and runtime counters to the API layer.

Sandi Metz Principles:
- Single Responsibility: Request orchestration
- Small methods: Each outcome built separately
- Dependency Injection: Gate, queue, ranker and notifier injected
"""

import asyncio
from typing import List, Optional

from gengate.admission.gate import SERVICE_UNAVAILABLE_RETRY_SECONDS, AdmissionGate
from gengate.cache.result_cache import ResultCache
from gengate.exceptions import QueueError, QueueSaturatedError
from gengate.jobs.queue import JobQueue
from gengate.jobs.worker import WorkerPool
from gengate.models.decision import RejectionReason, RestrictionDecision
from gengate.models.job import Job, JobState, JobStatus
from gengate.models.notification import CompletionEvent
from gengate.models.request import GenerationRequest
from gengate.models.response import MetricsResponse, QueueOverview, SubmissionResponse
from gengate.models.statistics import CacheStatistics, NotifierStatistics
from gengate.notifications.notifier import CompletionNotifier
from gengate.scheduling.ranker import PriorityRanker, RankingMetadata
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger, log_error

logger = get_logger(__name__)

SATURATION_RETRY_SECONDS = 5


class GenerationService:
    """
    Main submission service.

    Flow: Admission Gate -> (cached | rejected | Priority Ranker -> Job Queue)
    """

    def __init__(
        self,
        gate: AdmissionGate,
        queue: JobQueue,
        ranker: Optional[PriorityRanker] = None,
        notifier: Optional[CompletionNotifier] = None,
        cache: Optional[ResultCache] = None,
        workers: Optional[WorkerPool] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize service.

        Args:
            gate: Admission gate
            queue: Job queue
            ranker: Priority ranker (default weights if None)
            notifier: Completion notifier for cancellations and waiters
            cache: Result cache, used for metrics
            workers: Worker pool, used for metrics
            clock: Time source
        """
        self._gate = gate
        self._queue = queue
        self._ranker = ranker or PriorityRanker()
        self._notifier = notifier
        self._cache = cache
        self._workers = workers
        self._clock = clock or utc_now

    async def submit(self, request: GenerationRequest) -> SubmissionResponse:
        """
        Admit and enqueue a request.

        Args:
            request: Generation request

        Returns:
            Cached, accepted or rejected submission
        """
        decision = await self._gate.evaluate(request)

        if decision.is_cache_hit:
            return self._build_cached_response(decision, request)
        if not decision.allowed:
            return self._build_rejected_response(decision, request)

        job = self._build_job(request, decision)
        try:
            job_id = await self._queue.enqueue(job)
        except QueueSaturatedError:
            await self._gate.refund(decision)
            return self._build_rejected_response(
                RestrictionDecision.reject(
                    RejectionReason.QUEUE_SATURATED,
                    fingerprint=decision.fingerprint,
                    retry_after=SATURATION_RETRY_SECONDS,
                    rate_limit=decision.rate_limit,
                ),
                request,
            )
        except QueueError as e:
            log_error(e, "enqueue", correlation_id=request.correlation_id)
            await self._gate.refund(decision)
            return self._build_rejected_response(
                RestrictionDecision.reject(
                    RejectionReason.SERVICE_UNAVAILABLE,
                    fingerprint=decision.fingerprint,
                    retry_after=SERVICE_UNAVAILABLE_RETRY_SECONDS,
                ),
                request,
            )

        return SubmissionResponse(
            status="accepted",
            job_id=job_id,
            state=JobState.QUEUED,
            quota_remaining=decision.quota_remaining,
            fingerprint=decision.fingerprint,
            correlation_id=request.correlation_id,
            rate_limit=decision.rate_limit,
        )

    async def get_status(self, job_id: str) -> JobStatus:
        """
        Get job status.

        Raises:
            JobNotFoundError: If job is unknown or purged
        """
        return await self._queue.status(job_id)

    async def cancel(self, job_id: str) -> JobStatus:
        """
        Cancel a job.

        Raises:
            JobNotFoundError: If job is unknown
            IllegalTransitionError: If job already finished
        """
        job = await self._queue.cancel(job_id)
        if job.is_terminal and self._notifier is not None:
            await self._notifier.notify(job)
        return JobStatus.from_job(job, queue_position=self._queue.position(job_id))

    async def wait_for_completion(
        self, job_id: str, timeout: Optional[float] = None
    ) -> CompletionEvent:
        """
        Wait for a job's completion event.

        Args:
            job_id: Job to wait for
            timeout: Seconds to wait (None waits forever)

        Returns:
            Completion event

        Raises:
            JobNotFoundError: If job is unknown
            asyncio.TimeoutError: If the job does not finish in time
        """
        job = await self._queue.get(job_id)
        if job.is_terminal or self._notifier is None:
            return CompletionEvent.from_job(job)

        events = self._notifier.subscribe(job_id)
        try:
            return await asyncio.wait_for(events.get(), timeout)
        finally:
            self._notifier.unsubscribe(job_id, events)

    async def dead_letters(self) -> List[Job]:
        """Get dead-lettered jobs for operator inspection."""
        return await self._queue.dead_letters()

    async def metrics(self) -> MetricsResponse:
        """Get runtime counters."""
        cache_stats = (
            await self._cache.stats() if self._cache is not None else CacheStatistics()
        )
        notifier_stats = (
            self._notifier.stats()
            if self._notifier is not None
            else NotifierStatistics()
        )
        return MetricsResponse(
            cache=cache_stats,
            queue=self._queue.stats(),
            notifications=notifier_stats,
            workers=self._workers.size if self._workers and self._workers.running else 0,
        )

    def queue_overview(self) -> QueueOverview:
        """Get queue load and the wait a new job can expect."""
        stats = self._queue.stats()
        running = self._workers is not None and self._workers.running
        concurrency = self._workers.size if running else 0
        return QueueOverview(
            queued=stats.queued,
            active=stats.active,
            max_concurrent=concurrency,
            current_concurrent=self._workers.busy if running else 0,
            estimated_wait_seconds=stats.estimated_wait_seconds(concurrency),
            processing_rate_per_minute=stats.processing_rate_per_minute(concurrency),
        )

    def _build_job(self, request: GenerationRequest, decision: RestrictionDecision) -> Job:
        now = self._clock()
        return Job(
            fingerprint=decision.fingerprint,
            subject_id=request.subject_id,
            correlation_id=request.correlation_id,
            priority=self._ranker.rank(request, RankingMetadata(now=now)),
            tier=request.tier,
            priority_hint=request.priority_hint,
            payload=request.to_payload(),
            created_at=request.requested_at,
            callback_url=request.callback_url,
            callback_data=request.callback_data,
            batch_id=request.batch_id,
        )

    def _build_cached_response(
        self, decision: RestrictionDecision, request: GenerationRequest
    ) -> SubmissionResponse:
        logger.debug("Serving cached artifact", fingerprint=decision.fingerprint)
        return SubmissionResponse(
            status="cached",
            artifact=decision.cached_artifact,
            fingerprint=decision.fingerprint,
            correlation_id=request.correlation_id,
        )

    def _build_rejected_response(
        self, decision: RestrictionDecision, request: GenerationRequest
    ) -> SubmissionResponse:
        return SubmissionResponse(
            status="rejected",
            reason=decision.reason,
            reset_at=decision.reset_at,
            retry_after=decision.retry_after,
            quota_remaining=decision.quota_remaining,
            categories=decision.categories,
            fingerprint=decision.fingerprint,
            correlation_id=request.correlation_id,
            rate_limit=decision.rate_limit,
        )
