"""
Job Queue.

Bounded priority queue of admitted generation jobs. Owns the job state
machine: every transition goes through this class and is written to the
job repository. A transition whose write fails stays applied in memory and
is written again by persist_pending().

Sandi Metz Principles:
- Single Responsibility: Job scheduling and lifecycle
- Small methods: Each transition isolated
- Dependency Injection: Repository, ranker and clock injected
"""

import asyncio
import heapq
import itertools
import uuid
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, List, Optional, Set, Tuple

from gengate.exceptions import (
    IllegalTransitionError,
    JobNotFoundError,
    QueueError,
    QueueSaturatedError,
)
from gengate.models.artifact import Artifact
from gengate.models.job import Job, JobError, JobState, JobStatus
from gengate.models.statistics import QueueStatistics
from gengate.repositories.job_repository import JobRepository
from gengate.scheduling.ranker import PriorityRanker
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger, log_job_transition
from gengate.utils.retry import RetryPolicy

logger = get_logger(__name__)

SortKey = Tuple[int, float, int]

# Attempt durations kept for the wait estimate
DURATION_SAMPLES = 100


class JobQueue:
    """
    Bounded, prioritized job queue.

    Depth counts every non-terminal job, including running jobs and jobs
    waiting out a retry delay, so the bound holds across retries.
    """

    def __init__(
        self,
        repository: JobRepository,
        ranker: Optional[PriorityRanker] = None,
        max_depth: int = 1000,
        retry_policy: Optional[RetryPolicy] = None,
        retention_seconds: int = 86400,
        clock: Optional[Clock] = None,
        owner_id: Optional[str] = None,
        lease_seconds: int = 30,
    ):
        """
        Initialize queue.

        Args:
            repository: Durable job storage
            ranker: Priority ranker used when re-queuing retries
            max_depth: Maximum number of non-terminal jobs
            retry_policy: Attempt ceiling and backoff
            retention_seconds: How long terminal jobs stay queryable
            clock: Time source
            owner_id: Identity of this queue instance in the repository
            lease_seconds: Heartbeat lifetime before other instances may
                take over this instance's jobs
        """
        self._repository = repository
        self._ranker = ranker or PriorityRanker()
        self._max_depth = max_depth
        self._retry_policy = retry_policy or RetryPolicy()
        self._retention_seconds = retention_seconds
        self._clock = clock or utc_now
        self._owner_id = owner_id or uuid.uuid4().hex
        self._lease_seconds = lease_seconds

        self._jobs: Dict[str, Job] = {}
        self._unpersisted: Set[str] = set()
        self._durations: Deque[float] = deque(maxlen=DURATION_SAMPLES)
        self._ready: List[Tuple[SortKey, str]] = []
        self._delayed: List[Tuple[float, int, str]] = []
        self._heap_keys: Dict[str, SortKey] = {}
        self._sequence = itertools.count()
        self._condition = asyncio.Condition()

        self._depth = 0
        self._enqueued = 0
        self._rejected = 0
        self._retries = 0

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def depth(self) -> int:
        """Get number of non-terminal jobs."""
        return self._depth

    async def enqueue(self, job: Job) -> str:
        """
        Insert an admitted job.

        Never waits for a worker; fails fast when the queue is full.

        Args:
            job: Job in QUEUED state with its priority already set

        Returns:
            Job ID

        Raises:
            QueueSaturatedError: If depth is at the ceiling
            QueueError: If the job cannot be persisted
        """
        async with self._condition:
            if self._depth >= self._max_depth:
                self._rejected += 1
                logger.warning(
                    "Queue saturated", depth=self._depth, max_depth=self._max_depth
                )
                raise QueueSaturatedError(self._depth, self._max_depth)

            if job.state is not JobState.QUEUED:
                raise IllegalTransitionError(
                    job.job_id, job.state.value, JobState.QUEUED.value
                )

            queued = job.model_copy(deep=True)
            queued.max_attempts = self._retry_policy.max_attempts
            queued.enqueued_at = self._clock()
            queued.owner_id = self._owner_id
            await self._repository.save(queued)

            self._jobs[queued.job_id] = queued
            self._depth += 1
            self._enqueued += 1
            self._push_ready(queued)
            self._condition.notify_all()

        logger.info(
            "Job enqueued",
            job_id=queued.job_id,
            priority=queued.priority,
            depth=self._depth,
        )
        return queued.job_id

    async def dequeue(self, timeout: Optional[float] = None) -> Optional[Job]:
        """
        Take the highest-priority runnable job and mark it RUNNING.

        Args:
            timeout: Seconds to wait for a job (None waits forever)

        Returns:
            Snapshot of the running job, or None on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        async with self._condition:
            while True:
                self._promote_due()
                job_id = self._pop_ready()
                if job_id is not None:
                    return await self._start(job_id)

                wait_for = self._seconds_until_next_due()
                if deadline is not None:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)
                await self._wait(wait_for)

    async def complete(self, job_id: str, artifact: Artifact) -> Job:
        """
        Record a successful attempt.

        A job whose cancellation was requested while running ends CANCELLED
        and the artifact is discarded.

        Args:
            job_id: Running job
            artifact: Produced artifact

        Returns:
            Snapshot of the terminal job
        """
        async with self._condition:
            job = self._require(job_id).model_copy(deep=True)
            self._record_duration(job)
            if job.cancel_requested:
                self._transition(job, JobState.CANCELLED)
            else:
                job.result = artifact
                self._transition(job, JobState.SUCCEEDED)
            await self._commit(job)
            return job.model_copy(deep=True)

    async def fail(self, job_id: str, error: BaseException, permanent: bool = False) -> Job:
        """
        Record a failed attempt.

        Transient failures are re-queued with backoff until the attempt
        ceiling; permanent failures and exhausted jobs are dead-lettered.

        Args:
            job_id: Running job
            error: Failure cause
            permanent: Whether retrying cannot help

        Returns:
            Snapshot of the job after the failure is handled
        """
        async with self._condition:
            job = self._require(job_id).model_copy(deep=True)
            self._record_duration(job)
            job.last_error = JobError.from_exception(error, retryable=not permanent)

            if job.cancel_requested:
                self._transition(job, JobState.CANCELLED)
            else:
                self._transition(job, JobState.FAILED)
                if not permanent and job.can_retry:
                    self._schedule_retry(job)
                else:
                    self._transition(job, JobState.DEAD_LETTERED)
                    logger.warning(
                        "Job dead-lettered",
                        job_id=job.job_id,
                        attempts=job.attempts,
                        error=job.last_error.message,
                    )

            await self._commit(job)
            return job.model_copy(deep=True)

    async def cancel(self, job_id: str) -> Job:
        """
        Cancel a job.

        A queued job is cancelled immediately. A running job is flagged and
        ends CANCELLED when its attempt finishes.

        Args:
            job_id: Job to cancel

        Returns:
            Snapshot of the job

        Raises:
            JobNotFoundError: If job is unknown
            IllegalTransitionError: If job is already terminal
        """
        async with self._condition:
            job = self._require(job_id).model_copy(deep=True)
            if job.state is JobState.RUNNING:
                job.cancel_requested = True
                self._jobs[job_id] = job
                await self._persist(job)
                logger.info("Cancellation requested", job_id=job_id)
            else:
                self._transition(job, JobState.CANCELLED)
                await self._commit(job)
            return job.model_copy(deep=True)

    async def is_cancel_requested(self, job_id: str) -> bool:
        """Check if a running job was asked to cancel."""
        job = self._jobs.get(job_id)
        return bool(job and job.cancel_requested)

    async def get(self, job_id: str) -> Job:
        """
        Get job snapshot.

        Raises:
            JobNotFoundError: If job is unknown or purged
        """
        job = self._jobs.get(job_id)
        if job is None:
            job = await self._repository.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job.model_copy(deep=True)

    async def status(self, job_id: str) -> JobStatus:
        """Get status view including queue position."""
        job = await self.get(job_id)
        return JobStatus.from_job(job, queue_position=self.position(job_id))

    def position(self, job_id: str) -> Optional[int]:
        """
        Get 1-based position among queued jobs.

        Returns:
            Position, or None if the job is not queued here
        """
        queued = [
            (key, jid)
            for jid, key in self._heap_keys.items()
            if self._jobs[jid].state is JobState.QUEUED
        ]
        queued.sort()
        for index, (_, jid) in enumerate(queued, start=1):
            if jid == job_id:
                return index
        return None

    async def dead_letters(self) -> List[Job]:
        """
        Get dead-lettered jobs, oldest first.

        Reads the repository so jobs dead-lettered before a restart or by
        another instance are included; unwritten local transitions win.

        Raises:
            QueueError: If the repository cannot be read
        """
        jobs = {job.job_id: job for job in await self._repository.list_dead_lettered()}
        for job in self._jobs.values():
            if job.state is JobState.DEAD_LETTERED:
                jobs[job.job_id] = job.model_copy(deep=True)
        return sorted(jobs.values(), key=lambda job: job.created_at)

    async def join(self) -> None:
        """Wait until every job has reached a terminal state."""
        async with self._condition:
            await self._condition.wait_for(lambda: self._depth == 0)

    async def purge_expired(self) -> int:
        """
        Forget terminal jobs past the retention window.

        A job whose record cannot be deleted stays for the next sweep.

        Returns:
            Number of jobs removed
        """
        cutoff = self._clock() - timedelta(seconds=self._retention_seconds)
        purged = 0
        async with self._condition:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.is_terminal and job.completed_at and job.completed_at <= cutoff
            ]
            for job_id in expired:
                try:
                    await self._repository.delete(job_id)
                except QueueError as e:
                    logger.warning("Purge deferred", job_id=job_id, error=str(e))
                    continue
                del self._jobs[job_id]
                self._unpersisted.discard(job_id)
                purged += 1

        if purged:
            logger.info("Purged expired jobs", count=purged)
        return purged

    async def persist_pending(self) -> int:
        """
        Write transitions whose earlier write failed.

        Returns:
            Number of jobs written
        """
        written = 0
        async with self._condition:
            for job_id in sorted(self._unpersisted):
                job = self._jobs.get(job_id)
                if job is None:
                    self._unpersisted.discard(job_id)
                    continue
                try:
                    await self._repository.save(job)
                except QueueError as e:
                    logger.warning("Job write still failing", job_id=job_id, error=str(e))
                    break
                self._unpersisted.discard(job_id)
                written += 1

        if written:
            logger.info("Wrote pending job transitions", count=written)
        return written

    async def heartbeat(self) -> None:
        """
        Renew this instance's lease on its jobs.

        Raises:
            QueueError: If the repository is unreachable
        """
        await self._repository.heartbeat(self._owner_id, self._lease_seconds)

    async def release(self) -> None:
        """
        Give up this instance's lease so other instances adopt its jobs.

        Raises:
            QueueError: If the repository is unreachable
        """
        await self._repository.retire(self._owner_id)
        logger.info("Queue lease released", owner_id=self._owner_id)

    async def recover(self) -> int:
        """
        Adopt non-terminal jobs from the repository.

        Only jobs this instance can claim are taken: unowned jobs, jobs
        already leased to its owner id, and jobs whose owner stopped
        heartbeating. Adoption stops at the depth ceiling. Jobs found
        RUNNING were interrupted; they count as a failed transient attempt
        and follow the normal retry rules.

        Returns:
            Number of jobs restored to the queue
        """
        await self.heartbeat()
        restored = 0
        skipped = 0
        async with self._condition:
            for stored in await self._repository.list_active():
                if stored.job_id in self._jobs:
                    continue
                if self._depth >= self._max_depth:
                    logger.warning("Queue full, adoption deferred", depth=self._depth)
                    break
                if not await self._repository.claim(stored.job_id, self._owner_id):
                    skipped += 1
                    continue
                job = stored.model_copy(deep=True)
                job.owner_id = self._owner_id
                self._jobs[job.job_id] = job
                self._depth += 1

                if job.state is JobState.RUNNING:
                    await self._recover_interrupted(job)
                elif job.state is JobState.QUEUED:
                    self._push_restored(job)
                    await self._persist(job)
                restored += 1 if job.state is JobState.QUEUED else 0

            self._condition.notify_all()

        logger.info(
            "Recovered jobs",
            restored=restored,
            owned_elsewhere=skipped,
            depth=self._depth,
        )
        return restored

    def stats(self) -> QueueStatistics:
        """Get queue statistics."""
        by_state: Dict[str, int] = {}
        for job in self._jobs.values():
            by_state[job.state.value] = by_state.get(job.state.value, 0) + 1
        average = sum(self._durations) / len(self._durations) if self._durations else 0.0
        return QueueStatistics(
            depth=self._depth,
            max_depth=self._max_depth,
            by_state=by_state,
            queued=by_state.get(JobState.QUEUED.value, 0),
            active=by_state.get(JobState.RUNNING.value, 0),
            enqueued=self._enqueued,
            rejected=self._rejected,
            retries=self._retries,
            unpersisted=len(self._unpersisted),
            average_run_seconds=round(average, 3),
        )

    async def _start(self, job_id: str) -> Job:
        job = self._jobs[job_id].model_copy(deep=True)
        self._transition(job, JobState.RUNNING)
        job.attempts += 1
        job.eligible_at = None
        job.started_at = self._clock()
        try:
            await self._repository.save(job)
        except QueueError:
            self._push_ready(self._jobs[job_id])
            raise
        self._jobs[job_id] = job
        self._heap_keys.pop(job_id, None)
        return job.model_copy(deep=True)

    async def _commit(self, job: Job) -> None:
        self._jobs[job.job_id] = job
        if job.state is not JobState.QUEUED:
            self._heap_keys.pop(job.job_id, None)
        if job.is_terminal:
            self._depth -= 1
        self._condition.notify_all()
        await self._persist(job)

    async def _persist(self, job: Job) -> None:
        try:
            await self._repository.save(job)
        except QueueError as e:
            self._unpersisted.add(job.job_id)
            logger.error(
                "Job write failed, kept in memory",
                job_id=job.job_id,
                state=job.state.value,
                error=str(e),
            )
        else:
            self._unpersisted.discard(job.job_id)

    def _record_duration(self, job: Job) -> None:
        if job.started_at is not None:
            elapsed = (self._clock() - job.started_at).total_seconds()
            self._durations.append(max(0.0, elapsed))

    def _transition(self, job: Job, new_state: JobState) -> None:
        previous = job.transition_to(new_state, self._clock())
        log_job_transition(
            job.job_id, previous.value, new_state.value, attempts=job.attempts
        )

    def _schedule_retry(self, job: Job) -> None:
        now = self._clock()
        delay = self._retry_policy.delay_for(job.attempts)
        self._transition(job, JobState.QUEUED)
        job.enqueued_at = now
        job.eligible_at = now + timedelta(seconds=delay)
        job.priority = self._ranker.rank_job(job, now)
        self._retries += 1
        self._push_delayed(job)
        logger.info(
            "Job retry scheduled",
            job_id=job.job_id,
            attempt=job.attempts,
            delay_seconds=delay,
        )

    async def _recover_interrupted(self, job: Job) -> None:
        interrupted = RuntimeError("Worker interrupted before the attempt finished")
        job.last_error = JobError.from_exception(interrupted, retryable=True)
        self._transition(job, JobState.FAILED)
        if job.can_retry:
            self._schedule_retry(job)
        else:
            self._transition(job, JobState.DEAD_LETTERED)
            self._depth -= 1
        await self._persist(job)

    def _push_restored(self, job: Job) -> None:
        if job.eligible_at and job.eligible_at > self._clock():
            self._push_delayed(job)
        else:
            self._push_ready(job)

    def _push_ready(self, job: Job) -> None:
        key = PriorityRanker.sort_key(
            job.priority, job.enqueued_at or job.created_at, next(self._sequence)
        )
        self._heap_keys[job.job_id] = key
        heapq.heappush(self._ready, (key, job.job_id))

    def _push_delayed(self, job: Job) -> None:
        key = PriorityRanker.sort_key(
            job.priority, job.enqueued_at or job.created_at, next(self._sequence)
        )
        self._heap_keys[job.job_id] = key
        heapq.heappush(
            self._delayed, (job.eligible_at.timestamp(), key[2], job.job_id)
        )

    def _promote_due(self) -> None:
        now = self._clock().timestamp()
        while self._delayed and self._delayed[0][0] <= now:
            _, sequence, job_id = heapq.heappop(self._delayed)
            key = self._heap_keys.get(job_id)
            if key is None or key[2] != sequence:
                continue
            heapq.heappush(self._ready, (key, job_id))

    def _pop_ready(self) -> Optional[str]:
        while self._ready:
            key, job_id = heapq.heappop(self._ready)
            job = self._jobs.get(job_id)
            if job is None or job.state is not JobState.QUEUED:
                continue
            if self._heap_keys.get(job_id) != key:
                continue
            return job_id
        return None

    def _seconds_until_next_due(self) -> Optional[float]:
        if not self._delayed:
            return None
        return max(0.0, self._delayed[0][0] - self._clock().timestamp())

    async def _wait(self, timeout: Optional[float]) -> None:
        try:
            await asyncio.wait_for(self._condition.wait(), timeout)
        except asyncio.TimeoutError:
            pass

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job
