"""
Worker Pool.

Fixed set of asyncio workers that execute queued jobs against the
generation provider, populate the result cache and publish outcomes.

Sandi Metz Principles:
- Single Responsibility: Job execution
- Small methods: Attempt, success and failure handling isolated
- Dependency Injection: Queue, provider, cache and notifier injected
"""

import asyncio
from typing import List, Optional

from gengate.cache.result_cache import ResultCache
from gengate.exceptions import (
    AppError,
    CacheError,
    PermanentGenerationError,
    TransientGenerationError,
)
from gengate.generation.provider import BaseGenerationProvider
from gengate.jobs.queue import JobQueue
from gengate.models.artifact import Artifact
from gengate.models.job import Job
from gengate.notifications.notifier import CompletionNotifier
from gengate.utils.logger import (
    bind_correlation_id,
    clear_correlation_id,
    get_logger,
    log_error,
)

logger = get_logger(__name__)

ERROR_BACKOFF_SECONDS = 1.0


class WorkerPool:
    """
    Executes jobs with bounded concurrency.

    A failure in one job never stops its worker; the job is handed back
    to the queue as a transient or permanent failure.
    """

    def __init__(
        self,
        queue: JobQueue,
        provider: BaseGenerationProvider,
        cache: Optional[ResultCache] = None,
        notifier: Optional[CompletionNotifier] = None,
        size: int = 4,
        generation_timeout: float = 120.0,
    ):
        """
        Initialize worker pool.

        Args:
            queue: Job queue to consume
            provider: Generation backend
            cache: Result cache populated on success (None disables)
            notifier: Completion notifier (None disables)
            size: Number of concurrent workers
            generation_timeout: Seconds allowed per attempt
        """
        self._queue = queue
        self._provider = provider
        self._cache = cache
        self._notifier = notifier
        self._size = size
        self._generation_timeout = generation_timeout
        self._tasks: List[asyncio.Task] = []
        self._busy = 0

    @property
    def size(self) -> int:
        return self._size

    @property
    def busy(self) -> int:
        """Get number of workers currently executing a job."""
        return self._busy

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start worker tasks."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run(index), name=f"worker-{index}")
            for index in range(self._size)
        ]
        logger.info("Worker pool started", size=self._size)

    async def stop(self) -> None:
        """
        Stop worker tasks.

        Interrupted jobs stay RUNNING in the repository and are retried
        by recovery on the next start.
        """
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Worker pool stopped")

    async def process(self, job: Job) -> Job:
        """
        Execute one attempt of a running job.

        Args:
            job: Job already marked RUNNING by the queue

        Returns:
            Job after the attempt outcome is recorded
        """
        bind_correlation_id(job.correlation_id)
        try:
            artifact = await self._attempt(job)
        except PermanentGenerationError as e:
            final = await self._queue.fail(job.job_id, e, permanent=True)
        except (TransientGenerationError, asyncio.TimeoutError) as e:
            final = await self._queue.fail(job.job_id, e, permanent=False)
        except Exception as e:
            log_error(e, "generation", job_id=job.job_id)
            final = await self._queue.fail(job.job_id, e, permanent=False)
        else:
            final = await self._succeed(job, artifact)
        finally:
            clear_correlation_id()

        if final.is_terminal and self._notifier is not None:
            await self._notifier.notify(final)
        return final

    async def _run(self, index: int) -> None:
        logger.debug("Worker running", worker=index)
        while True:
            job = None
            try:
                job = await self._queue.dequeue()
                self._busy += 1
                await self.process(job)
            except AppError as e:
                log_error(e, "worker", worker=index, job_id=job.job_id if job else None)
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)
            finally:
                if job is not None:
                    self._busy -= 1

    async def _attempt(self, job: Job) -> Artifact:
        logger.info(
            "Generation started",
            job_id=job.job_id,
            attempt=job.attempts,
            provider=self._provider.get_name(),
        )
        return await asyncio.wait_for(
            self._provider.generate(job.payload), timeout=self._generation_timeout
        )

    async def _succeed(self, job: Job, artifact: Artifact) -> Job:
        if not await self._queue.is_cancel_requested(job.job_id):
            await self._cache_artifact(job, artifact)
        return await self._queue.complete(job.job_id, artifact)

    async def _cache_artifact(self, job: Job, artifact: Artifact) -> None:
        if self._cache is None or job.fingerprint is None:
            return
        try:
            await self._cache.store(job.fingerprint, artifact)
        except CacheError as e:
            log_error(e, "cache_store", job_id=job.job_id)
