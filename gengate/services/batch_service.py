"""
Batch submission service.

Admits each item of a batch through the normal submission path and
reports the batch outcome once every item has finished.

Sandi Metz Principles:
- Single Responsibility: Batch orchestration
- Dependency Injection: Submission service, queue and storage injected
"""

from typing import Optional

from gengate.exceptions import BatchNotFoundError, BatchTooLargeError, JobNotFoundError
from gengate.jobs.queue import JobQueue
from gengate.models.batch import (
    Batch,
    BatchCompletionEvent,
    BatchItemRecord,
    BatchStatus,
    BatchSubmission,
)
from gengate.models.notification import CompletionEvent
from gengate.models.request import GenerationRequest
from gengate.notifications.notifier import CompletionNotifier
from gengate.repositories.batch_repository import BatchRepository
from gengate.services.generation_service import GenerationService
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger

logger = get_logger(__name__)


class BatchService:
    """
    Batch orchestration.

    Items are admitted one by one, so each consumes rate limit and quota
    like a single submission; a rejected item is recorded as a failure and
    the rest of the batch proceeds.
    """

    def __init__(
        self,
        generations: GenerationService,
        queue: JobQueue,
        repository: BatchRepository,
        notifier: Optional[CompletionNotifier] = None,
        max_batch_size: int = 50,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize service.

        Args:
            generations: Single-request submission service
            queue: Job queue, read for item states
            repository: Batch storage
            notifier: Publishes the batch webhook
            max_batch_size: Most items accepted in one batch
            clock: Time source
        """
        self._generations = generations
        self._queue = queue
        self._repository = repository
        self._notifier = notifier
        self._max_batch_size = max_batch_size
        self._clock = clock or utc_now

    async def submit_batch(
        self, submission: BatchSubmission, subject_id: str, tier: str
    ) -> BatchStatus:
        """
        Admit every item of a batch.

        Args:
            submission: Batch body
            subject_id: Rate-limited actor
            tier: Subscription tier

        Returns:
            Batch status with each item's admission outcome

        Raises:
            BatchTooLargeError: If the batch exceeds the size limit
            QueueError: If the batch record cannot be stored
        """
        if len(submission.items) > self._max_batch_size:
            raise BatchTooLargeError(len(submission.items), self._max_batch_size)

        batch = Batch(
            subject_id=subject_id,
            name=submission.name,
            priority_hint=submission.priority_hint,
            callback_url=submission.callback_url,
            callback_data=submission.callback_data,
            created_at=self._clock(),
        )
        for index, item in enumerate(submission.items):
            response = await self._generations.submit(
                GenerationRequest(
                    prompt=item.prompt,
                    parameters=item.parameters,
                    subject_id=subject_id,
                    tier=tier,
                    priority_hint=submission.priority_hint,
                    callback_data=item.callback_data,
                    correlation_id=f"{batch.batch_id}:{index}",
                    batch_id=batch.batch_id,
                )
            )
            batch.items.append(
                BatchItemRecord(
                    index=index,
                    status=response.status,
                    job_id=response.job_id,
                    state=response.state,
                    reason=response.reason,
                    fingerprint=response.fingerprint,
                )
            )

        await self._repository.save(batch)
        logger.info(
            "Batch submitted",
            batch_id=batch.batch_id,
            total=batch.total,
            accepted=len(batch.job_ids()),
        )
        await self._refresh(batch)
        await self._finish_if_done(batch)
        return BatchStatus.from_batch(batch)

    async def get_batch(self, batch_id: str) -> BatchStatus:
        """
        Get batch status with current item states.

        Raises:
            BatchNotFoundError: If batch is unknown or expired
        """
        batch = await self._repository.get(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        await self._refresh(batch)
        await self._finish_if_done(batch)
        return BatchStatus.from_batch(batch)

    async def on_completion(self, event: CompletionEvent) -> None:
        """Update the batch of a finished job."""
        if event.batch_id is None:
            return
        batch = await self._repository.get(event.batch_id)
        if batch is None:
            # Still submitting; submit_batch refreshes after saving
            logger.debug("Batch not stored yet", batch_id=event.batch_id)
            return
        await self._refresh(batch)
        await self._finish_if_done(batch)

    async def _refresh(self, batch: Batch) -> None:
        for item in batch.items:
            if item.job_id is None or (item.state and item.state.is_terminal):
                continue
            try:
                job = await self._queue.get(item.job_id)
            except JobNotFoundError:
                logger.debug("Batch job purged", batch_id=batch.batch_id, job_id=item.job_id)
                continue
            item.state = job.state

    async def _finish_if_done(self, batch: Batch) -> None:
        if not batch.is_finished:
            return
        if batch.completed_at is None:
            batch.completed_at = self._clock()
            await self._repository.save(batch)
        if not await self._repository.mark_completed(batch.batch_id):
            return

        logger.info(
            "Batch finished",
            batch_id=batch.batch_id,
            state=batch.state.value,
            succeeded=batch.success_count,
            failed=batch.failure_count,
        )
        if batch.callback_url and self._notifier is not None:
            self._notifier.publish_batch(
                batch.callback_url, BatchCompletionEvent.from_batch(batch)
            )
