"""
Completion Notifier.

Publishes terminal job outcomes to in-process subscribers and to caller
webhooks. Each job is published at most once; webhook delivery retries
with backoff and never blocks the worker that published.

Sandi Metz Principles:
- Single Responsibility: Outcome delivery
- Small methods: Publish, subscribe and deliver isolated
- Dependency Injection: Transport and retry policy injected
"""

import asyncio
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from gengate.exceptions import AppError, NotificationDeliveryError
from gengate.models.batch import BatchCompletionEvent
from gengate.models.job import Job
from gengate.models.notification import CompletionEvent
from gengate.models.statistics import NotifierStatistics
from gengate.notifications.transport import WebhookEvent, WebhookTransport
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger, log_error
from gengate.utils.retry import RetryPolicy

logger = get_logger(__name__)

MAX_RETAINED_EVENTS = 10000

Sleep = Callable[[float], Awaitable[None]]
Listener = Callable[[CompletionEvent], Awaitable[None]]


class CompletionNotifier:
    """
    Exactly-once completion publisher.

    Published events are retained for the retention window, up to
    max_retained of them, and retained events double as the record of what
    was already published. Subscribers registering after a job finished
    still receive its event while it is retained.
    """

    def __init__(
        self,
        transport: Optional[WebhookTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
        workers: int = 2,
        sleep: Optional[Sleep] = None,
        max_retained: int = MAX_RETAINED_EVENTS,
        retention_seconds: int = 86400,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize notifier.

        Args:
            transport: Webhook transport
            retry_policy: Delivery attempt ceiling and backoff
            workers: Number of concurrent delivery tasks
            sleep: Awaitable used between delivery attempts
            max_retained: Most events kept for replay and duplicate checks
            retention_seconds: How long events are kept (0 keeps until evicted)
            clock: Time source
        """
        self._transport = transport or WebhookTransport()
        self._retry_policy = retry_policy or RetryPolicy(max_attempts=5, initial_delay=0.5)
        self._workers = workers
        self._sleep = sleep or asyncio.sleep
        self._max_retained = max_retained
        self._retention_seconds = retention_seconds
        self._clock = clock or utc_now

        self._events: "OrderedDict[str, Tuple[datetime, CompletionEvent]]" = (
            OrderedDict()
        )
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}
        self._listeners: List[Listener] = []
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._tasks: List[asyncio.Task] = []

        self._published = 0
        self._delivered = 0
        self._failed = 0
        self._duplicates = 0

    def add_listener(self, listener: Listener) -> None:
        """
        Call listener with every published job event.

        Listener errors are logged and do not affect publication.
        """
        self._listeners.append(listener)

    async def notify(self, job: Job) -> bool:
        """
        Publish a terminal job outcome.

        Args:
            job: Job in a terminal state

        Returns:
            True if published, False if this job was already published

        Raises:
            ValueError: If job is not terminal
        """
        self._prune()
        if job.job_id in self._events:
            self._duplicates += 1
            logger.debug("Duplicate notification ignored", job_id=job.job_id)
            return False

        event = CompletionEvent.from_job(job)
        self._published += 1
        self._retain(event)

        for queue in self._subscribers.pop(job.job_id, []):
            queue.put_nowait(event)

        if job.callback_url:
            self._outbound.put_nowait((job.callback_url, event))

        logger.info(
            "Completion published",
            job_id=job.job_id,
            state=event.state.value,
            webhook=bool(job.callback_url),
        )
        await self._call_listeners(event)
        return True

    def publish_batch(self, url: str, event: BatchCompletionEvent) -> None:
        """
        Queue a batch outcome for webhook delivery.

        Args:
            url: Batch webhook URL
            event: Batch completion event
        """
        self._outbound.put_nowait((url, event))
        logger.info(
            "Batch completion published",
            batch_id=event.batch_id,
            state=event.state.value,
        )

    def subscribe(self, job_id: str) -> asyncio.Queue:
        """
        Subscribe to one job's completion.

        Args:
            job_id: Job to watch

        Returns:
            Queue that receives exactly one CompletionEvent
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        retained = self._events.get(job_id)
        if retained is not None:
            queue.put_nowait(retained[1])
        else:
            self._subscribers.setdefault(job_id, []).append(queue)
        return queue

    def unsubscribe(self, job_id: str, queue: asyncio.Queue) -> None:
        """Stop waiting for a job's completion."""
        queues = self._subscribers.get(job_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(job_id, None)

    async def start(self) -> None:
        """Start webhook delivery tasks."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._delivery_loop(), name=f"notifier-{index}")
            for index in range(self._workers)
        ]
        logger.info("Notifier started", workers=self._workers)

    async def stop(self) -> None:
        """Stop delivery tasks and close the transport."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self._transport.close()
        logger.info("Notifier stopped", pending=self._outbound.qsize())

    async def join(self) -> None:
        """Wait until every queued webhook delivery has finished."""
        await self._outbound.join()

    def stats(self) -> NotifierStatistics:
        """Get notifier statistics."""
        return NotifierStatistics(
            published=self._published,
            delivered=self._delivered,
            failed=self._failed,
            duplicates=self._duplicates,
            pending=self._outbound.qsize(),
            retained=len(self._events),
        )

    async def _call_listeners(self, event: CompletionEvent) -> None:
        for listener in self._listeners:
            try:
                await listener(event)
            except AppError as e:
                log_error(e, "completion_listener", job_id=event.job_id)

    async def _delivery_loop(self) -> None:
        while True:
            url, event = await self._outbound.get()
            try:
                await self._deliver(url, event)
            finally:
                self._outbound.task_done()

    async def _deliver(self, url: str, event: WebhookEvent) -> bool:
        """
        Deliver one event with retries.

        Returns:
            True if delivered, False once attempts are exhausted
        """
        max_attempts = self._retry_policy.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                await self._transport.deliver(url, event)
            except NotificationDeliveryError as e:
                if attempt == max_attempts:
                    self._failed += 1
                    logger.error(
                        "Webhook delivery failed permanently",
                        url=url,
                        attempts=attempt,
                        error=str(e),
                        **self._identify(event),
                    )
                    return False
                delay = self._retry_policy.delay_for(attempt)
                logger.warning(
                    "Webhook delivery failed, retrying",
                    url=url,
                    attempt=attempt,
                    delay_seconds=delay,
                    error=str(e),
                    **self._identify(event),
                )
                await self._sleep(delay)
            else:
                self._delivered += 1
                return True
        return False

    @staticmethod
    def _identify(event: WebhookEvent) -> Dict[str, str]:
        if isinstance(event, BatchCompletionEvent):
            return {"batch_id": event.batch_id}
        return {"job_id": event.job_id}

    def _retain(self, event: CompletionEvent) -> None:
        self._events[event.job_id] = (self._clock(), event)
        while len(self._events) > self._max_retained:
            self._events.popitem(last=False)

    def _prune(self) -> None:
        if not self._retention_seconds:
            return
        cutoff = self._clock() - timedelta(seconds=self._retention_seconds)
        while self._events:
            retained_at, _ = next(iter(self._events.values()))
            if retained_at > cutoff:
                break
            self._events.popitem(last=False)
