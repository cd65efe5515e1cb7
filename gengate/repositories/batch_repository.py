"""
Batch repositories.

Stores batch records and the marker that makes the batch webhook fire
once, even when several instances see the last item finish.

Sandi Metz Principles:
- Single Responsibility: Batch data access
- Dependency Injection: Redis pool injected
"""

import json
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from gengate.exceptions import QueueError
from gengate.models.batch import Batch
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

BATCH_PREFIX = "batch:"
COMPLETED_SUFFIX = ":completed"


class BatchRepository(ABC):
    """Storage for batch records."""

    @abstractmethod
    async def save(self, batch: Batch) -> None:
        """Insert or replace a batch record."""

    @abstractmethod
    async def get(self, batch_id: str) -> Optional[Batch]:
        """Fetch batch or None."""

    @abstractmethod
    async def mark_completed(self, batch_id: str) -> bool:
        """
        Record that the batch outcome was published.

        Returns:
            True for the first caller only
        """


class InMemoryBatchRepository(BatchRepository):
    """Process-local batch records."""

    def __init__(self) -> None:
        self._batches: Dict[str, Batch] = {}
        self._completed: Set[str] = set()

    async def save(self, batch: Batch) -> None:
        self._batches[batch.batch_id] = batch.model_copy(deep=True)

    async def get(self, batch_id: str) -> Optional[Batch]:
        batch = self._batches.get(batch_id)
        return batch.model_copy(deep=True) if batch else None

    async def mark_completed(self, batch_id: str) -> bool:
        if batch_id in self._completed:
            return False
        self._completed.add(batch_id)
        return True


class RedisBatchRepository(BatchRepository):
    """Redis batch records, expiring after the retention window."""

    def __init__(self, pool: ConnectionPool, retention_seconds: int = 86400):
        """
        Initialize repository.

        Args:
            pool: Redis connection pool
            retention_seconds: Lifetime of batch records (0 keeps them)
        """
        self._pool = pool
        self._retention_seconds = retention_seconds

    @staticmethod
    def _batch_key(batch_id: str) -> str:
        return f"{BATCH_PREFIX}{batch_id}"

    async def save(self, batch: Batch) -> None:
        try:
            async with Redis(connection_pool=self._pool) as client:
                await client.set(
                    self._batch_key(batch.batch_id),
                    batch.model_dump_json(),
                    ex=self._retention_seconds or None,
                )
        except RedisError as e:
            logger.error("Batch save failed", batch_id=batch.batch_id, error=str(e))
            raise QueueError(f"Batch save failed: {e}") from e

    async def get(self, batch_id: str) -> Optional[Batch]:
        try:
            async with Redis(connection_pool=self._pool) as client:
                data = await client.get(self._batch_key(batch_id))
        except RedisError as e:
            logger.error("Batch fetch failed", batch_id=batch_id, error=str(e))
            raise QueueError(f"Batch fetch failed: {e}") from e
        return Batch(**json.loads(data)) if data else None

    async def mark_completed(self, batch_id: str) -> bool:
        try:
            async with Redis(connection_pool=self._pool) as client:
                created = await client.set(
                    f"{self._batch_key(batch_id)}{COMPLETED_SUFFIX}",
                    "1",
                    nx=True,
                    ex=self._retention_seconds or None,
                )
        except RedisError as e:
            logger.error("Batch completion mark failed", batch_id=batch_id, error=str(e))
            raise QueueError(f"Batch completion mark failed: {e}") from e
        return bool(created)
