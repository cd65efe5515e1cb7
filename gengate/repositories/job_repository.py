"""
Job repositories.

Durable record of every job transition, used for status queries and for
recovering queued work after a restart.

Queue instances sharing one repository announce themselves with a
heartbeat. A non-terminal job belongs to the instance that last claimed it;
another instance may only take it over once that owner's heartbeat lapses.

Sandi Metz Principles:
- Single Responsibility: Job data access
- Small methods: Each operation isolated
- Dependency Injection: Redis pool injected
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from gengate.exceptions import QueueError
from gengate.models.job import Job, JobState
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

JOB_PREFIX = "job:"
ACTIVE_SET = "jobs:active"
DEAD_LETTER_SET = "jobs:dead_lettered"
OWNER_HASH = "jobs:owners"
HEARTBEAT_PREFIX = "instance:"

# Take over a job unless a different, still-alive instance owns it
_CLAIM_SCRIPT = """
local owner = redis.call('HGET', KEYS[1], ARGV[1])
if owner and owner ~= ARGV[2] and redis.call('EXISTS', ARGV[3] .. owner) == 1 then
    return 0
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[2])
return 1
"""


class JobRepository(ABC):
    """Storage for job records."""

    @abstractmethod
    async def save(self, job: Job) -> None:
        """Insert or replace a job record."""

    @abstractmethod
    async def get(self, job_id: str) -> Optional[Job]:
        """Fetch job or None."""

    @abstractmethod
    async def delete(self, job_id: str) -> bool:
        """Delete job record; True if one existed."""

    @abstractmethod
    async def list_active(self) -> List[Job]:
        """Jobs not yet in a terminal state."""

    @abstractmethod
    async def list_dead_lettered(self) -> List[Job]:
        """Jobs awaiting operator inspection."""

    @abstractmethod
    async def heartbeat(self, owner_id: str, ttl_seconds: int) -> None:
        """Mark a queue instance alive for ttl_seconds."""

    @abstractmethod
    async def retire(self, owner_id: str) -> None:
        """Drop an instance's heartbeat so its jobs can be taken over."""

    @abstractmethod
    async def claim(self, job_id: str, owner_id: str) -> bool:
        """
        Atomically take ownership of a non-terminal job.

        Returns:
            True if the job is unowned, already ours, or its owner is dead
        """


class InMemoryJobRepository(JobRepository):
    """Process-local job records."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._jobs: Dict[str, Job] = {}
        self._owners: Dict[str, str] = {}
        self._heartbeats: Dict[str, datetime] = {}
        self._clock = clock or utc_now

    async def save(self, job: Job) -> None:
        self._jobs[job.job_id] = job.model_copy(deep=True)
        if job.is_terminal:
            self._owners.pop(job.job_id, None)
        elif job.owner_id:
            self._owners[job.job_id] = job.owner_id

    async def get(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def delete(self, job_id: str) -> bool:
        self._owners.pop(job_id, None)
        return self._jobs.pop(job_id, None) is not None

    async def list_active(self) -> List[Job]:
        return [job.model_copy(deep=True) for job in self._jobs.values() if not job.is_terminal]

    async def list_dead_lettered(self) -> List[Job]:
        return [
            job.model_copy(deep=True)
            for job in self._jobs.values()
            if job.state is JobState.DEAD_LETTERED
        ]

    async def heartbeat(self, owner_id: str, ttl_seconds: int) -> None:
        self._heartbeats[owner_id] = self._clock() + timedelta(seconds=ttl_seconds)

    async def retire(self, owner_id: str) -> None:
        self._heartbeats.pop(owner_id, None)

    async def claim(self, job_id: str, owner_id: str) -> bool:
        current = self._owners.get(job_id)
        if current and current != owner_id and self._is_alive(current):
            return False
        self._owners[job_id] = owner_id
        return True

    def _is_alive(self, owner_id: str) -> bool:
        expires_at = self._heartbeats.get(owner_id)
        return expires_at is not None and expires_at > self._clock()


class RedisJobRepository(JobRepository):
    """
    Redis job records.

    Each job is stored as JSON; set indexes track active and dead-lettered
    jobs and a hash maps active jobs to their owning instance. Terminal
    records expire after the retention window.
    """

    def __init__(self, pool: ConnectionPool, retention_seconds: int = 86400):
        """
        Initialize repository.

        Args:
            pool: Redis connection pool
            retention_seconds: Lifetime of terminal job records
        """
        self._pool = pool
        self._retention_seconds = retention_seconds

    @staticmethod
    def _job_key(job_id: str) -> str:
        return f"{JOB_PREFIX}{job_id}"

    async def save(self, job: Job) -> None:
        key = self._job_key(job.job_id)
        try:
            async with Redis(connection_pool=self._pool) as client:
                async with client.pipeline(transaction=True) as pipe:
                    pipe.set(key, job.model_dump_json())
                    if job.is_terminal:
                        pipe.srem(ACTIVE_SET, job.job_id)
                        pipe.hdel(OWNER_HASH, job.job_id)
                        if self._retention_seconds:
                            pipe.expire(key, self._retention_seconds)
                    else:
                        pipe.sadd(ACTIVE_SET, job.job_id)
                        if job.owner_id:
                            pipe.hset(OWNER_HASH, job.job_id, job.owner_id)
                    if job.state is JobState.DEAD_LETTERED:
                        pipe.sadd(DEAD_LETTER_SET, job.job_id)
                    await pipe.execute()
        except RedisError as e:
            logger.error("Job save failed", job_id=job.job_id, error=str(e))
            raise QueueError(f"Job save failed: {e}") from e

    async def get(self, job_id: str) -> Optional[Job]:
        try:
            async with Redis(connection_pool=self._pool) as client:
                data = await client.get(self._job_key(job_id))
        except RedisError as e:
            logger.error("Job fetch failed", job_id=job_id, error=str(e))
            raise QueueError(f"Job fetch failed: {e}") from e
        return Job(**json.loads(data)) if data else None

    async def delete(self, job_id: str) -> bool:
        try:
            async with Redis(connection_pool=self._pool) as client:
                async with client.pipeline(transaction=True) as pipe:
                    pipe.delete(self._job_key(job_id))
                    pipe.srem(ACTIVE_SET, job_id)
                    pipe.srem(DEAD_LETTER_SET, job_id)
                    pipe.hdel(OWNER_HASH, job_id)
                    results = await pipe.execute()
                return results[0] > 0
        except RedisError as e:
            logger.error("Job delete failed", job_id=job_id, error=str(e))
            raise QueueError(f"Job delete failed: {e}") from e

    async def list_active(self) -> List[Job]:
        return await self._list_from_index(ACTIVE_SET)

    async def list_dead_lettered(self) -> List[Job]:
        return await self._list_from_index(DEAD_LETTER_SET)

    async def heartbeat(self, owner_id: str, ttl_seconds: int) -> None:
        try:
            async with Redis(connection_pool=self._pool) as client:
                await client.set(f"{HEARTBEAT_PREFIX}{owner_id}", "1", ex=ttl_seconds)
        except RedisError as e:
            logger.error("Heartbeat failed", owner_id=owner_id, error=str(e))
            raise QueueError(f"Heartbeat failed: {e}") from e

    async def retire(self, owner_id: str) -> None:
        try:
            async with Redis(connection_pool=self._pool) as client:
                await client.delete(f"{HEARTBEAT_PREFIX}{owner_id}")
        except RedisError as e:
            logger.error("Retire failed", owner_id=owner_id, error=str(e))
            raise QueueError(f"Retire failed: {e}") from e

    async def claim(self, job_id: str, owner_id: str) -> bool:
        try:
            async with Redis(connection_pool=self._pool) as client:
                claimed = await client.eval(
                    _CLAIM_SCRIPT, 1, OWNER_HASH, job_id, owner_id, HEARTBEAT_PREFIX
                )
        except RedisError as e:
            logger.error("Job claim failed", job_id=job_id, error=str(e))
            raise QueueError(f"Job claim failed: {e}") from e
        return int(claimed) == 1

    async def _list_from_index(self, index: str) -> List[Job]:
        try:
            async with Redis(connection_pool=self._pool) as client:
                job_ids = sorted(await client.smembers(index))
                if not job_ids:
                    return []
                values = await client.mget([self._job_key(job_id) for job_id in job_ids])
        except RedisError as e:
            logger.error("Job listing failed", index=index, error=str(e))
            raise QueueError(f"Job listing failed: {e}") from e

        jobs = []
        for job_id, value in zip(job_ids, values):
            if value is None:
                logger.debug("Indexed job expired", job_id=job_id, index=index)
                continue
            jobs.append(Job(**json.loads(value)))
        return jobs
