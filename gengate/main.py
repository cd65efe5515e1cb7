"""
Main FastAPI application.

Following Sandi Metz:
- Single Responsibility: Application setup and configuration
- Small methods: Each lifecycle stage isolated
- Clear naming: Descriptive function names
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import ConnectionPool
from starlette.middleware.gzip import GZipMiddleware

from gengate.admission.counters import (
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
    WindowLimiter,
)
from gengate.admission.gate import AdmissionGate
from gengate.admission.policy import AdmissionPolicy
from gengate.api.middleware import RequestLoggingMiddleware, default_logging_config
from gengate.api.routes import batches, generations, health, metrics
from gengate.cache.result_cache import ResultCache
from gengate.config import AppConfig, config
from gengate.exceptions import AppError
from gengate.generation.openai_provider import OpenAIImageProvider
from gengate.generation.provider import BaseGenerationProvider
from gengate.jobs.queue import JobQueue
from gengate.jobs.worker import WorkerPool
from gengate.moderation.client import (
    BaseModerationClient,
    KeywordModerationClient,
    NullModerationClient,
    OpenAIModerationClient,
)
from gengate.notifications.notifier import CompletionNotifier
from gengate.notifications.transport import WebhookTransport
from gengate.repositories.batch_repository import (
    BatchRepository,
    InMemoryBatchRepository,
    RedisBatchRepository,
)
from gengate.repositories.cache_repository import (
    CacheRepository,
    InMemoryCacheRepository,
    RedisCacheRepository,
)
from gengate.repositories.job_repository import (
    InMemoryJobRepository,
    JobRepository,
    RedisJobRepository,
)
from gengate.repositories.redis_pool import create_redis_pool
from gengate.scheduling.ranker import PriorityRanker, RankerConfig
from gengate.services.batch_service import BatchService
from gengate.services.generation_service import GenerationService
from gengate.utils.logger import get_logger, log_error, setup_logging
from gengate.utils.retry import RetryPolicy

setup_logging(config.log_level)
logger = get_logger(__name__)


class ApplicationState:
    """
    Manages application-wide state.

    Single Responsibility: Lifecycle management of shared resources.
    """

    def __init__(
        self,
        app_config: Optional[AppConfig] = None,
        provider: Optional[BaseGenerationProvider] = None,
        moderation: Optional[BaseModerationClient] = None,
    ) -> None:
        self.config = app_config or config
        self.redis_pool: Optional[ConnectionPool] = None
        self.provider = provider
        self.moderation = moderation
        self.counter_store: Optional[CounterStore] = None
        self.cache: Optional[ResultCache] = None
        self.queue: Optional[JobQueue] = None
        self.notifier: Optional[CompletionNotifier] = None
        self.workers: Optional[WorkerPool] = None
        self.service: Optional[GenerationService] = None
        self.batches: Optional[BatchService] = None
        self._maintenance: Optional[asyncio.Task] = None

    async def startup(self) -> None:
        """Initialize application resources."""
        logger.info(
            "Starting GenGate",
            env=self.config.app_env,
            backend=self.config.storage_backend,
        )
        try:
            if self.config.storage_backend == "redis":
                self.redis_pool = await create_redis_pool()
                logger.info("Redis pool initialized")
            self._build_components()
            recovered = await self.queue.recover()
            await self.notifier.start()
            await self.workers.start()
            if self.cache is not None:
                self.cache.start_sweeper(self.config.cache_sweep_interval_seconds)
            self._maintenance = asyncio.create_task(self._maintain_forever())
            logger.info("GenGate started successfully", recovered_jobs=recovered)
        except Exception as e:
            logger.error("Failed to initialize GenGate", error=str(e))
            raise

    async def shutdown(self) -> None:
        """Cleanup application resources."""
        logger.info("Shutting down GenGate")
        if self._maintenance is not None:
            self._maintenance.cancel()
            await asyncio.gather(self._maintenance, return_exceptions=True)
        if self.workers is not None:
            await self.workers.stop()
        if self.queue is not None:
            await self._release_queue()
        if self.notifier is not None:
            await self.notifier.stop()
        if self.cache is not None:
            await self.cache.stop_sweeper()
        if self.redis_pool is not None:
            await self.redis_pool.disconnect()
            logger.info("Redis pool closed")
        logger.info("GenGate shut down successfully")

    def _build_components(self) -> None:
        """Wire the admission and execution pipeline."""
        cfg = self.config
        (
            cache_repository,
            job_repository,
            batch_repository,
            self.counter_store,
        ) = self._build_repositories()

        if cfg.enable_result_cache:
            self.cache = ResultCache(
                cache_repository,
                default_ttl=cfg.cache_ttl_seconds,
                flagged_ttl=cfg.cache_flagged_ttl_seconds,
                low_confidence_threshold=cfg.cache_low_confidence_threshold,
            )

        ranker = PriorityRanker(RankerConfig.from_config(cfg))
        self.queue = JobQueue(
            job_repository,
            ranker=ranker,
            max_depth=cfg.max_queue_depth,
            retry_policy=RetryPolicy.from_config(cfg),
            retention_seconds=cfg.job_retention_seconds,
            owner_id=cfg.instance_id,
            lease_seconds=cfg.instance_lease_seconds,
        )
        self.notifier = CompletionNotifier(
            transport=WebhookTransport(timeout=cfg.notification_timeout_seconds),
            retry_policy=RetryPolicy.for_notifications(cfg),
            workers=cfg.notification_workers,
            retention_seconds=cfg.job_retention_seconds,
        )
        self.provider = self.provider or OpenAIImageProvider(
            cfg.openai_api_key,
            default_model=cfg.image_model,
            default_size=cfg.default_image_size,
        )
        self.workers = WorkerPool(
            self.queue,
            self.provider,
            cache=self.cache,
            notifier=self.notifier,
            size=cfg.worker_pool_size,
            generation_timeout=cfg.generation_timeout_seconds,
        )
        gate = AdmissionGate(
            WindowLimiter(self.counter_store),
            self.moderation or self._build_moderation(),
            cache=self.cache,
            policy=AdmissionPolicy.from_config(cfg),
        )
        self.service = GenerationService(
            gate,
            self.queue,
            ranker=ranker,
            notifier=self.notifier,
            cache=self.cache,
            workers=self.workers,
        )
        self.batches = BatchService(
            self.service,
            self.queue,
            batch_repository,
            notifier=self.notifier,
            max_batch_size=cfg.max_batch_size,
        )
        self.notifier.add_listener(self.batches.on_completion)

    def _build_repositories(
        self,
    ) -> tuple[CacheRepository, JobRepository, BatchRepository, CounterStore]:
        retention = self.config.job_retention_seconds
        if self.redis_pool is not None:
            return (
                RedisCacheRepository(self.redis_pool),
                RedisJobRepository(self.redis_pool, retention_seconds=retention),
                RedisBatchRepository(self.redis_pool, retention_seconds=retention),
                RedisCounterStore(self.redis_pool),
            )
        return (
            InMemoryCacheRepository(max_entries=self.config.cache_max_entries),
            InMemoryJobRepository(),
            InMemoryBatchRepository(),
            InMemoryCounterStore(),
        )

    def _build_moderation(self) -> BaseModerationClient:
        provider = self.config.moderation_provider
        if provider == "openai":
            return OpenAIModerationClient(self.config.openai_api_key)
        if provider == "keyword":
            return KeywordModerationClient(self.config.blocked_terms_list)
        return NullModerationClient()

    async def run_maintenance(self) -> None:
        """
        Run one round of queue upkeep.

        Renews this instance's lease, rewrites failed job writes, adopts
        jobs whose owner stopped heartbeating and purges expired jobs. A
        failing step is logged and the remaining steps still run.
        """
        steps = (
            ("heartbeat", self.queue.heartbeat),
            ("persist_pending", self.queue.persist_pending),
            ("adopt_orphans", self.queue.recover),
            ("purge_expired", self.queue.purge_expired),
        )
        for name, step in steps:
            try:
                await step()
            except AppError as e:
                log_error(e, f"maintenance.{name}")

    async def _maintain_forever(self) -> None:
        while True:
            await asyncio.sleep(self.config.maintenance_interval_seconds)
            try:
                await self.run_maintenance()
            except Exception as e:
                logger.error("Queue maintenance failed", error=str(e))

    async def _release_queue(self) -> None:
        try:
            await self.queue.release()
        except AppError as e:
            log_error(e, "release_queue")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    state: ApplicationState = app.state.app_state
    await state.startup()

    yield

    await state.shutdown()


def create_application(state: Optional[ApplicationState] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        state: Application state (built from global config if None)

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title=config.app_name,
        description="Admission control and asynchronous execution for generation requests.",
        version="0.1.0",
        docs_url="/docs" if config.is_development else None,
        redoc_url="/redoc" if config.is_development else None,
        lifespan=lifespan,
    )
    app.state.app_state = state or ApplicationState()

    # Add middleware (order matters - first added is last executed)

    # GZip compression for responses
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # Request logging
    app.add_middleware(
        RequestLoggingMiddleware,
        config=default_logging_config,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(generations.router, prefix="/api/v1", tags=["generations"])
    app.include_router(batches.router, prefix="/api/v1", tags=["batches"])
    app.include_router(metrics.router, prefix="/api/v1", tags=["metrics"])

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gengate.main:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.is_development,
    )
