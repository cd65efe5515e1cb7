"""
Metrics endpoint for monitoring.

Sandi Metz Principles:
- Single Responsibility: Metrics exposure
- Observable: Cache, queue and notifier counters tracked
"""

from fastapi import APIRouter, Depends

from gengate.api.deps import get_generation_service
from gengate.models.response import MetricsResponse, QueueOverview
from gengate.services.generation_service import GenerationService
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> MetricsResponse:
    """
    Get application metrics.

    Returns:
        Cache, queue and notifier counters
    """
    return await service.metrics()


@router.get("/queue", response_model=QueueOverview)
async def get_queue(
    service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> QueueOverview:
    """
    Get queue load.

    Returns:
        Queued and running jobs, worker usage and wait estimate
    """
    return service.queue_overview()
