"""
Health check endpoints.

Sandi Metz Principles:
- Single Responsibility: Health check logic only
- Small functions: Each check isolated
- Clear naming: Descriptive endpoint names
"""

import time
from typing import Dict, Literal, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from gengate.api.deps import get_app_state
from gengate.config import config
from gengate.models.response import HealthResponse
from gengate.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


class ComponentHealth(BaseModel):
    """Health status of a component."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Component status"
    )
    latency_ms: Optional[float] = Field(None, description="Check latency in ms")
    message: Optional[str] = Field(None, description="Status message")


class DetailedHealthResponse(BaseModel):
    """Detailed health check response."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Overall status"
    )
    environment: str = Field(..., description="Environment name")
    version: str = Field(..., description="Application version")
    components: Dict[str, ComponentHealth] = Field(
        default_factory=dict, description="Component health status"
    )


async def check_counter_health(request: Request) -> ComponentHealth:
    """Check rate limit counter store."""
    counter_store = get_app_state(request).counter_store
    if counter_store is None:
        return ComponentHealth(status="unhealthy", message="Counter store not initialized")

    start = time.time()
    healthy = await counter_store.ping()
    latency = (time.time() - start) * 1000
    if healthy:
        return ComponentHealth(status="healthy", latency_ms=round(latency, 2))
    return ComponentHealth(status="unhealthy", message="Ping failed")


async def check_cache_health(request: Request) -> ComponentHealth:
    """Check result cache; a missing cache only degrades service."""
    cache = get_app_state(request).cache
    if cache is None:
        return ComponentHealth(status="degraded", message="Result cache disabled")

    start = time.time()
    healthy = await cache.health_check()
    latency = (time.time() - start) * 1000
    if healthy:
        return ComponentHealth(status="healthy", latency_ms=round(latency, 2))
    return ComponentHealth(status="degraded", message="Cache backend unreachable")


def check_worker_health(request: Request) -> ComponentHealth:
    """Check worker pool is running."""
    workers = get_app_state(request).workers
    if workers is None or not workers.running:
        return ComponentHealth(status="unhealthy", message="Workers not running")
    return ComponentHealth(status="healthy", message=f"{workers.size} workers")


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Health status response
    """
    return HealthResponse(
        status="healthy",
        environment=config.app_env,
        version="0.1.0",
    )


@router.get("/healthz", response_model=HealthResponse)
async def kubernetes_health_check() -> HealthResponse:
    """
    Kubernetes-style liveness check endpoint.

    Returns:
        Health status response
    """
    return await health_check()


@router.get("/ready", response_model=DetailedHealthResponse)
async def readiness_check(request: Request):
    """
    Kubernetes-style readiness check endpoint.

    Returns 503 when a required component is unhealthy.

    Returns:
        Detailed health status response
    """
    components = {
        "counters": await check_counter_health(request),
        "cache": await check_cache_health(request),
        "workers": check_worker_health(request),
    }

    statuses = [c.status for c in components.values()]
    if all(s == "healthy" for s in statuses):
        overall_status = "healthy"
    elif any(s == "unhealthy" for s in statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    body = DetailedHealthResponse(
        status=overall_status,
        environment=config.app_env,
        version="0.1.0",
        components=components,
    )
    if overall_status == "unhealthy":
        logger.warning("Readiness check failed", components=list(components))
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return body


@router.get("/live", response_model=HealthResponse)
async def liveness_check() -> HealthResponse:
    """
    Kubernetes liveness probe endpoint.

    Always returns healthy if the application is running.

    Returns:
        Health status response
    """
    return HealthResponse(
        status="healthy",
        environment=config.app_env,
        version="0.1.0",
    )
