"""
API dependency injection.

Sandi Metz Principles:
- Single Responsibility: Dependency lookup for routes
- Dependency Inversion: Routes depend on the service, not its wiring
"""

from typing import get_args

from fastapi import Request

from gengate.config import Tier
from gengate.services.batch_service import BatchService
from gengate.services.generation_service import GenerationService
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

SUBJECT_HEADER = "X-Subject-Id"
TIER_HEADER = "X-Subject-Tier"
ANONYMOUS_SUBJECT = "anonymous"


def get_app_state(request: Request):
    """
    Get application state.

    Args:
        request: FastAPI request

    Returns:
        ApplicationState created at startup
    """
    return request.app.state.app_state


async def get_generation_service(request: Request) -> GenerationService:
    """
    Get generation service.

    Args:
        request: FastAPI request

    Returns:
        Generation service wired at startup
    """
    return get_app_state(request).service


async def get_batch_service(request: Request) -> BatchService:
    """
    Get batch service.

    Args:
        request: FastAPI request

    Returns:
        Batch service wired at startup
    """
    return get_app_state(request).batches


def get_subject_id(request: Request) -> str:
    """
    Resolve the rate-limited subject.

    Falls back to the client address when no subject header is sent.
    """
    subject = request.headers.get(SUBJECT_HEADER, "").strip()
    if subject:
        return subject
    if request.client:
        return request.client.host
    return ANONYMOUS_SUBJECT


def get_subject_tier(request: Request) -> str:
    """Resolve the subject tier; unknown values get the free tier."""
    tier = request.headers.get(TIER_HEADER, "free").strip().lower()
    if tier not in get_args(Tier):
        logger.debug("Unknown tier header", tier=tier)
        return "free"
    return tier
