"""
Generation submission and job endpoints.

Sandi Metz Principles:
- Single Responsibility: HTTP request handling
- Small functions: Minimal logic in endpoints
- Dependency Injection: Service injected
"""

import asyncio
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from gengate.api.deps import get_generation_service, get_subject_id, get_subject_tier
from gengate.exceptions import IllegalTransitionError, JobNotFoundError, QueueError
from gengate.models.decision import RejectionReason
from gengate.models.error import ErrorCode, ErrorResponse
from gengate.models.job import Job, JobStatus
from gengate.models.request import GenerationSubmission
from gengate.models.response import SubmissionResponse
from gengate.services.generation_service import GenerationService
from gengate.utils.logger import get_logger, log_error

router = APIRouter()
logger = get_logger(__name__)

REJECTION_STATUS = {
    RejectionReason.RATE_LIMITED: 429,
    RejectionReason.QUOTA_EXCEEDED: 429,
    RejectionReason.QUEUE_SATURATED: 429,
    RejectionReason.CONTENT_VIOLATION: 422,
    RejectionReason.SERVICE_UNAVAILABLE: 503,
}

REJECTION_DETAIL = {
    RejectionReason.RATE_LIMITED: "Rate limit exceeded",
    RejectionReason.QUOTA_EXCEEDED: "Quota exceeded",
    RejectionReason.QUEUE_SATURATED: "Generation queue is full",
    RejectionReason.CONTENT_VIOLATION: "Prompt violates content policy",
    RejectionReason.SERVICE_UNAVAILABLE: "Admission temporarily unavailable",
}


@router.post(
    "/generations",
    response_model=SubmissionResponse,
    status_code=202,
    responses={
        200: {"model": SubmissionResponse, "description": "Served from cache"},
        422: {"model": ErrorResponse, "description": "Content policy violation"},
        429: {"model": ErrorResponse, "description": "Rate, quota or queue limit"},
        503: {"model": ErrorResponse, "description": "Service unavailable"},
    },
)
async def submit_generation(
    body: GenerationSubmission,
    request: Request,
    service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> JSONResponse:
    """
    Submit a generation request.

    Args:
        body: Submission body
        request: FastAPI request (subject and tier headers)
        service: Generation service (injected)

    Returns:
        200 with cached artifact, 202 with job ID, or an error response
    """
    if body.correlation_id is None:
        body.correlation_id = getattr(request.state, "request_id", None)
    try:
        generation_request = body.to_request(
            get_subject_id(request), get_subject_tier(request)
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e

    submission = await service.submit(generation_request)
    headers = _rate_limit_headers(submission)

    if submission.status == "rejected":
        return _rejection_response(submission, headers)

    status_code = 200 if submission.from_cache else 202
    return JSONResponse(
        status_code=status_code,
        content=submission.model_dump(mode="json"),
        headers=headers,
    )


@router.get(
    "/generations/{job_id}",
    response_model=JobStatus,
    responses={404: {"model": ErrorResponse, "description": "Unknown job"}},
)
async def get_generation(
    job_id: str,
    wait: float = Query(0, ge=0, le=60, description="Seconds to wait for completion"),
    service: GenerationService = Depends(get_generation_service),  # noqa: B008
):
    """
    Get job status.

    With wait, the request is held until the job finishes or the wait
    runs out; either way the current status is returned.

    Args:
        job_id: Job identifier
        wait: Seconds to hold the request until the job finishes
        service: Generation service (injected)

    Returns:
        Job status or 404
    """
    try:
        if wait:
            await service.wait_for_completion(job_id, timeout=wait)
        return await service.get_status(job_id)
    except JobNotFoundError:
        return _error(404, ErrorResponse.job_not_found(job_id))
    except asyncio.TimeoutError:
        return await service.get_status(job_id)


@router.delete(
    "/generations/{job_id}",
    response_model=JobStatus,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown job"},
        409: {"model": ErrorResponse, "description": "Job already finished"},
    },
)
async def cancel_generation(
    job_id: str,
    service: GenerationService = Depends(get_generation_service),  # noqa: B008
):
    """
    Cancel a job.

    Queued jobs are cancelled immediately; running jobs are cancelled when
    their current attempt returns.

    Args:
        job_id: Job identifier
        service: Generation service (injected)

    Returns:
        Job status, 404, or 409
    """
    try:
        return await service.cancel(job_id)
    except JobNotFoundError:
        return _error(404, ErrorResponse.job_not_found(job_id))
    except IllegalTransitionError as e:
        return _error(409, ErrorResponse.invalid_transition(str(e)))


@router.get(
    "/jobs/dead-letters",
    response_model=List[Job],
    responses={503: {"model": ErrorResponse, "description": "Job storage unavailable"}},
)
async def list_dead_letters(
    service: GenerationService = Depends(get_generation_service),  # noqa: B008
):
    """
    List dead-lettered jobs.

    Returns:
        Jobs that exhausted their attempts or failed permanently
    """
    try:
        return await service.dead_letters()
    except QueueError as e:
        log_error(e, "dead_letters")
        error = ErrorResponse.service_unavailable("Job storage unavailable")
        return _error(503, error, {"Retry-After": str(error.retry_after)})


def _rate_limit_headers(submission: SubmissionResponse) -> Dict[str, str]:
    headers = submission.rate_limit.to_headers() if submission.rate_limit else {}
    if submission.retry_after:
        headers["Retry-After"] = str(submission.retry_after)
    return headers


def _rejection_response(
    submission: SubmissionResponse, headers: Dict[str, str]
) -> JSONResponse:
    reason = submission.reason
    error = ErrorResponse.rejection(
        ErrorCode(reason.value),
        REJECTION_DETAIL[reason],
        reset_at=submission.reset_at,
        retry_after=submission.retry_after,
        categories=submission.categories,
    )
    return _error(REJECTION_STATUS[reason], error, headers)


def _error(
    status_code: int, error: ErrorResponse, headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json"),
        headers=headers,
    )
