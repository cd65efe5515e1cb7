"""
Batch submission endpoints.

Sandi Metz Principles:
- Single Responsibility: HTTP handling for batches
- Small functions: Minimal logic in endpoints
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from gengate.api.deps import get_batch_service, get_subject_id, get_subject_tier
from gengate.exceptions import BatchNotFoundError, BatchTooLargeError, QueueError
from gengate.models.batch import BatchStatus, BatchSubmission
from gengate.models.error import ErrorResponse
from gengate.services.batch_service import BatchService
from gengate.utils.logger import get_logger, log_error

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/batches",
    response_model=BatchStatus,
    status_code=202,
    responses={
        422: {"model": ErrorResponse, "description": "Batch too large"},
        503: {"model": ErrorResponse, "description": "Batch storage unavailable"},
    },
)
async def submit_batch(
    body: BatchSubmission,
    request: Request,
    service: BatchService = Depends(get_batch_service),  # noqa: B008
):
    """
    Submit a batch of generation requests.

    Every item goes through admission on its own; the response lists each
    item's outcome.

    Args:
        body: Batch body
        request: FastAPI request (subject and tier headers)
        service: Batch service (injected)

    Returns:
        202 with batch status, or an error response
    """
    try:
        status = await service.submit_batch(
            body, get_subject_id(request), get_subject_tier(request)
        )
    except BatchTooLargeError as e:
        return _error(422, ErrorResponse.batch_too_large(str(e)))
    except QueueError as e:
        log_error(e, "submit_batch")
        return _error(503, ErrorResponse.service_unavailable("Batch storage unavailable"))
    return JSONResponse(status_code=202, content=status.model_dump(mode="json"))


@router.get(
    "/batches/{batch_id}",
    response_model=BatchStatus,
    responses={404: {"model": ErrorResponse, "description": "Unknown batch"}},
)
async def get_batch(
    batch_id: str,
    service: BatchService = Depends(get_batch_service),  # noqa: B008
):
    """
    Get batch status.

    Args:
        batch_id: Batch identifier
        service: Batch service (injected)

    Returns:
        Batch status or 404
    """
    try:
        return await service.get_batch(batch_id)
    except BatchNotFoundError:
        return _error(404, ErrorResponse.batch_not_found(batch_id))
    except QueueError as e:
        log_error(e, "get_batch", batch_id=batch_id)
        return _error(503, ErrorResponse.service_unavailable("Batch storage unavailable"))


def _error(status_code: int, error: ErrorResponse) -> JSONResponse:
    headers = {"Retry-After": str(error.retry_after)} if error.retry_after else None
    return JSONResponse(
        status_code=status_code, content=error.model_dump(mode="json"), headers=headers
    )
