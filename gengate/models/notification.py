"""
Completion notification models.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from gengate.models.artifact import Artifact
from gengate.models.job import Job, JobError, JobState
from gengate.utils.clock import utc_now


class CompletionEvent(BaseModel):
    """Terminal job outcome delivered to the caller."""

    job_id: str = Field(..., description="Job ID")
    correlation_id: str = Field(..., description="Caller correlation ID")
    state: JobState = Field(..., description="Terminal state")
    result: Optional[Artifact] = Field(None, description="Artifact on success")
    error: Optional[JobError] = Field(None, description="Error on failure")
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Caller supplied data"
    )
    batch_id: Optional[str] = Field(None, description="Batch the job belongs to")
    occurred_at: datetime = Field(default_factory=utc_now, description="Event time")

    @classmethod
    def from_job(cls, job: Job) -> "CompletionEvent":
        """
        Create event from a terminal job.

        Raises:
            ValueError: If job is not terminal
        """
        if not job.is_terminal:
            raise ValueError(f"Job {job.job_id} is not terminal ({job.state.value})")
        return cls(
            job_id=job.job_id,
            correlation_id=job.correlation_id,
            state=job.state,
            result=job.result if job.state is JobState.SUCCEEDED else None,
            error=job.last_error if job.state is not JobState.SUCCEEDED else None,
            callback_data=job.callback_data,
            batch_id=job.batch_id,
            occurred_at=job.completed_at or utc_now(),
        )

    @property
    def succeeded(self) -> bool:
        """Check if event reports success."""
        return self.state is JobState.SUCCEEDED

    def delivery_headers(self) -> Dict[str, str]:
        """Get webhook headers identifying the job."""
        return {"X-Job-Id": self.job_id, "X-Correlation-ID": self.correlation_id}
