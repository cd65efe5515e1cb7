"""
Job models and state machine.

Sandi Metz Principles:
- Single Responsibility: Job data and legal transitions
- Explicit states: Closed enum plus transition table
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from pydantic import BaseModel, Field

from gengate.exceptions import IllegalTransitionError
from gengate.models.artifact import Artifact
from gengate.utils.clock import utc_now


class JobState(str, Enum):
    """Job lifecycle states."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return not TRANSITIONS[self]


TRANSITIONS: Mapping[JobState, FrozenSet[JobState]] = {
    JobState.QUEUED: frozenset({JobState.RUNNING, JobState.CANCELLED}),
    JobState.RUNNING: frozenset(
        {JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED}
    ),
    JobState.FAILED: frozenset({JobState.QUEUED, JobState.DEAD_LETTERED}),
    JobState.SUCCEEDED: frozenset(),
    JobState.DEAD_LETTERED: frozenset(),
    JobState.CANCELLED: frozenset(),
}


def can_transition(from_state: JobState, to_state: JobState) -> bool:
    """Check transition against the table."""
    return to_state in TRANSITIONS[from_state]


class JobError(BaseModel):
    """Classified execution error."""

    message: str = Field(..., description="Error message")
    error_type: str = Field(..., description="Exception class name")
    retryable: bool = Field(..., description="Whether the error is transient")
    occurred_at: datetime = Field(default_factory=utc_now, description="When it failed")

    @classmethod
    def from_exception(cls, error: BaseException, retryable: bool) -> "JobError":
        """Create from exception."""
        return cls(
            message=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            retryable=retryable,
        )


class Job(BaseModel):
    """Admitted unit of generation work."""

    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Job ID")
    fingerprint: Optional[str] = Field(
        None, description="Request fingerprint (None when unkeyable)"
    )
    subject_id: str = Field(..., description="Rate-limited actor")
    correlation_id: str = Field(..., description="Caller correlation ID")
    priority: int = Field(default=0, description="Scheduling priority")
    tier: str = Field(default="free", description="Subscription tier")
    priority_hint: int = Field(default=0, ge=0, le=9, description="Business hint")
    payload: Dict[str, Any] = Field(..., description="Provider payload")
    state: JobState = Field(default=JobState.QUEUED, description="Current state")
    attempts: int = Field(default=0, ge=0, description="Execution attempts")
    max_attempts: int = Field(default=3, ge=1, description="Attempt ceiling")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    enqueued_at: Optional[datetime] = Field(None, description="Last enqueue time")
    started_at: Optional[datetime] = Field(None, description="Start of the current attempt")
    eligible_at: Optional[datetime] = Field(None, description="Earliest next run")
    completed_at: Optional[datetime] = Field(None, description="Terminal time")
    last_error: Optional[JobError] = Field(None, description="Last failure")
    result: Optional[Artifact] = Field(None, description="Produced artifact")
    cancel_requested: bool = Field(default=False, description="Advisory cancel flag")
    owner_id: Optional[str] = Field(None, description="Queue instance holding the job")
    batch_id: Optional[str] = Field(None, description="Batch the job belongs to")
    callback_url: Optional[str] = Field(None, description="Completion webhook")
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Data echoed to the webhook"
    )

    @property
    def is_terminal(self) -> bool:
        """Check if job reached a terminal state."""
        return self.state.is_terminal

    @property
    def can_retry(self) -> bool:
        """Check if another attempt is permitted."""
        return self.attempts < self.max_attempts

    def transition_to(self, new_state: JobState, now: Optional[datetime] = None) -> JobState:
        """
        Move job to new state.

        Args:
            new_state: Target state
            now: Transition time

        Returns:
            Previous state

        Raises:
            IllegalTransitionError: If transition is not in the table
        """
        if not can_transition(self.state, new_state):
            raise IllegalTransitionError(
                self.job_id, self.state.value, new_state.value
            )
        previous = self.state
        self.state = new_state
        if new_state.is_terminal:
            self.completed_at = now or utc_now()
        return previous


class JobStatus(BaseModel):
    """Status view for polling clients."""

    job_id: str = Field(..., description="Job ID")
    state: JobState = Field(..., description="Current state")
    attempts: int = Field(..., ge=0, description="Execution attempts")
    result: Optional[Artifact] = Field(None, description="Artifact on success")
    error: Optional[JobError] = Field(None, description="Last error")
    queue_position: Optional[int] = Field(
        None, ge=1, description="1-based position among queued jobs"
    )
    created_at: datetime = Field(..., description="Creation time")
    completed_at: Optional[datetime] = Field(None, description="Terminal time")
    batch_id: Optional[str] = Field(None, description="Batch the job belongs to")

    @classmethod
    def from_job(cls, job: Job, queue_position: Optional[int] = None) -> "JobStatus":
        """Create status view from job."""
        return cls(
            job_id=job.job_id,
            state=job.state,
            attempts=job.attempts,
            result=job.result,
            error=job.last_error,
            queue_position=queue_position,
            created_at=job.created_at,
            completed_at=job.completed_at,
            batch_id=job.batch_id,
        )
