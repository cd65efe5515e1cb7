"""
Batch submission models.

A batch groups several generation requests that share a subject, a
priority hint and a completion webhook. Each item is admitted on its own;
the batch tracks the outcomes and reports once every item has finished.

Sandi Metz Principles:
- Small classes with clear purpose
- Computed properties for derived counts
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from gengate.models.decision import RejectionReason
from gengate.models.job import JobState
from gengate.models.request import GenerationParameters
from gengate.utils.clock import utc_now


class BatchState(str, Enum):
    """Overall batch state."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BatchItem(BaseModel):
    """One prompt inside a batch body."""

    prompt: str = Field(..., min_length=1, max_length=4000, description="Prompt text")
    parameters: GenerationParameters = Field(
        default_factory=GenerationParameters, description="Generation parameters"
    )
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Opaque data echoed in the job webhook"
    )


class BatchSubmission(BaseModel):
    """HTTP body for submitting a batch; the subject comes from headers."""

    items: List[BatchItem] = Field(
        ..., min_length=1, max_length=500, description="Requests in the batch"
    )
    name: Optional[str] = Field(None, max_length=200, description="Batch label")
    priority_hint: int = Field(
        default=0, ge=0, le=9, description="Priority hint shared by every item"
    )
    callback_url: Optional[str] = Field(
        None, max_length=2000, description="Webhook called once the batch finishes"
    )
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Opaque data echoed in the batch webhook"
    )

    @field_validator("callback_url")
    @classmethod
    def validate_callback_url(cls, v: Optional[str]) -> Optional[str]:
        """Require an http(s) callback URL."""
        if v is None:
            return v
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("callback_url must be an http(s) URL")
        return v


class BatchItemRecord(BaseModel):
    """Admission outcome and current state of one batch item."""

    index: int = Field(..., ge=0, description="Position in the submitted batch")
    status: Literal["cached", "accepted", "rejected"] = Field(
        ..., description="Admission outcome"
    )
    job_id: Optional[str] = Field(None, description="Job ID when accepted")
    state: Optional[JobState] = Field(None, description="Job state when accepted")
    reason: Optional[RejectionReason] = Field(None, description="Rejection reason")
    fingerprint: Optional[str] = Field(None, description="Request fingerprint")

    @property
    def succeeded(self) -> bool:
        return self.status == "cached" or self.state is JobState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == "rejected" or self.state is JobState.DEAD_LETTERED

    @property
    def cancelled(self) -> bool:
        return self.state is JobState.CANCELLED

    @property
    def finished(self) -> bool:
        return self.succeeded or self.failed or self.cancelled


class Batch(BaseModel):
    """Stored batch record."""

    batch_id: str = Field(
        default_factory=lambda: f"batch_{uuid.uuid4().hex}", description="Batch ID"
    )
    subject_id: str = Field(..., description="Submitting subject")
    name: Optional[str] = Field(None, description="Batch label")
    priority_hint: int = Field(default=0, ge=0, le=9, description="Shared hint")
    callback_url: Optional[str] = Field(None, description="Batch webhook")
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Data echoed to the batch webhook"
    )
    items: List[BatchItemRecord] = Field(default_factory=list, description="Items")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    completed_at: Optional[datetime] = Field(
        None, description="When the last item finished"
    )

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.succeeded)

    @property
    def failure_count(self) -> int:
        return sum(1 for item in self.items if item.failed)

    @property
    def cancelled_count(self) -> int:
        return sum(1 for item in self.items if item.cancelled)

    @property
    def pending_count(self) -> int:
        finished = self.success_count + self.failure_count + self.cancelled_count
        return self.total - finished

    @property
    def is_finished(self) -> bool:
        return self.pending_count == 0

    @property
    def progress(self) -> float:
        """Get finished share of items as percentage."""
        if self.total == 0:
            return 100.0
        return round((self.total - self.pending_count) / self.total * 100.0, 1)

    @property
    def state(self) -> BatchState:
        """
        Derive the overall state from the items.

        An unfinished batch is ACTIVE once any of its jobs has started. A
        finished batch is COMPLETED when any item succeeded, CANCELLED
        when every item was cancelled, and FAILED otherwise.
        """
        if not self.is_finished:
            started = any(
                item.state is not None and item.state is not JobState.QUEUED
                for item in self.items
            )
            return BatchState.ACTIVE if started else BatchState.PENDING
        if self.success_count:
            return BatchState.COMPLETED
        if self.cancelled_count == self.total:
            return BatchState.CANCELLED
        return BatchState.FAILED

    def job_ids(self) -> List[str]:
        """Get IDs of accepted items' jobs."""
        return [item.job_id for item in self.items if item.job_id]


class BatchStatus(BaseModel):
    """Batch view for polling clients."""

    batch_id: str = Field(..., description="Batch ID")
    name: Optional[str] = Field(None, description="Batch label")
    state: BatchState = Field(..., description="Overall state")
    total_count: int = Field(..., ge=0, description="Items in the batch")
    success_count: int = Field(..., ge=0, description="Items served or generated")
    failure_count: int = Field(..., ge=0, description="Items rejected or dead-lettered")
    cancelled_count: int = Field(..., ge=0, description="Items cancelled")
    pending_count: int = Field(..., ge=0, description="Items still in flight")
    progress: float = Field(..., ge=0.0, le=100.0, description="Finished percentage")
    items: List[BatchItemRecord] = Field(..., description="Per-item outcomes")
    created_at: datetime = Field(..., description="Creation time")
    completed_at: Optional[datetime] = Field(None, description="Finish time")

    @classmethod
    def from_batch(cls, batch: Batch) -> "BatchStatus":
        """Create status view from batch."""
        return cls(
            batch_id=batch.batch_id,
            name=batch.name,
            state=batch.state,
            total_count=batch.total,
            success_count=batch.success_count,
            failure_count=batch.failure_count,
            cancelled_count=batch.cancelled_count,
            pending_count=batch.pending_count,
            progress=batch.progress,
            items=batch.items,
            created_at=batch.created_at,
            completed_at=batch.completed_at,
        )


class BatchCompletionEvent(BaseModel):
    """Batch outcome delivered to the batch webhook."""

    batch_id: str = Field(..., description="Batch ID")
    name: Optional[str] = Field(None, description="Batch label")
    state: BatchState = Field(..., description="Final state")
    total_count: int = Field(..., ge=0, description="Items in the batch")
    success_count: int = Field(..., ge=0, description="Items served or generated")
    failure_count: int = Field(..., ge=0, description="Items rejected or dead-lettered")
    cancelled_count: int = Field(..., ge=0, description="Items cancelled")
    job_ids: List[str] = Field(default_factory=list, description="Accepted items' jobs")
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Caller supplied data"
    )
    occurred_at: datetime = Field(default_factory=utc_now, description="Event time")

    @classmethod
    def from_batch(cls, batch: Batch) -> "BatchCompletionEvent":
        """
        Create event from a finished batch.

        Raises:
            ValueError: If items are still pending
        """
        if not batch.is_finished:
            raise ValueError(f"Batch {batch.batch_id} has pending items")
        return cls(
            batch_id=batch.batch_id,
            name=batch.name,
            state=batch.state,
            total_count=batch.total,
            success_count=batch.success_count,
            failure_count=batch.failure_count,
            cancelled_count=batch.cancelled_count,
            job_ids=batch.job_ids(),
            callback_data=batch.callback_data,
            occurred_at=batch.completed_at or utc_now(),
        )

    def delivery_headers(self) -> Dict[str, str]:
        """Get webhook headers identifying the batch."""
        return {"X-Batch-Id": self.batch_id}
