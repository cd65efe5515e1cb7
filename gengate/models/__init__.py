"""
Models package for GenGate.

Exports all model classes for easy imports throughout the application.
"""

# Artifact models
from gengate.models.artifact import Artifact

# Cache models
from gengate.models.cache_entry import CacheEntry

# Admission models
from gengate.models.decision import RejectionReason, RestrictionDecision

# Error models
from gengate.models.error import ErrorCode, ErrorResponse

# Job models
from gengate.models.job import TRANSITIONS, Job, JobError, JobState, JobStatus

# Moderation models
from gengate.models.moderation import ModerationResult

# Notification models
from gengate.models.notification import CompletionEvent

# Rate limiting models
from gengate.models.ratelimit import QuotaState, RateLimitInfo, WindowConfig, WindowUsage

# Request models
from gengate.models.request import (
    GenerationParameters,
    GenerationRequest,
    GenerationSubmission,
)

# Response models
from gengate.models.response import HealthResponse, MetricsResponse, SubmissionResponse

# Statistics models
from gengate.models.statistics import (
    CacheStatistics,
    NotifierStatistics,
    QueueStatistics,
)

__all__ = [
    "Artifact",
    # Cache
    "CacheEntry",
    "CacheStatistics",
    # Admission
    "RejectionReason",
    "RestrictionDecision",
    "QuotaState",
    "RateLimitInfo",
    "WindowConfig",
    "WindowUsage",
    "ModerationResult",
    # Error
    "ErrorCode",
    "ErrorResponse",
    # Jobs
    "TRANSITIONS",
    "Job",
    "JobError",
    "JobState",
    "JobStatus",
    "QueueStatistics",
    # Notifications
    "CompletionEvent",
    "NotifierStatistics",
    # Request / response
    "GenerationParameters",
    "GenerationRequest",
    "GenerationSubmission",
    "HealthResponse",
    "MetricsResponse",
    "SubmissionResponse",
]
