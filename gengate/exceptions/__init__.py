"""
Custom exceptions for the application.
"""


class AppError(Exception):
    """Base exception for application errors."""

    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid."""

    pass


class ValidationError(AppError):
    """Raised when validation fails."""

    pass


class CacheError(AppError):
    """Raised when the result cache backend fails."""

    pass


class CounterStoreError(AppError):
    """Raised when the rate limit / quota counter backend fails."""

    pass


class ModerationError(AppError):
    """Raised when content moderation fails."""

    pass


class ModerationUnavailableError(ModerationError):
    """Raised when the moderation collaborator is unreachable or times out."""

    pass


class GenerationError(AppError):
    """Raised when the generation provider fails."""

    pass


class TransientGenerationError(GenerationError):
    """Provider failure worth retrying (timeouts, network, throttling)."""

    pass


class PermanentGenerationError(GenerationError):
    """Provider failure that will not succeed on retry."""

    pass


class QueueError(AppError):
    """Raised when job queue operations fail."""

    pass


class QueueSaturatedError(QueueError):
    """Raised when the queue is at its maximum depth."""

    def __init__(self, depth: int, max_depth: int):
        super().__init__(f"Queue saturated ({depth}/{max_depth})")
        self.depth = depth
        self.max_depth = max_depth


class JobNotFoundError(QueueError):
    """Raised when a job ID is unknown."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class IllegalTransitionError(QueueError):
    """Raised when a job state transition is not in the transition table."""

    def __init__(self, job_id: str, from_state: str, to_state: str):
        super().__init__(f"Illegal transition for {job_id}: {from_state} -> {to_state}")
        self.job_id = job_id
        self.from_state = from_state
        self.to_state = to_state


class BatchNotFoundError(AppError):
    """Raised when a batch ID is unknown."""

    def __init__(self, batch_id: str):
        super().__init__(f"Batch not found: {batch_id}")
        self.batch_id = batch_id


class BatchTooLargeError(ValidationError):
    """Raised when a batch holds more items than allowed."""

    def __init__(self, size: int, max_size: int):
        super().__init__(f"Batch has {size} items, at most {max_size} allowed")
        self.size = size
        self.max_size = max_size


class NotificationDeliveryError(AppError):
    """Raised when a completion notification cannot be delivered."""

    pass
