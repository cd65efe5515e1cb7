"""
Structured logging configuration.

Following Sandi Metz principles:
- Single Responsibility: Logging setup and configuration
- Small functions: Each setup step isolated
- Clear naming: Descriptive function names
"""

import logging
import sys
from typing import Any, Optional

import structlog


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


def bind_correlation_id(correlation_id: str) -> None:
    """
    Bind correlation ID to all log lines of the current context.

    Args:
        correlation_id: Request or job correlation identifier
    """
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    """Remove correlation ID from the current context."""
    structlog.contextvars.unbind_contextvars("correlation_id")


def log_cache_hit(fingerprint: str, hit_count: int, **kwargs: Any) -> None:
    """
    Log cache hit.

    Args:
        fingerprint: Request fingerprint
        hit_count: Hit count after this hit
        **kwargs: Additional context
    """
    logger = get_logger("cache")
    logger.info("cache_hit", fingerprint=fingerprint, hit_count=hit_count, **kwargs)


def log_cache_miss(fingerprint: str, **kwargs: Any) -> None:
    """
    Log cache miss.

    Args:
        fingerprint: Request fingerprint
        **kwargs: Additional context
    """
    logger = get_logger("cache")
    logger.info("cache_miss", fingerprint=fingerprint, **kwargs)


def log_admission(
    subject_id: str, allowed: bool, reason: Optional[str] = None, **kwargs: Any
) -> None:
    """
    Log admission decision.

    Rejections are expected outcomes and are logged at info level.

    Args:
        subject_id: Rate-limited actor
        allowed: Whether the request was admitted
        reason: Rejection reason code
        **kwargs: Additional context
    """
    logger = get_logger("admission")
    logger.info(
        "admission_decision",
        subject_id=subject_id,
        allowed=allowed,
        reason=reason,
        **kwargs,
    )


def log_job_transition(
    job_id: str, from_state: str, to_state: str, **kwargs: Any
) -> None:
    """
    Log job state transition.

    Args:
        job_id: Job identifier
        from_state: Previous state
        to_state: New state
        **kwargs: Additional context
    """
    logger = get_logger("jobs")
    logger.info(
        "job_transition", job_id=job_id, from_state=from_state, to_state=to_state, **kwargs
    )


def log_error(error: Exception, context: str, **kwargs: Any) -> None:
    """
    Log error with context.

    Args:
        error: Exception that occurred
        context: Error context
        **kwargs: Additional context
    """
    logger = get_logger("error")
    logger.error(
        "error_occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context,
        **kwargs
    )
