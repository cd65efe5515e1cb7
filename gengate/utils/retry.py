"""
Retry backoff policy shared by job retries and webhook delivery.

Sandi Metz Principles:
- Single Responsibility: Backoff calculation
- Small methods: Each method < 10 lines
- Dependency Injection: Configuration injected
"""

from dataclasses import dataclass

from gengate.config import AppConfig


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff configuration."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0

    @classmethod
    def from_config(cls, app_config: AppConfig) -> "RetryPolicy":
        """Build job retry policy from application configuration."""
        return cls(
            max_attempts=app_config.max_attempts,
            initial_delay=app_config.retry_initial_delay,
            max_delay=app_config.retry_max_delay,
            exponential_base=app_config.retry_exponential_base,
        )

    @classmethod
    def for_notifications(cls, app_config: AppConfig) -> "RetryPolicy":
        """Build delivery retry policy from application configuration."""
        return cls(
            max_attempts=app_config.notification_max_attempts,
            initial_delay=app_config.notification_initial_delay,
            max_delay=app_config.retry_max_delay,
            exponential_base=app_config.retry_exponential_base,
        )

    def delay_for(self, attempt: int) -> float:
        """
        Calculate delay after a failed attempt.

        Args:
            attempt: Failed attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        delay = self.initial_delay * (self.exponential_base ** (max(1, attempt) - 1))
        return min(delay, self.max_delay)
