"""
Generation provider base class and interface.

Sandi Metz Principles:
- Single Responsibility: Provider abstraction
- Interface Segregation: Minimal provider interface
- Dependency Inversion: Depend on abstraction, not concrete classes
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from gengate.models.artifact import Artifact


class BaseGenerationProvider(ABC):
    """
    Abstract base class for generation backends.

    Implementations classify failures: TransientGenerationError when a
    retry may succeed, PermanentGenerationError when it cannot.
    """

    @abstractmethod
    async def generate(self, payload: Dict[str, Any]) -> Artifact:
        """
        Produce an artifact for a job payload.

        Args:
            payload: Prompt and generation parameters

        Returns:
            Generated artifact

        Raises:
            TransientGenerationError: If a retry may succeed
            PermanentGenerationError: If the request can never succeed
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Get provider name.

        Returns:
            Provider name (e.g., "openai")
        """
        pass

    def _build_error_message(self, error: Exception, context: str) -> str:
        """
        Build error message with context.

        Args:
            error: The exception that occurred
            context: Context description

        Returns:
            Formatted error message
        """
        return f"{context}: {type(error).__name__} - {str(error)}"
