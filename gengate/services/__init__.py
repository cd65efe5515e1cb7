"""
Services module.

Contains business logic services for the application.
"""

from gengate.services.batch_service import BatchService
from gengate.services.generation_service import GenerationService

__all__ = ["BatchService", "GenerationService"]
