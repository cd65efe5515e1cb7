"""
API Routes module.

Contains all API endpoint routers.
"""

from gengate.api.routes import batches, generations, health, metrics

__all__ = ["batches", "generations", "health", "metrics"]
