"""
API Request Logging Middleware.

Logs every request with its timing and binds a correlation ID so that
admission and queue logs emitted while serving it carry the same ID.

Sandi Metz Principles:
- Single Responsibility: Request/response logging
- Non-intrusive: Doesn't modify request/response
- Configurable: Log levels and fields
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from gengate.utils.logger import bind_correlation_id, clear_correlation_id, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"
MAX_INCOMING_ID_LENGTH = 64


@dataclass
class LoggingConfig:
    """Logging configuration."""

    enabled: bool = True
    log_headers: bool = False
    excluded_paths: List[str] = field(
        default_factory=lambda: ["/health", "/healthz", "/live", "/ready"]
    )
    slow_request_threshold_ms: float = 1000.0


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for request/response logging.

    Reuses an incoming X-Correlation-ID header when present.
    """

    def __init__(
        self,
        app,
        config: Optional[LoggingConfig] = None,
    ):
        """
        Initialize middleware.

        Args:
            app: FastAPI application
            config: Logging configuration
        """
        super().__init__(app)
        self._config = config or LoggingConfig()

    def _resolve_request_id(self, request: Request) -> str:
        """Take caller correlation ID or generate one."""
        incoming = request.headers.get(CORRELATION_ID_HEADER, "").strip()
        if incoming and len(incoming) <= MAX_INCOMING_ID_LENGTH:
            return incoming
        return uuid.uuid4().hex

    def _should_log(self, path: str) -> bool:
        """Check if path should be logged."""
        if not self._config.enabled:
            return False
        return path not in self._config.excluded_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request with logging.

        Args:
            request: Incoming request
            call_next: Next middleware/handler

        Returns:
            Response
        """
        request_id = self._resolve_request_id(request)
        request.state.request_id = request_id
        bind_correlation_id(request_id)

        try:
            if not self._should_log(request.url.path):
                response = await call_next(request)
            else:
                response = await self._dispatch_logged(request, call_next, request_id)
        finally:
            clear_correlation_id()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    async def _dispatch_logged(
        self, request: Request, call_next: Callable, request_id: str
    ) -> Response:
        start_time = time.time()

        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
        }
        if self._config.log_headers:
            log_data["headers"] = dict(request.headers)

        logger.info("Request started", **log_data)

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Request failed",
                request_id=request_id,
                duration_ms=round(duration_ms, 2),
                error=str(e),
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        response_log = {
            "request_id": request_id,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }

        if duration_ms > self._config.slow_request_threshold_ms:
            logger.warning("Slow request detected", **response_log)
        else:
            logger.info("Request completed", **response_log)

        return response


# Default configuration
default_logging_config = LoggingConfig(
    enabled=True,
    slow_request_threshold_ms=1000.0,
)
