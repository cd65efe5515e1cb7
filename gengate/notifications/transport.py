"""
Webhook transport.

Sandi Metz Principles:
- Single Responsibility: HTTP delivery of completion events
- Dependency Injection: HTTP client injectable
"""

from typing import Optional, Union

import httpx

from gengate.exceptions import NotificationDeliveryError
from gengate.models.batch import BatchCompletionEvent
from gengate.models.notification import CompletionEvent
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

WebhookEvent = Union[CompletionEvent, BatchCompletionEvent]


class WebhookTransport:
    """POSTs completion events to caller supplied URLs."""

    def __init__(
        self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize transport.

        Args:
            timeout: Per-request timeout in seconds
            client: HTTP client (created lazily if None)
        """
        self._timeout = timeout
        self._client = client

    async def deliver(self, url: str, event: WebhookEvent) -> None:
        """
        Deliver one event.

        Args:
            url: Webhook URL
            event: Job or batch completion event

        Raises:
            NotificationDeliveryError: On network failure or non-2xx response
        """
        headers = event.delivery_headers()
        try:
            response = await self._get_client().post(
                url, json=event.model_dump(mode="json"), headers=headers
            )
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(
                f"Webhook request failed: {type(e).__name__} - {e}"
            ) from e

        if not response.is_success:
            raise NotificationDeliveryError(
                f"Webhook returned HTTP {response.status_code}"
            )
        logger.debug("Webhook delivered", url=url, status=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client
