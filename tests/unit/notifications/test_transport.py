"""Test webhook transport."""

import json

import httpx
import pytest
import respx

from gengate.exceptions import NotificationDeliveryError
from gengate.models.batch import BatchCompletionEvent, BatchState
from gengate.models.job import JobState
from gengate.models.notification import CompletionEvent
from gengate.notifications.transport import WebhookTransport

HOOK_URL = "https://hooks.example.com/done"


@pytest.fixture
def event(sample_artifact):
    """Create success event."""
    return CompletionEvent(
        job_id="job-1",
        correlation_id="corr-1",
        state=JobState.SUCCEEDED,
        result=sample_artifact,
        callback_data={"order": 7},
    )


class TestWebhookTransport:
    """Test webhook delivery."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_should_post_event(self, event):
        """Test JSON body and headers."""
        route = respx.post(HOOK_URL).mock(return_value=httpx.Response(204))
        transport = WebhookTransport()

        await transport.deliver(HOOK_URL, event)
        await transport.close()

        request = route.calls.last.request
        assert request.headers["X-Job-Id"] == "job-1"
        assert request.headers["X-Correlation-ID"] == "corr-1"
        body = json.loads(request.content)
        assert body["state"] == "succeeded"
        assert body["callback_data"] == {"order": 7}

    @pytest.mark.asyncio
    @respx.mock
    async def test_should_raise_on_error_status(self, event):
        """Test non-2xx responses fail delivery."""
        respx.post(HOOK_URL).mock(return_value=httpx.Response(500))

        with pytest.raises(NotificationDeliveryError, match="HTTP 500"):
            await WebhookTransport().deliver(HOOK_URL, event)

    @pytest.mark.asyncio
    @respx.mock
    async def test_should_raise_on_network_error(self, event):
        """Test connection failures fail delivery."""
        respx.post(HOOK_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NotificationDeliveryError):
            await WebhookTransport().deliver(HOOK_URL, event)

    @pytest.mark.asyncio
    @respx.mock
    async def test_should_post_batch_event(self):
        """Test batch events are identified by batch ID."""
        route = respx.post(HOOK_URL).mock(return_value=httpx.Response(200))
        event = BatchCompletionEvent(
            batch_id="batch_1",
            state=BatchState.FAILED,
            total_count=1,
            success_count=0,
            failure_count=1,
            cancelled_count=0,
        )

        await WebhookTransport().deliver(HOOK_URL, event)

        request = route.calls.last.request
        assert request.headers["X-Batch-Id"] == "batch_1"
        assert json.loads(request.content)["state"] == "failed"
