"""Test OpenAI image provider."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import BadRequestError, RateLimitError

from gengate.exceptions import PermanentGenerationError, TransientGenerationError
from gengate.generation.openai_provider import OpenAIImageProvider

IMAGES_URL = "https://api.openai.com/v1/images/generations"


def _api_error(error_cls, status_code):
    request = httpx.Request("POST", IMAGES_URL)
    response = httpx.Response(status_code, request=request)
    return error_cls("provider error", response=response, body=None)


def _images_response(*images):
    response = MagicMock()
    response.data = list(images)
    return response


def _image(url=None, b64_json=None, revised_prompt=None):
    return MagicMock(url=url, b64_json=b64_json, revised_prompt=revised_prompt)


@pytest.fixture
def mock_client():
    """Create mocked AsyncOpenAI client."""
    client = MagicMock()
    client.images.generate = AsyncMock(
        return_value=_images_response(
            _image(url="https://cdn.example.com/a.png", revised_prompt="A lighthouse")
        )
    )
    return client


class TestOpenAIImageProvider:
    """Test OpenAI provider."""

    @pytest.mark.asyncio
    async def test_should_generate_artifact(self, mock_client):
        """Test successful generation maps the response."""
        with patch(
            "gengate.generation.openai_provider.AsyncOpenAI", return_value=mock_client
        ):
            provider = OpenAIImageProvider(api_key="test-key")
            artifact = await provider.generate({"prompt": "a lighthouse", "n": 1})

        assert artifact.uris == ["https://cdn.example.com/a.png"]
        assert artifact.model == "dall-e-3"
        assert artifact.revised_prompt == "A lighthouse"
        assert artifact.metadata == {"provider": "openai"}
        mock_client.images.generate.assert_called_once_with(
            model="dall-e-3", prompt="a lighthouse", size="1024x1024", n=1
        )

    @pytest.mark.asyncio
    async def test_should_pass_parameters_and_extra(self, mock_client):
        """Test payload parameters override defaults."""
        payload = {
            "prompt": "p",
            "model": "gpt-image-1",
            "size": "512x512",
            "quality": "hd",
            "extra": {"background": "transparent"},
        }
        with patch(
            "gengate.generation.openai_provider.AsyncOpenAI", return_value=mock_client
        ):
            await OpenAIImageProvider(api_key="test-key").generate(payload)

        kwargs = mock_client.images.generate.call_args.kwargs
        assert kwargs["model"] == "gpt-image-1"
        assert kwargs["size"] == "512x512"
        assert kwargs["quality"] == "hd"
        assert kwargs["extra_body"] == {"background": "transparent"}

    @pytest.mark.asyncio
    async def test_should_encode_base64_images(self, mock_client):
        """Test b64 responses become data URIs."""
        mock_client.images.generate = AsyncMock(
            return_value=_images_response(_image(b64_json="aGVsbG8="))
        )
        with patch(
            "gengate.generation.openai_provider.AsyncOpenAI", return_value=mock_client
        ):
            artifact = await OpenAIImageProvider(api_key="k").generate({"prompt": "p"})

        assert artifact.primary_uri == "data:image/png;base64,aGVsbG8="

    @pytest.mark.asyncio
    async def test_should_classify_rate_limit_as_transient(self, mock_client):
        """Test throttling is retryable."""
        mock_client.images.generate = AsyncMock(
            side_effect=_api_error(RateLimitError, 429)
        )
        with patch(
            "gengate.generation.openai_provider.AsyncOpenAI", return_value=mock_client
        ):
            with pytest.raises(TransientGenerationError):
                await OpenAIImageProvider(api_key="k").generate({"prompt": "p"})

    @pytest.mark.asyncio
    async def test_should_classify_bad_request_as_permanent(self, mock_client):
        """Test rejected request is not retryable."""
        mock_client.images.generate = AsyncMock(
            side_effect=_api_error(BadRequestError, 400)
        )
        with patch(
            "gengate.generation.openai_provider.AsyncOpenAI", return_value=mock_client
        ):
            with pytest.raises(PermanentGenerationError):
                await OpenAIImageProvider(api_key="k").generate({"prompt": "p"})

    @pytest.mark.asyncio
    async def test_should_fail_permanently_on_empty_response(self, mock_client):
        """Test response without images."""
        mock_client.images.generate = AsyncMock(return_value=_images_response())
        with patch(
            "gengate.generation.openai_provider.AsyncOpenAI", return_value=mock_client
        ):
            with pytest.raises(PermanentGenerationError):
                await OpenAIImageProvider(api_key="k").generate({"prompt": "p"})

    def test_should_reuse_client(self, mock_client):
        """Test client is created lazily once."""
        with patch(
            "gengate.generation.openai_provider.AsyncOpenAI", return_value=mock_client
        ) as factory:
            provider = OpenAIImageProvider(api_key="k")
            provider._get_client()
            provider._get_client()

        factory.assert_called_once_with(api_key="k")
        assert provider.get_name() == "openai"
