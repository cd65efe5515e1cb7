"""
OpenAI image generation provider.

Sandi Metz Principles:
- Single Responsibility: OpenAI Images API interaction
- Small methods: Each method < 10 lines
- Dependency Injection: API key injected
"""

from typing import Any, Dict, Optional

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)

from gengate.exceptions import PermanentGenerationError, TransientGenerationError
from gengate.generation.provider import BaseGenerationProvider
from gengate.models.artifact import Artifact
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRORS = (
    RateLimitError,
    APITimeoutError,
    APIConnectionError,
    InternalServerError,
)

PASSTHROUGH_PARAMETERS = ("quality", "style", "n")


class OpenAIImageProvider(BaseGenerationProvider):
    """
    OpenAI implementation of the generation provider.

    Rate limits, timeouts, connection failures and server errors are
    transient; every other API error is permanent.
    """

    def __init__(
        self,
        api_key: str,
        default_model: str = "dall-e-3",
        default_size: str = "1024x1024",
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            default_model: Model used when the payload names none
            default_size: Size used when the payload names none
        """
        self._api_key = api_key
        self._default_model = default_model
        self._default_size = default_size
        self._client: Optional[AsyncOpenAI] = None

    async def generate(self, payload: Dict[str, Any]) -> Artifact:
        """
        Generate images using OpenAI.

        Args:
            payload: Prompt and generation parameters

        Returns:
            Artifact referencing the generated images

        Raises:
            TransientGenerationError: On retryable API failures
            PermanentGenerationError: On any other API failure
        """
        try:
            response = await self._make_api_call(payload)
        except TRANSIENT_ERRORS as e:
            logger.warning("OpenAI transient error", error=str(e))
            raise TransientGenerationError(
                self._build_error_message(e, "OpenAI image call failed")
            ) from e
        except OpenAIError as e:
            logger.error("OpenAI error", error=str(e))
            raise PermanentGenerationError(
                self._build_error_message(e, "OpenAI image call failed")
            ) from e

        return self._to_artifact(response, payload)

    async def _make_api_call(self, payload: Dict[str, Any]) -> Any:
        """
        Make OpenAI Images API call.

        Args:
            payload: Prompt and generation parameters

        Returns:
            Raw images response
        """
        client = self._get_client()
        kwargs = {
            key: payload[key] for key in PASSTHROUGH_PARAMETERS if key in payload
        }
        if payload.get("extra"):
            kwargs["extra_body"] = payload["extra"]

        return await client.images.generate(
            model=payload.get("model") or self._default_model,
            prompt=payload["prompt"],
            size=payload.get("size") or self._default_size,
            **kwargs,
        )

    def _to_artifact(self, response: Any, payload: Dict[str, Any]) -> Artifact:
        """
        Convert images response to artifact.

        Raises:
            PermanentGenerationError: If the response holds no images
        """
        uris = []
        revised_prompt = None
        for image in response.data or []:
            if image.url:
                uris.append(image.url)
            elif image.b64_json:
                uris.append(f"data:image/png;base64,{image.b64_json}")
            revised_prompt = revised_prompt or image.revised_prompt

        if not uris:
            raise PermanentGenerationError("OpenAI returned no images")

        return Artifact(
            uris=uris,
            model=payload.get("model") or self._default_model,
            revised_prompt=revised_prompt,
            metadata={"provider": self.get_name()},
        )

    def get_name(self) -> str:
        """
        Get provider name.

        Returns:
            Provider name
        """
        return "openai"

    def _get_client(self) -> AsyncOpenAI:
        """
        Get or create OpenAI client.

        Returns:
            OpenAI async client
        """
        if not self._client:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client
