"""
Fingerprint Engine.

Derives the cache / deduplication key of a generation request from its
semantic content.

Sandi Metz Principles:
- Single Responsibility: Key derivation
- Pure: No side effects, deterministic output
- Dependency Injection: Normalizer injected
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from gengate.models.request import GenerationRequest
from gengate.pipeline.normalizer import PromptNormalizer, default_normalizer
from gengate.utils.hasher import canonical_json, generate_fingerprint_key
from gengate.utils.logger import get_logger

logger = get_logger(__name__)

# Request-unique metadata that never changes the produced artifact
EXCLUDED_PARAMETERS = frozenset(
    {
        "request_id",
        "correlation_id",
        "timestamp",
        "requested_at",
        "callback_url",
        "callback_data",
        "subject_id",
        "tier",
        "priority_hint",
    }
)


@dataclass(frozen=True)
class FingerprintKey:
    """Fingerprint of a request; value is None when the request is unkeyable."""

    value: Optional[str]

    @property
    def is_keyable(self) -> bool:
        """Check if request may use the cache."""
        return self.value is not None

    def __str__(self) -> str:
        return self.value or "unkeyable"


UNKEYABLE = FingerprintKey(None)


class FingerprintEngine:
    """
    Computes request fingerprints.

    Two requests with the same normalized prompt and parameters always map
    to the same key.
    """

    def __init__(self, normalizer: Optional[PromptNormalizer] = None):
        """
        Initialize engine.

        Args:
            normalizer: Prompt normalizer (uses default if None)
        """
        self._normalizer = normalizer or default_normalizer

    def fingerprint(self, request: GenerationRequest) -> FingerprintKey:
        """
        Compute fingerprint of a generation request.

        Args:
            request: Generation request

        Returns:
            Fingerprint key, or UNKEYABLE for empty/malformed content
        """
        return self.fingerprint_content(
            request.prompt, request.parameters.model_dump()
        )

    def fingerprint_content(
        self, prompt: Any, parameters: Optional[Mapping[str, Any]] = None
    ) -> FingerprintKey:
        """
        Compute fingerprint from raw prompt and parameters.

        Args:
            prompt: Prompt text
            parameters: Generation parameters

        Returns:
            Fingerprint key, or UNKEYABLE for empty/malformed content
        """
        if not isinstance(prompt, str):
            return UNKEYABLE

        normalized_prompt = self._normalizer.normalize(prompt)
        if not normalized_prompt:
            return UNKEYABLE

        try:
            canonical = canonical_json(
                {
                    "prompt": normalized_prompt,
                    "params": self._canonical_parameters(parameters or {}),
                }
            )
            key = generate_fingerprint_key(canonical)
        except (TypeError, ValueError) as e:
            # UnicodeEncodeError (lone surrogates) is a ValueError
            logger.warning("Request is unkeyable", error=str(e))
            return UNKEYABLE

        return FingerprintKey(key)

    def _canonical_parameters(self, parameters: Mapping[str, Any]) -> dict:
        """
        Drop request-unique and empty parameters, then normalize.

        Args:
            parameters: Raw parameters

        Returns:
            Canonical parameter mapping
        """
        relevant = {
            key: value
            for key, value in parameters.items()
            if key not in EXCLUDED_PARAMETERS and value is not None and value != {}
        }
        extra = relevant.get("extra")
        if isinstance(extra, dict):
            extra = {
                key: value
                for key, value in extra.items()
                if key not in EXCLUDED_PARAMETERS and value is not None
            }
            if extra:
                relevant["extra"] = extra
            else:
                relevant.pop("extra")
        return self._normalizer.normalize_value(relevant)


# Default engine instance
default_engine = FingerprintEngine()


def fingerprint(request: GenerationRequest) -> FingerprintKey:
    """
    Compute fingerprint using the default engine.

    Args:
        request: Generation request

    Returns:
        Fingerprint key
    """
    return default_engine.fingerprint(request)
