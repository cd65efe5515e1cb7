"""
Prompt Normalizer Service.

Normalizes prompts and generation parameters for consistent fingerprinting.

Sandi Metz Principles:
- Single Responsibility: Text normalization
- Small methods: Each normalization step isolated
- Composable: Steps can be enabled/disabled
"""

import re
import unicodedata
from typing import Any

from gengate.utils.logger import get_logger

logger = get_logger(__name__)


class PromptNormalizer:
    """
    Normalizes prompts for consistent cache matching.

    Applies unicode, case and whitespace normalization.
    """

    def __init__(
        self,
        casefold: bool = True,
        strip_whitespace: bool = True,
        collapse_whitespace: bool = True,
        unicode_normalize: bool = True,
    ):
        """
        Initialize normalizer with options.

        Args:
            casefold: Apply unicode case folding
            strip_whitespace: Strip leading/trailing whitespace
            collapse_whitespace: Collapse whitespace runs to one space
            unicode_normalize: Normalize unicode to NFKC
        """
        self._casefold = casefold
        self._strip_whitespace = strip_whitespace
        self._collapse_whitespace = collapse_whitespace
        self._unicode_normalize = unicode_normalize

    def normalize(self, text: str) -> str:
        """
        Normalize a prompt string.

        Args:
            text: Raw text

        Returns:
            Normalized text
        """
        if not text:
            return ""

        result = text

        if self._unicode_normalize:
            result = self._normalize_unicode(result)

        if self._strip_whitespace:
            result = result.strip()

        if self._casefold:
            result = result.casefold()

        if self._collapse_whitespace:
            result = self._collapse_spaces(result)

        return result

    def normalize_value(self, value: Any) -> Any:
        """
        Normalize a parameter value recursively.

        Strings are normalized like prompts; mapping keys are trimmed and
        sorted; sequences keep their order.

        Args:
            value: Parameter value

        Returns:
            Normalized value
        """
        if isinstance(value, str):
            return self.normalize(value)
        if isinstance(value, dict):
            return {
                str(key).strip(): self.normalize_value(item)
                for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))
                if item is not None
            }
        if isinstance(value, (list, tuple)):
            return [self.normalize_value(item) for item in value]
        return value

    @staticmethod
    def _normalize_unicode(text: str) -> str:
        """Normalize unicode to NFKC form."""
        return unicodedata.normalize("NFKC", text)

    @staticmethod
    def _collapse_spaces(text: str) -> str:
        """Collapse whitespace runs to a single space."""
        return re.sub(r"\s+", " ", text)


# Default normalizer instance
default_normalizer = PromptNormalizer()


def normalize_prompt(text: str) -> str:
    """
    Normalize a prompt using default settings.

    Args:
        text: Raw prompt

    Returns:
        Normalized prompt
    """
    return default_normalizer.normalize(text)
