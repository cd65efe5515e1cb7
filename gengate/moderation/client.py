"""
Content moderation collaborators.

Sandi Metz Principles:
- Interface Segregation: Minimal check() interface
- Dependency Inversion: Gate depends on the abstraction
"""

import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from openai import AsyncOpenAI, OpenAIError

from gengate.exceptions import ModerationUnavailableError
from gengate.models.moderation import ModerationResult
from gengate.utils.logger import get_logger

logger = get_logger(__name__)


class BaseModerationClient(ABC):
    """Abstract moderation collaborator."""

    @abstractmethod
    async def check(self, content: str) -> ModerationResult:
        """
        Check content against policy.

        Args:
            content: Text to check

        Returns:
            Moderation result

        Raises:
            ModerationUnavailableError: If the collaborator cannot answer
        """

    @abstractmethod
    def get_name(self) -> str:
        """Get collaborator name."""


class NullModerationClient(BaseModerationClient):
    """Allows all content."""

    async def check(self, content: str) -> ModerationResult:
        return ModerationResult.clean()

    def get_name(self) -> str:
        return "none"


class KeywordModerationClient(BaseModerationClient):
    """
    Static block-list moderation.

    A term matches case-insensitively when it is not part of a longer
    word. Terms may start or end with punctuation, such as "c++".
    """

    def __init__(self, blocked_terms: Iterable[str], category: str = "blocked_term"):
        """
        Initialize client.

        Args:
            blocked_terms: Terms that flag content
            category: Category reported for matches
        """
        self._terms = [term.strip().lower() for term in blocked_terms if term.strip()]
        self._category = category
        alternatives = "|".join(
            re.escape(term) for term in sorted(self._terms, key=len, reverse=True)
        )
        self._pattern = (
            re.compile(rf"(?<!\w)({alternatives})(?!\w)", re.IGNORECASE)
            if self._terms
            else None
        )

    async def check(self, content: str) -> ModerationResult:
        if self._pattern is None or not self._pattern.search(content):
            return ModerationResult.clean()
        return ModerationResult(flagged=True, categories=[self._category])

    def get_name(self) -> str:
        return "keyword"


class OpenAIModerationClient(BaseModerationClient):
    """
    OpenAI moderation endpoint.

    API failures are reported as ModerationUnavailableError so the gate can
    apply its outage policy.
    """

    def __init__(self, api_key: str, model: Optional[str] = None):
        """
        Initialize client.

        Args:
            api_key: OpenAI API key
            model: Moderation model (provider default if None)
        """
        self._api_key = api_key
        self._model = model
        self._client: AsyncOpenAI | None = None

    async def check(self, content: str) -> ModerationResult:
        client = self._get_client()
        kwargs = {"input": content}
        if self._model:
            kwargs["model"] = self._model

        try:
            response = await client.moderations.create(**kwargs)
        except OpenAIError as e:
            logger.error("OpenAI moderation failed", error=str(e))
            raise ModerationUnavailableError(f"Moderation failed: {e}") from e

        result = response.results[0]
        return ModerationResult(
            flagged=bool(result.flagged),
            categories=self._flagged_categories(result.categories),
        )

    @staticmethod
    def _flagged_categories(categories) -> List[str]:
        """Extract names of categories marked True."""
        if categories is None:
            return []
        values = (
            categories.model_dump()
            if hasattr(categories, "model_dump")
            else dict(categories)
        )
        return sorted(name for name, flagged in values.items() if flagged)

    def get_name(self) -> str:
        return "openai"

    def _get_client(self) -> AsyncOpenAI:
        if not self._client:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client
