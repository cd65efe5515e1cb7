"""
Content moderation module.

Provides the moderation collaborators used by the admission gate.
"""

from gengate.moderation.client import (
    BaseModerationClient,
    KeywordModerationClient,
    NullModerationClient,
    OpenAIModerationClient,
)

__all__ = [
    "BaseModerationClient",
    "KeywordModerationClient",
    "NullModerationClient",
    "OpenAIModerationClient",
]
