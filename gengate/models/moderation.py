"""
Content moderation result model.
"""

from typing import List

from pydantic import BaseModel, Field


class ModerationResult(BaseModel):
    """Moderation verdict for a piece of content."""

    flagged: bool = Field(..., description="Whether content violates policy")
    categories: List[str] = Field(
        default_factory=list, description="Violated policy categories"
    )

    @classmethod
    def clean(cls) -> "ModerationResult":
        """Create non-flagged result."""
        return cls(flagged=False)
