"""
Generated artifact model.

Sandi Metz Principles:
- Small classes with clear purpose
- Clear naming conventions
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Artifact(BaseModel):
    """Reference to a generated artifact."""

    uris: List[str] = Field(..., min_length=1, description="Artifact locations")
    content_type: str = Field(default="image/png", description="MIME type")
    model: Optional[str] = Field(None, description="Model that produced it")
    revised_prompt: Optional[str] = Field(
        None, description="Prompt as rewritten by the provider"
    )
    confidence: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Provider confidence score"
    )
    flagged: bool = Field(default=False, description="Flagged by post-checks")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Extra data")

    @property
    def primary_uri(self) -> str:
        """Get first artifact location."""
        return self.uris[0]

    def is_low_confidence(self, threshold: float) -> bool:
        """
        Check whether the artifact should be cached briefly.

        Args:
            threshold: Confidence below which the artifact is low confidence

        Returns:
            True if flagged or below threshold
        """
        if self.flagged:
            return True
        return self.confidence is not None and self.confidence < threshold
