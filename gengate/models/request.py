"""
Generation request and validation models.

Sandi Metz Principles:
- Small classes focused on data validation
- Clear property names
- Single responsibility per model
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from gengate.utils.clock import utc_now

Tier = Literal["free", "pro", "enterprise"]


class GenerationParameters(BaseModel):
    """Generation parameters that change the produced artifact."""

    model: Optional[str] = Field(
        None, description="Image model name", examples=["dall-e-3"]
    )
    size: Optional[str] = Field(
        None, description="Output size", examples=["1024x1024"]
    )
    quality: Optional[str] = Field(None, description="Quality preset")
    style: Optional[str] = Field(None, description="Style preset")
    n: int = Field(default=1, ge=1, le=4, description="Number of images")
    negative_prompt: Optional[str] = Field(
        None, max_length=2000, description="Content to avoid"
    )
    seed: Optional[int] = Field(None, ge=0, description="Deterministic seed")
    extra: Dict[str, Any] = Field(
        default_factory=dict, description="Provider specific parameters"
    )


class GenerationRequest(BaseModel):
    """Incoming generation request."""

    prompt: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="Prompt text",
        examples=["A lighthouse at dusk, watercolor"],
    )
    parameters: GenerationParameters = Field(
        default_factory=GenerationParameters, description="Generation parameters"
    )
    subject_id: str = Field(
        ..., min_length=1, max_length=200, description="Rate-limited actor"
    )
    tier: Tier = Field(default="free", description="Subscription tier")
    priority_hint: int = Field(
        default=0, ge=0, le=9, description="Business priority hint (0-9)"
    )
    callback_url: Optional[str] = Field(
        None, max_length=2000, description="Webhook for completion notification"
    )
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Opaque data echoed in the webhook"
    )
    correlation_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex, description="Correlation ID"
    )
    batch_id: Optional[str] = Field(None, description="Batch the request belongs to")
    requested_at: datetime = Field(
        default_factory=utc_now, description="When the request was received"
    )

    @field_validator("callback_url")
    @classmethod
    def validate_callback_url(cls, v: Optional[str]) -> Optional[str]:
        """Require an http(s) callback URL."""
        if v is None:
            return v
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("callback_url must be an http(s) URL")
        return v

    def to_payload(self) -> Dict[str, Any]:
        """Build provider payload from prompt and parameters."""
        payload = self.parameters.model_dump(exclude_none=True)
        payload["prompt"] = self.prompt
        return payload


class GenerationSubmission(BaseModel):
    """HTTP request body; the subject and tier come from headers."""

    prompt: str = Field(..., min_length=1, max_length=4000, description="Prompt text")
    parameters: GenerationParameters = Field(
        default_factory=GenerationParameters, description="Generation parameters"
    )
    priority_hint: int = Field(default=0, ge=0, le=9, description="Priority hint")
    callback_url: Optional[str] = Field(None, max_length=2000, description="Webhook")
    callback_data: Dict[str, Any] = Field(
        default_factory=dict, description="Opaque data echoed in the webhook"
    )
    correlation_id: Optional[str] = Field(
        None, max_length=200, description="Caller correlation ID"
    )

    def to_request(self, subject_id: str, tier: str) -> GenerationRequest:
        """
        Build generation request for a subject.

        Raises:
            pydantic.ValidationError: If a field fails request validation
        """
        data = self.model_dump(exclude_none=True)
        return GenerationRequest(subject_id=subject_id, tier=tier, **data)
