"""Payment webhook and verification schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import StandardizedModel


class WebhookEventData(BaseModel):
    """Provider payloads carry many more fields; only the reference matters here."""

    model_config = ConfigDict(extra="allow")

    reference: Optional[str] = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: str = ""
    data: WebhookEventData = Field(default_factory=WebhookEventData)


class WebhookResponse(StandardizedModel):
    success: bool = True
    event: Optional[str] = None
    outcome: str
