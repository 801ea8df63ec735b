"""Pydantic schemas for payment webhooks."""

from typing import Optional

from pydantic import BaseModel, Field


class WebhookResult(BaseModel):
    success: bool
    provision_ids: list[str] = Field(default_factory=list)
    error: Optional[str] = None
