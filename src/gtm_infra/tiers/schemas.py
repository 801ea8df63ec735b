"""Pydantic schemas for tier endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TierCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
    name: str = Field(..., min_length=1, max_length=255)
    domain_count: int = Field(..., ge=1)
    mailboxes_per_domain: int = Field(default=2, ge=1)
    setup_fee_cents: int = Field(default=0, ge=0)
    monthly_fee_cents: int = Field(default=0, ge=0)
    stripe_setup_price_id: Optional[str] = None
    stripe_monthly_price_id: Optional[str] = None
    sort_order: int = 0


class TierResponse(BaseModel):
    id: str
    slug: str
    name: str
    domain_count: int
    mailboxes_per_domain: int
    setup_fee_cents: int
    monthly_fee_cents: int
    sort_order: int
    created_at: datetime

    model_config = {"from_attributes": True}


class OutreachPricingResponse(BaseModel):
    id: str
    setup_fee_cents: int
    monthly_fee_cents: int

    model_config = {"from_attributes": True}
