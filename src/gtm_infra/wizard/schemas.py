"""Pydantic schemas for the purchase wizard."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from gtm_infra.provisions.models import EMAIL_INFRA, OUTREACH_TOOLS


class DomainAvailability(BaseModel):
    """One candidate domain returned by the availability checker."""

    model_config = ConfigDict(populate_by_name=True)

    domain_name: str = Field(..., alias="domainName")
    status: str = Field(..., pattern="^(AVAILABLE|UNAVAILABLE)$")
    domain_price: float = Field(default=0.0, alias="domainPrice")  # dollars
    service_provider: str = Field(default="GOOGLE", alias="serviceProvider")

    @property
    def available(self) -> bool:
        return self.status == "AVAILABLE"

    @property
    def price_cents(self) -> int:
        return int(round(self.domain_price * 100))


class DomainCheckRequest(BaseModel):
    brand: str = Field(..., min_length=1, max_length=100)


class DomainCheckResponse(BaseModel):
    brand: str
    domains: list[DomainAvailability] = Field(default_factory=list)


class PurchaseIntent(BaseModel):
    """Everything the submission needs; built by the wizard at its checkout step."""

    owner_id: str = Field(..., min_length=1)
    products: list[str] = Field(..., min_length=1)
    submission_key: str = Field(..., min_length=8, max_length=64)
    tier_id: Optional[str] = None
    service_provider: str = Field(default="GOOGLE", pattern="^(GOOGLE|MICROSOFT)$")
    domains: list[DomainAvailability] = Field(default_factory=list)
    mailbox_pattern_1: Optional[str] = None
    mailbox_pattern_2: Optional[str] = None

    @property
    def includes_email_infra(self) -> bool:
        return EMAIL_INFRA in self.products

    @property
    def includes_outreach(self) -> bool:
        return OUTREACH_TOOLS in self.products


class CheckoutResponse(BaseModel):
    url: str
    provision_ids: list[str]
