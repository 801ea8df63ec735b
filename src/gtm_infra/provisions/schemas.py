"""Pydantic schemas for provision API responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from gtm_infra.progress.schemas import AggregateStatus, StepProgress


class MailboxResponse(BaseModel):
    id: str
    username: str
    email: str
    status: str

    model_config = {"from_attributes": True}


class DomainResponse(BaseModel):
    id: str
    position: int
    domain_name: str
    status: str
    service_provider: str
    domain_price: int
    mailboxes: list[MailboxResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ProvisionResponse(BaseModel):
    id: str
    owner_id: str
    product_type: str
    tier_id: Optional[str] = None
    status: str
    service_provider: str
    mailbox_pattern_1: Optional[str] = None
    mailbox_pattern_2: Optional[str] = None
    linked_provision_id: Optional[str] = None
    plusvibe_client_email: Optional[str] = None
    heyreach_list_id: Optional[int] = None
    provisioning_log: list[dict[str, Any]] = Field(default_factory=list)
    domains: list[DomainResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OwnerViewResponse(BaseModel):
    """Which screen to show an owner, with the provisions it needs."""

    owner_id: str
    view: str
    provisions: list[ProvisionResponse] = Field(default_factory=list)
    failed_provision: Optional[ProvisionResponse] = None
    prefill_from: list[ProvisionResponse] = Field(default_factory=list)
    missing_products: list[str] = Field(default_factory=list)
    aggregate: AggregateStatus = Field(default_factory=AggregateStatus)


class ProvisionProgressResponse(BaseModel):
    provision_id: str
    product_type: str
    status: str
    is_provisioning: bool
    steps: list[StepProgress] = Field(default_factory=list)


class RunScheduledResponse(BaseModel):
    provision_id: str
    scheduled: bool = True
