"""Pydantic schemas for projected provisioning progress."""

from typing import Optional

from pydantic import BaseModel, Field


class StepProgress(BaseModel):
    step_number: int
    name: str
    status: str = "pending"
    error: Optional[str] = None


class ProgressSection(BaseModel):
    """One product's steps; sections are the visual boundary between products."""

    product_type: str
    title: str
    provision_id: str
    provision_status: str
    steps: list[StepProgress] = Field(default_factory=list)


class AggregateStatus(BaseModel):
    all_active: bool = False
    any_failed: bool = False
    any_provisioning: bool = False


class ProgressSnapshot(BaseModel):
    owner_id: str
    sections: list[ProgressSection] = Field(default_factory=list)
    aggregate: AggregateStatus = Field(default_factory=AggregateStatus)

    @property
    def any_provisioning(self) -> bool:
        return self.aggregate.any_provisioning


class StepLogEntry(BaseModel):
    step: int
    product_type: str
    name: str
    status: str
    error: Optional[str] = None
    details: dict = Field(default_factory=dict)

    model_config = {"from_attributes": True}
