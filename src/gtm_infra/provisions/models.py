"""SQLAlchemy models for provisions, domains, mailboxes and the step log."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gtm_infra.common.models import Base, TimestampMixin, generate_uuid, utcnow
from gtm_infra.tiers.models import TierModel

EMAIL_INFRA = "email_infra"
OUTREACH_TOOLS = "outreach_tools"
PRODUCT_TYPES: tuple[str, ...] = (EMAIL_INFRA, OUTREACH_TOOLS)

SERVICE_PROVIDERS: frozenset[str] = frozenset({"GOOGLE", "MICROSOFT"})

PENDING_PAYMENT = "pending_payment"
PROVISIONING = "provisioning"
ACTIVE = "active"
FAILED = "failed"
PROVISION_STATUSES: frozenset[str] = frozenset({PENDING_PAYMENT, PROVISIONING, ACTIVE, FAILED})

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PROVISIONING: frozenset({PENDING_PAYMENT}),
    ACTIVE: frozenset({PROVISIONING}),
    FAILED: frozenset({PROVISIONING}),
}

DOMAIN_STATUSES: frozenset[str] = frozenset({
    "pending", "purchasing", "dns_pending", "connected", "active", "failed",
})

STEP_PENDING = "pending"
STEP_IN_PROGRESS = "in_progress"
STEP_COMPLETED = "completed"
STEP_FAILED = "failed"
STEP_SKIPPED = "skipped"
STEP_STATUSES: frozenset[str] = frozenset({
    STEP_PENDING, STEP_IN_PROGRESS, STEP_COMPLETED, STEP_FAILED, STEP_SKIPPED,
})
STEP_DONE: frozenset[str] = frozenset({STEP_COMPLETED, STEP_SKIPPED})


class ProvisionModel(Base, TimestampMixin):
    __tablename__ = "infra_provisions"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "product_type", "submission_key",
            name="uq_provision_owner_product_submission",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    product_type: Mapped[str] = mapped_column(String(20), nullable=False, default=EMAIL_INFRA)
    tier_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("infra_tiers.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default=PENDING_PAYMENT, index=True)
    service_provider: Mapped[str] = mapped_column(String(20), default="GOOGLE")
    mailbox_pattern_1: Mapped[str | None] = mapped_column(String(64), nullable=True)
    mailbox_pattern_2: Mapped[str | None] = mapped_column(String(64), nullable=True)
    linked_provision_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    submission_key: Mapped[str | None] = mapped_column(String(64), nullable=True)

    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    zapmail_workspace_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plusvibe_workspace_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plusvibe_client_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    heyreach_list_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    provisioning_log: Mapped[list] = mapped_column(JSON, default=list)

    # held by the engine while it runs the pipeline
    run_token: Mapped[str | None] = mapped_column(String(36), nullable=True)
    run_lease_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tier: Mapped[Optional[TierModel]] = relationship(lazy="selectin")
    domains: Mapped[list["DomainModel"]] = relationship(
        back_populates="provision",
        cascade="all, delete-orphan",
        order_by="DomainModel.position",
        lazy="selectin",
    )


class DomainModel(Base, TimestampMixin):
    __tablename__ = "infra_domains"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    provision_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("infra_provisions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    domain_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    service_provider: Mapped[str] = mapped_column(String(20), default="GOOGLE")
    domain_price: Mapped[int] = mapped_column(Integer, default=0)  # cents
    zapmail_domain_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    provision: Mapped["ProvisionModel"] = relationship(back_populates="domains")
    mailboxes: Mapped[list["MailboxModel"]] = relationship(
        back_populates="domain",
        cascade="all, delete-orphan",
        order_by="MailboxModel.position",
        lazy="selectin",
    )


class MailboxModel(Base, TimestampMixin):
    __tablename__ = "infra_mailboxes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    domain_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("infra_domains.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    domain: Mapped["DomainModel"] = relationship(back_populates="mailboxes")


class StepLogModel(Base):
    """Append-only provisioning step event; the newest row per step wins."""

    __tablename__ = "provisioning_step_logs"
    __table_args__ = (
        Index("ix_step_logs_provision_step", "provision_id", "step"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provision_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("infra_provisions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    product_type: Mapped[str] = mapped_column(String(20), nullable=False)
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
