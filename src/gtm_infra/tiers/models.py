"""SQLAlchemy models for infrastructure tiers and outreach pricing."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from gtm_infra.common.models import Base, TimestampMixin, generate_uuid


class TierModel(Base, TimestampMixin):
    __tablename__ = "infra_tiers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain_count: Mapped[int] = mapped_column(Integer, nullable=False)
    mailboxes_per_domain: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    setup_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stripe_setup_price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_monthly_price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)


class OutreachPricingModel(Base, TimestampMixin):
    __tablename__ = "infra_outreach_pricing"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    setup_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stripe_setup_price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_monthly_price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
