"""Tier reference-data service."""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gtm_infra.common.exceptions import TierNotFoundError
from gtm_infra.tiers.models import OutreachPricingModel, TierModel


class TierService:
    """Read access to tiers and outreach pricing, plus seeding helpers."""

    async def create_tier(
        self,
        session: AsyncSession,
        slug: str,
        name: str,
        domain_count: int,
        **kwargs: Any,
    ) -> TierModel:
        tier = TierModel(
            slug=slug,
            name=name,
            domain_count=domain_count,
            mailboxes_per_domain=kwargs.get("mailboxes_per_domain", 2),
            setup_fee_cents=kwargs.get("setup_fee_cents", 0),
            monthly_fee_cents=kwargs.get("monthly_fee_cents", 0),
            stripe_setup_price_id=kwargs.get("stripe_setup_price_id"),
            stripe_monthly_price_id=kwargs.get("stripe_monthly_price_id"),
            is_active=kwargs.get("is_active", True),
            sort_order=kwargs.get("sort_order", 0),
        )
        session.add(tier)
        await session.flush()
        return tier

    async def list_active_tiers(self, session: AsyncSession) -> list[TierModel]:
        result = await session.execute(
            select(TierModel)
            .where(TierModel.is_active.is_(True))
            .order_by(TierModel.sort_order.asc())
        )
        return list(result.scalars().all())

    async def get_tier(
        self, session: AsyncSession, tier_id: str
    ) -> Optional[TierModel]:
        return await session.get(TierModel, tier_id)

    async def get_by_slug(
        self, session: AsyncSession, slug: str
    ) -> Optional[TierModel]:
        result = await session.execute(
            select(TierModel).where(TierModel.slug == slug)
        )
        return result.scalar_one_or_none()

    async def require_active_tier(
        self, session: AsyncSession, tier_id: str
    ) -> TierModel:
        tier = await self.get_tier(session, tier_id)
        if tier is None or not tier.is_active:
            raise TierNotFoundError(f"Tier '{tier_id}' not found")
        return tier

    async def create_outreach_pricing(
        self, session: AsyncSession, **kwargs: Any
    ) -> OutreachPricingModel:
        pricing = OutreachPricingModel(
            setup_fee_cents=kwargs.get("setup_fee_cents", 0),
            monthly_fee_cents=kwargs.get("monthly_fee_cents", 0),
            stripe_setup_price_id=kwargs.get("stripe_setup_price_id"),
            stripe_monthly_price_id=kwargs.get("stripe_monthly_price_id"),
            is_active=kwargs.get("is_active", True),
        )
        session.add(pricing)
        await session.flush()
        return pricing

    async def get_outreach_pricing(
        self, session: AsyncSession
    ) -> Optional[OutreachPricingModel]:
        result = await session.execute(
            select(OutreachPricingModel)
            .where(OutreachPricingModel.is_active.is_(True))
            .limit(1)
        )
        return result.scalar_one_or_none()
