"""Tier API router."""

from fastapi import APIRouter, Depends, HTTPException

from gtm_infra.common.security import require_api_key
from gtm_infra.tiers.schemas import OutreachPricingResponse, TierCreate, TierResponse

router = APIRouter(prefix="/tiers", tags=["tiers"])


def _get_service():
    from gtm_infra.deps import get_tier_service
    return get_tier_service()


def _get_db():
    from gtm_infra.deps import get_db
    return get_db()


@router.get("", response_model=list[TierResponse])
async def list_tiers():
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tiers = await svc.list_active_tiers(session)
        return [TierResponse.model_validate(t) for t in tiers]


@router.post("", response_model=TierResponse, status_code=201)
async def create_tier(body: TierCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        if await svc.get_by_slug(session, body.slug):
            raise HTTPException(status_code=409, detail="Tier slug already exists")
        tier = await svc.create_tier(session, **body.model_dump())
        return TierResponse.model_validate(tier)


@router.get("/outreach-pricing", response_model=OutreachPricingResponse)
async def get_outreach_pricing():
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        pricing = await svc.get_outreach_pricing(session)
        if pricing is None:
            raise HTTPException(status_code=404, detail="Outreach pricing not configured")
        return OutreachPricingResponse.model_validate(pricing)
