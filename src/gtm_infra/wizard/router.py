"""Wizard API router — domain availability and checkout submission."""

from fastapi import APIRouter, HTTPException

from gtm_infra.common.exceptions import DomainAvailabilityError, SubmissionError
from gtm_infra.wizard.domains import normalize_brand
from gtm_infra.wizard.schemas import (
    CheckoutResponse,
    DomainCheckRequest,
    DomainCheckResponse,
    PurchaseIntent,
)

router = APIRouter(prefix="/wizard", tags=["wizard"])

_STAGE_STATUS = {
    "validation": 422,
    "provision": 409,
    "domains": 502,
    "checkout": 502,
}


def _get_availability():
    from gtm_infra.deps import get_availability_client
    return get_availability_client()


def _get_submitter():
    from gtm_infra.deps import get_submitter
    return get_submitter()


@router.post("/domains/check", response_model=DomainCheckResponse)
async def check_domains(body: DomainCheckRequest):
    brand = normalize_brand(body.brand)
    if not brand:
        raise HTTPException(status_code=422, detail="Brand must contain letters or digits")
    try:
        domains = await _get_availability().check(brand)
    except DomainAvailabilityError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return DomainCheckResponse(brand=brand, domains=domains)


@router.post("/checkout", response_model=CheckoutResponse)
async def submit_checkout(body: PurchaseIntent):
    try:
        return await _get_submitter().submit(body)
    except SubmissionError as e:
        raise HTTPException(
            status_code=_STAGE_STATUS.get(e.stage, 500),
            detail={"stage": e.stage, "message": e.message},
        )
