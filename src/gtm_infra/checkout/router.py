"""Payment webhook endpoint — Stripe."""

import json
import logging

from fastapi import APIRouter, Header, Request

from gtm_infra.checkout.schemas import WebhookResult
from gtm_infra.checkout.stripe_webhook import (
    apply_payment,
    parse_stripe_checkout,
    verify_stripe_signature,
)
from gtm_infra.common.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["checkout"])


@router.post("/stripe", response_model=WebhookResult)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
):
    """Handle Stripe checkout.session.completed for infrastructure purchases."""
    from gtm_infra.deps import get_db, get_store

    body = await request.body()

    # Verify signature if secret is configured
    stripe_secret = get_settings().stripe_webhook_secret
    if stripe_secret:
        if not verify_stripe_signature(body, stripe_signature, stripe_secret):
            logger.warning("Invalid Stripe webhook signature")
            return WebhookResult(success=False, error="Invalid signature")

    try:
        event_data = json.loads(body)
    except json.JSONDecodeError:
        return WebhookResult(success=False, error="Invalid JSON")

    confirmation = parse_stripe_checkout(event_data)
    if confirmation is None:
        return WebhookResult(success=False, error="Unhandled event type or missing metadata")

    async with get_db().get_session() as session:
        started = await apply_payment(session, get_store(), confirmation)

    return WebhookResult(success=True, provision_ids=started)
