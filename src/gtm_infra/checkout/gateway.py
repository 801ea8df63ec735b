"""Stripe Checkout session creation for infrastructure purchases."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import stripe

from gtm_infra.common.exceptions import CheckoutError

logger = logging.getLogger(__name__)

CHECKOUT_TYPE = "infrastructure"


@dataclass
class CheckoutRequest:
    owner_id: str
    provision_ids: list[str]
    tier: Any = None
    outreach_pricing: Any = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class CheckoutSession:
    url: str
    session_id: str


def build_line_items(tier: Any = None, outreach_pricing: Any = None) -> list[dict[str, Any]]:
    """One-time setup fees plus monthly prices for every product in the order."""
    items: list[dict[str, Any]] = []
    for label, pricing in (("tier", tier), ("outreach pricing", outreach_pricing)):
        if pricing is None:
            continue
        if not pricing.stripe_setup_price_id or not pricing.stripe_monthly_price_id:
            raise CheckoutError(f"Stripe prices are not configured for this {label}")
        items.append({"price": pricing.stripe_setup_price_id, "quantity": 1})
        items.append({"price": pricing.stripe_monthly_price_id, "quantity": 1})
    if not items:
        raise CheckoutError("Nothing to check out")
    return items


class StripeCheckoutGateway:
    """Creates subscription checkout sessions tagged with the provision ids."""

    def __init__(self, secret_key: str, success_url: str, cancel_url: str):
        self.secret_key = secret_key
        self.success_url = success_url
        self.cancel_url = cancel_url

    async def create_session(self, request: CheckoutRequest) -> CheckoutSession:
        if not self.secret_key:
            raise CheckoutError("Stripe not configured")

        line_items = build_line_items(request.tier, request.outreach_pricing)
        metadata = {
            "provision_ids": ",".join(request.provision_ids),
            "owner_id": request.owner_id,
            "type": CHECKOUT_TYPE,
            **request.metadata,
        }
        if request.tier is not None:
            metadata["tier"] = request.tier.slug

        stripe.api_key = self.secret_key
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                mode="subscription",
                line_items=line_items,
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                client_reference_id=request.owner_id,
                metadata=metadata,
                subscription_data={"metadata": metadata},
            )
        except stripe.StripeError as e:
            logger.error("Stripe session creation failed: %s", e)
            raise CheckoutError("Stripe session creation failed") from e

        url: Optional[str] = session.url
        if not url:
            raise CheckoutError("Stripe returned no checkout URL")
        return CheckoutSession(url=url, session_id=session.id)
