"""Stripe checkout.session.completed webhook handling."""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Optional

from gtm_infra.checkout.gateway import CHECKOUT_TYPE
from gtm_infra.common.exceptions import InfraError
from gtm_infra.provisions.models import PROVISIONING
from gtm_infra.provisions.store import ProvisionStore

logger = logging.getLogger(__name__)


def verify_stripe_signature(
    payload: bytes,
    signature_header: str,
    webhook_secret: str,
) -> bool:
    """Verify Stripe webhook signature (v1 scheme).

    Stripe sends: t=<timestamp>,v1=<signature>
    """
    if not signature_header or not webhook_secret:
        return False

    parts = {}
    for item in signature_header.split(","):
        key, _, value = item.partition("=")
        parts[key.strip()] = value.strip()

    timestamp = parts.get("t", "")
    expected_sig = parts.get("v1", "")
    if not timestamp or not expected_sig:
        return False

    signed_payload = f"{timestamp}.".encode() + payload
    computed = hmac.new(
        webhook_secret.encode(),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(computed, expected_sig)


@dataclass
class PaymentConfirmation:
    session_id: str
    owner_id: str
    provision_ids: list[str]
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None


def parse_stripe_checkout(event_data: dict[str, Any]) -> Optional[PaymentConfirmation]:
    """Extract the paid provisions from a Stripe checkout.session.completed event.

    Only sessions created for infrastructure purchases (``metadata.type``)
    are handled; everything else returns ``None``.
    """
    event_type = event_data.get("type", "")
    if event_type != "checkout.session.completed":
        logger.debug("Ignoring Stripe event type: %s", event_type)
        return None

    session = event_data.get("data", {}).get("object", {})
    metadata = session.get("metadata") or {}
    if metadata.get("type") != CHECKOUT_TYPE:
        logger.debug("Ignoring non-infrastructure checkout %s", session.get("id"))
        return None

    provision_ids = [p for p in metadata.get("provision_ids", "").split(",") if p]
    if not provision_ids:
        logger.warning("Stripe checkout missing provision_ids in metadata")
        return None

    return PaymentConfirmation(
        session_id=session.get("id", ""),
        owner_id=metadata.get("owner_id", ""),
        provision_ids=provision_ids,
        customer_id=session.get("customer"),
        subscription_id=session.get("subscription"),
    )


async def apply_payment(
    session, store: ProvisionStore, confirmation: PaymentConfirmation
) -> list[str]:
    """Start provisioning for every paid provision; returns the ids moved.

    Replayed events find the provisions already past ``pending_payment`` and
    leave them alone.
    """
    started: list[str] = []
    for provision_id in confirmation.provision_ids:
        provision = await store.get_provision(session, provision_id)
        if provision is None:
            logger.warning("Paid provision %s not found", provision_id)
            continue
        if confirmation.owner_id and provision.owner_id != confirmation.owner_id:
            logger.warning("Owner mismatch for paid provision %s", provision_id)
            continue
        try:
            await store.transition_status(session, provision_id, PROVISIONING)
        except InfraError as e:
            logger.info("Payment for %s not applied: %s", provision_id, e.message)
            continue
        await store.update_provision(
            session,
            provision_id,
            stripe_checkout_session_id=confirmation.session_id or provision.stripe_checkout_session_id,
            stripe_customer_id=confirmation.customer_id,
            stripe_subscription_id=confirmation.subscription_id,
        )
        started.append(provision_id)
    return started
