"""Decides which screen an owner sees from the state of their provisions."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from gtm_infra.provisions.models import (
    ACTIVE,
    FAILED,
    PENDING_PAYMENT,
    PRODUCT_TYPES,
    PROVISIONING,
)

WIZARD = "wizard"
PROGRESS = "progress"
DASHBOARD = "dashboard"
FAILURE = "failure"
WIZARD_PREFILLED = "wizard_prefilled"


@dataclass
class RouteDecision:
    view: str
    provisions: list[Any] = field(default_factory=list)
    failed_provision: Optional[Any] = None
    prefill_from: list[Any] = field(default_factory=list)
    missing_products: list[str] = field(default_factory=list)


def missing_products(owner_provisions: Mapping[str, Any]) -> list[str]:
    """Product types the owner has not bought yet, in product order."""
    return [p for p in PRODUCT_TYPES if owner_provisions.get(p) is None]


def route_view(owner_provisions: Mapping[str, Any]) -> RouteDecision:
    """Map ``{product_type: current provision}`` to a view.

    The checks run in a fixed order: nothing bought, anything provisioning,
    everything active, anything failed, then pending payment. A failed
    product therefore never hides another product that is still
    provisioning.
    """
    provisions = [owner_provisions[p] for p in PRODUCT_TYPES if owner_provisions.get(p) is not None]
    missing = missing_products(owner_provisions)

    if not provisions:
        return RouteDecision(view=WIZARD, missing_products=missing)

    statuses = [p.status for p in provisions]

    if PROVISIONING in statuses:
        return RouteDecision(view=PROGRESS, provisions=provisions, missing_products=missing)

    if all(s == ACTIVE for s in statuses):
        return RouteDecision(view=DASHBOARD, provisions=provisions, missing_products=missing)

    if FAILED in statuses:
        failed = next(p for p in provisions if p.status == FAILED)
        return RouteDecision(
            view=FAILURE,
            provisions=provisions,
            failed_provision=failed,
            missing_products=missing,
        )

    pending = [p for p in provisions if p.status == PENDING_PAYMENT]
    # Prefill from the first pending provision plus any sibling from the same submission.
    first = pending[0]
    prefill = [
        p for p in pending
        if p is first or (first.submission_key and p.submission_key == first.submission_key)
    ]
    return RouteDecision(
        view=WIZARD_PREFILLED,
        provisions=provisions,
        prefill_from=prefill,
        missing_products=missing,
    )
