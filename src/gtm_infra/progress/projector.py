"""Projects the append-only step log into display-ready progress."""

from typing import Any, Iterable, Protocol

from gtm_infra.engine.steps import SECTION_TITLES, steps_for
from gtm_infra.progress.schemas import AggregateStatus, ProgressSection, StepProgress
from gtm_infra.provisions.models import ACTIVE, FAILED, PRODUCT_TYPES, PROVISIONING, STEP_PENDING


class LogEntry(Protocol):
    product_type: str
    step: int
    status: str
    error: str | None


def project_steps(product_type: str, entries: Iterable[LogEntry]) -> list[StepProgress]:
    """Ordered step list for one product; entries must be in append order.

    Lookup keys on ``(product_type, step)`` and the newest entry for a step
    wins. Steps with no entry project as ``pending``.
    """
    latest: dict[int, LogEntry] = {}
    for entry in entries:
        if entry.product_type == product_type:
            latest[entry.step] = entry

    projected = []
    for definition in steps_for(product_type):
        entry = latest.get(definition.number)
        projected.append(StepProgress(
            step_number=definition.number,
            name=definition.name,
            status=entry.status if entry else STEP_PENDING,
            error=entry.error if entry else None,
        ))
    return projected


def project_progress(provisions: Iterable[tuple[Any, Iterable[LogEntry]]]) -> list[ProgressSection]:
    """Concatenate per-product sections in product order.

    ``provisions`` yields ``(provision, log_entries)`` pairs.
    """
    by_product = {provision.product_type: (provision, entries) for provision, entries in provisions}
    sections = []
    for product_type in PRODUCT_TYPES:
        if product_type not in by_product:
            continue
        provision, entries = by_product[product_type]
        sections.append(ProgressSection(
            product_type=product_type,
            title=SECTION_TITLES[product_type],
            provision_id=provision.id,
            provision_status=provision.status,
            steps=project_steps(product_type, entries),
        ))
    return sections


def aggregate_status(statuses: Iterable[str]) -> AggregateStatus:
    statuses = list(statuses)
    return AggregateStatus(
        all_active=bool(statuses) and all(s == ACTIVE for s in statuses),
        any_failed=any(s == FAILED for s in statuses),
        any_provisioning=any(s == PROVISIONING for s in statuses),
    )
