"""Persistence for provisions, their domains, mailboxes and step logs."""

import logging
from datetime import timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gtm_infra.common.exceptions import (
    InvalidTransitionError,
    ProvisionNotFoundError,
    StepOrderError,
)
from gtm_infra.common.models import utcnow
from gtm_infra.provisions.models import (
    ALLOWED_TRANSITIONS,
    DOMAIN_STATUSES,
    PENDING_PAYMENT,
    PROVISIONING,
    PRODUCT_TYPES,
    PROVISION_STATUSES,
    STEP_COMPLETED,
    STEP_DONE,
    STEP_STATUSES,
    DomainModel,
    MailboxModel,
    ProvisionModel,
    StepLogModel,
)

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = (
    "tier_id",
    "submission_key",
    "service_provider",
    "mailbox_pattern_1",
    "mailbox_pattern_2",
    "linked_provision_id",
    "stripe_checkout_session_id",
    "stripe_subscription_id",
    "stripe_customer_id",
    "zapmail_workspace_id",
    "plusvibe_workspace_id",
    "plusvibe_client_email",
    "heyreach_list_id",
    "provisioning_log",
)


class ProvisionStore:
    """Query and mutate interface over the provisioning tables.

    Every method takes the caller's session; callers decide the transaction
    boundary. Status changes go through :meth:`transition_status`, which is a
    conditional update so a stale writer cannot move a provision backwards.
    """

    # ── Provisions ──

    async def create_provision(
        self,
        session: AsyncSession,
        owner_id: str,
        product_type: str,
        tier_id: str | None = None,
        service_provider: str = "GOOGLE",
        mailbox_pattern_1: str | None = None,
        mailbox_pattern_2: str | None = None,
        linked_provision_id: str | None = None,
        submission_key: str | None = None,
    ) -> ProvisionModel:
        if product_type not in PRODUCT_TYPES:
            raise ValueError(f"Unknown product type: {product_type!r}")
        provision = ProvisionModel(
            owner_id=owner_id,
            product_type=product_type,
            tier_id=tier_id,
            status=PENDING_PAYMENT,
            service_provider=service_provider,
            mailbox_pattern_1=mailbox_pattern_1 or None,
            mailbox_pattern_2=mailbox_pattern_2 or None,
            linked_provision_id=linked_provision_id,
            submission_key=submission_key,
            provisioning_log=[],
            domains=[],
        )
        session.add(provision)
        await session.flush()
        return provision

    async def get_provision(
        self, session: AsyncSession, provision_id: str
    ) -> Optional[ProvisionModel]:
        return await session.get(ProvisionModel, provision_id)

    async def require_provision(
        self, session: AsyncSession, provision_id: str
    ) -> ProvisionModel:
        provision = await self.get_provision(session, provision_id)
        if provision is None:
            raise ProvisionNotFoundError(f"Provision '{provision_id}' not found")
        return provision

    async def get_by_submission_key(
        self,
        session: AsyncSession,
        owner_id: str,
        product_type: str,
        submission_key: str,
    ) -> Optional[ProvisionModel]:
        result = await session.execute(
            select(ProvisionModel).where(
                ProvisionModel.owner_id == owner_id,
                ProvisionModel.product_type == product_type,
                ProvisionModel.submission_key == submission_key,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_owner(
        self, session: AsyncSession, owner_id: str
    ) -> list[ProvisionModel]:
        result = await session.execute(
            select(ProvisionModel)
            .where(ProvisionModel.owner_id == owner_id)
            .order_by(ProvisionModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_owner_provisions(
        self, session: AsyncSession, owner_id: str
    ) -> dict[str, ProvisionModel]:
        """Return the newest provision of each product type for an owner."""
        current: dict[str, ProvisionModel] = {}
        for provision in await self.list_for_owner(session, owner_id):
            current.setdefault(provision.product_type, provision)
        return {p: current[p] for p in PRODUCT_TYPES if p in current}

    async def list_by_status(
        self, session: AsyncSession, status: str
    ) -> list[ProvisionModel]:
        result = await session.execute(
            select(ProvisionModel)
            .where(ProvisionModel.status == status)
            .order_by(ProvisionModel.created_at.asc())
        )
        return list(result.scalars().all())

    async def update_provision(
        self, session: AsyncSession, provision_id: str, **updates: Any
    ) -> ProvisionModel:
        provision = await self.require_provision(session, provision_id)
        for field in _UPDATABLE_FIELDS:
            if field in updates:
                setattr(provision, field, updates[field])
        await session.flush()
        return provision

    async def delete_provision(self, session: AsyncSession, provision_id: str) -> bool:
        provision = await self.get_provision(session, provision_id)
        if provision is None:
            return False
        await session.delete(provision)
        await session.flush()
        return True

    async def transition_status(
        self, session: AsyncSession, provision_id: str, to_status: str
    ) -> None:
        """Move a provision to ``to_status`` only from an allowed source status."""
        if to_status not in PROVISION_STATUSES:
            raise ValueError(f"Unknown provision status: {to_status}")
        allowed_from = ALLOWED_TRANSITIONS.get(to_status)
        if allowed_from is None:
            raise InvalidTransitionError(f"No transition leads to '{to_status}'")
        result = await session.execute(
            update(ProvisionModel)
            .where(
                ProvisionModel.id == provision_id,
                ProvisionModel.status.in_(allowed_from),
            )
            .values(status=to_status)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            current = await session.scalar(
                select(ProvisionModel.status).where(ProvisionModel.id == provision_id)
            )
            if current is None:
                raise ProvisionNotFoundError(f"Provision '{provision_id}' not found")
            raise InvalidTransitionError(
                f"Provision '{provision_id}' cannot move from '{current}' to '{to_status}'"
            )
        logger.info(
            "Provision status changed",
            extra={"provision_id": provision_id, "status": to_status},
        )

    async def claim_run(
        self,
        session: AsyncSession,
        provision_id: str,
        token: str,
        lease_seconds: float,
    ) -> bool:
        """Take the run lease on a provisioning provision.

        Succeeds when nobody holds the lease or the holder's lease expired.
        """
        now = utcnow()
        result = await session.execute(
            update(ProvisionModel)
            .where(
                ProvisionModel.id == provision_id,
                ProvisionModel.status == PROVISIONING,
                or_(
                    ProvisionModel.run_token.is_(None),
                    ProvisionModel.run_lease_until < now,
                ),
            )
            .values(run_token=token, run_lease_until=now + timedelta(seconds=lease_seconds))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def renew_run(
        self,
        session: AsyncSession,
        provision_id: str,
        token: str,
        lease_seconds: float,
    ) -> bool:
        result = await session.execute(
            update(ProvisionModel)
            .where(ProvisionModel.id == provision_id, ProvisionModel.run_token == token)
            .values(run_lease_until=utcnow() + timedelta(seconds=lease_seconds))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def run_in_progress(self, session: AsyncSession, provision_id: str) -> bool:
        held = await session.scalar(
            select(ProvisionModel.id).where(
                ProvisionModel.id == provision_id,
                ProvisionModel.run_token.is_not(None),
                ProvisionModel.run_lease_until >= utcnow(),
            )
        )
        return held is not None

    async def release_run(
        self, session: AsyncSession, provision_id: str, token: str
    ) -> None:
        await session.execute(
            update(ProvisionModel)
            .where(ProvisionModel.id == provision_id, ProvisionModel.run_token == token)
            .values(run_token=None, run_lease_until=None)
            .execution_options(synchronize_session="fetch")
        )

    # ── Domains & mailboxes ──

    async def replace_domains(
        self,
        session: AsyncSession,
        provision: ProvisionModel,
        domains: Iterable[dict[str, Any]],
    ) -> list[DomainModel]:
        """Replace a pending provision's domain rows.

        Each item carries ``domain_name`` and optionally ``service_provider``
        and ``domain_price``.
        """
        if provision.status != PENDING_PAYMENT:
            raise InvalidTransitionError("Domains can only change before payment")
        provision.domains.clear()
        await session.flush()
        for position, item in enumerate(domains):
            provision.domains.append(DomainModel(
                position=position,
                domain_name=item["domain_name"],
                status="pending",
                service_provider=item.get("service_provider") or provision.service_provider,
                domain_price=item.get("domain_price", 0),
                mailboxes=[],
            ))
        await session.flush()
        return list(provision.domains)

    async def set_domain_status(
        self, session: AsyncSession, domain: DomainModel, status: str, **fields: Any
    ) -> DomainModel:
        if status not in DOMAIN_STATUSES:
            raise ValueError(f"Unknown domain status: {status!r}")
        domain.status = status
        if "zapmail_domain_id" in fields:
            domain.zapmail_domain_id = fields["zapmail_domain_id"]
        await session.flush()
        return domain

    async def ensure_mailboxes(
        self, session: AsyncSession, domain: DomainModel, usernames: list[str]
    ) -> list[MailboxModel]:
        """Create pending mailbox rows for usernames the domain does not have yet."""
        existing = {m.username for m in domain.mailboxes}
        for username in usernames:
            if username in existing:
                continue
            domain.mailboxes.append(MailboxModel(
                position=len(domain.mailboxes),
                username=username,
                email=f"{username}@{domain.domain_name}",
                status="pending",
            ))
            existing.add(username)
        await session.flush()
        return list(domain.mailboxes)

    async def set_mailbox_status(
        self,
        session: AsyncSession,
        mailbox: MailboxModel,
        status: str,
        external_id: str | None = None,
    ) -> MailboxModel:
        mailbox.status = status
        if external_id is not None:
            mailbox.external_id = external_id
        await session.flush()
        return mailbox

    # ── Step log ──

    async def get_step_logs(
        self, session: AsyncSession, provision_id: str
    ) -> list[StepLogModel]:
        result = await session.execute(
            select(StepLogModel)
            .where(StepLogModel.provision_id == provision_id)
            .order_by(StepLogModel.id.asc())
        )
        return list(result.scalars().all())

    async def latest_step_entries(
        self, session: AsyncSession, provision_id: str
    ) -> dict[int, StepLogModel]:
        latest: dict[int, StepLogModel] = {}
        for entry in await self.get_step_logs(session, provision_id):
            latest[entry.step] = entry
        return latest

    async def append_step_log(
        self,
        session: AsyncSession,
        provision: ProvisionModel,
        step: int,
        name: str,
        status: str,
        error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> StepLogModel:
        if status not in STEP_STATUSES:
            raise ValueError(f"Unknown step status: {status!r}")
        if status == STEP_COMPLETED:
            latest = await self.latest_step_entries(session, provision.id)
            for earlier in range(1, step):
                entry = latest.get(earlier)
                if entry is None or entry.status not in STEP_DONE:
                    raise StepOrderError(
                        f"Step {step} cannot complete while step {earlier} is "
                        f"{entry.status if entry else 'pending'}"
                    )
        entry = StepLogModel(
            provision_id=provision.id,
            product_type=provision.product_type,
            step=step,
            name=name,
            status=status,
            error=error,
            details=details or {},
        )
        session.add(entry)
        await session.flush()
        return entry
