"""Step actions for each product pipeline.

Each handler receives a :class:`StepContext` and returns the outputs to record
on the step's ``completed`` log entry. Non-idempotent handlers persist a
marker (domain ``purchasing``, mailbox ``creating``, stored workspace ids)
before calling the vendor and reconcile against the vendor when
``ctx.resumed`` is set, so a crash or timeout never buys twice.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from gtm_infra.common.database import DatabaseManager
from gtm_infra.common.exceptions import TerminalStepError, TransientStepError
from gtm_infra.engine.heyreach_client import HeyReachClient
from gtm_infra.engine.plusvibe_client import PlusVibeClient
from gtm_infra.engine.steps import EMAIL_INFRA_STEPS, OUTREACH_TOOLS_STEPS, StepDefinition
from gtm_infra.engine.zapmail_client import ZapmailClient
from gtm_infra.provisions.models import (
    EMAIL_INFRA,
    OUTREACH_TOOLS,
    DomainModel,
    MailboxModel,
    ProvisionModel,
)
from gtm_infra.provisions.store import ProvisionStore
from gtm_infra.wizard.patterns import mailbox_usernames

logger = logging.getLogger(__name__)

_PURCHASED_STATUSES = frozenset({"dns_pending", "connected", "active"})


@dataclass
class StepContext:
    provision_id: str
    owner_id: str
    product_type: str
    outputs: dict[str, Any] = field(default_factory=dict)
    resumed: bool = False


class Pipeline:
    """Dispatches step definitions to handler methods."""

    product_type: str = ""
    steps: tuple[StepDefinition, ...] = ()

    def __init__(self, db: DatabaseManager, store: ProvisionStore):
        self.db = db
        self.store = store

    async def execute(self, step: StepDefinition, ctx: StepContext) -> dict[str, Any]:
        handler = getattr(self, step.handler)
        return await handler(ctx) or {}

    async def _load(self, provision_id: str) -> ProvisionModel:
        async with self.db.get_session() as session:
            return await self.store.require_provision(session, provision_id)

    async def _update(self, provision_id: str, **fields: Any) -> None:
        async with self.db.get_session() as session:
            await self.store.update_provision(session, provision_id, **fields)


class EmailInfraPipeline(Pipeline):
    product_type = EMAIL_INFRA
    steps = EMAIL_INFRA_STEPS

    def __init__(self, db: DatabaseManager, store: ProvisionStore, zapmail: ZapmailClient):
        super().__init__(db, store)
        self.zapmail = zapmail

    async def _set_domain(self, domain_id: str, status: str, **fields: Any) -> None:
        async with self.db.get_session() as session:
            domain = await session.get(DomainModel, domain_id)
            await self.store.set_domain_status(session, domain, status, **fields)

    async def _set_mailbox(self, mailbox_id: str, status: str, external_id: str | None = None) -> None:
        async with self.db.get_session() as session:
            mailbox = await session.get(MailboxModel, mailbox_id)
            await self.store.set_mailbox_status(session, mailbox, status, external_id)

    def _workspace(self, ctx: StepContext) -> str:
        workspace_id = ctx.outputs.get("workspace_id")
        if not workspace_id:
            raise TerminalStepError("Workspace was not created")
        return workspace_id

    async def create_workspace(self, ctx: StepContext) -> dict[str, Any]:
        provision = await self._load(ctx.provision_id)
        workspace_id = provision.zapmail_workspace_id
        if workspace_id is None and ctx.resumed:
            workspace_id = await self.zapmail.find_workspace(reference=ctx.provision_id)
        if workspace_id is None:
            workspace_id = await self.zapmail.create_workspace(
                name=f"gtm-{ctx.owner_id}", reference=ctx.provision_id,
            )
        await self._update(ctx.provision_id, zapmail_workspace_id=workspace_id)
        return {"workspace_id": workspace_id}

    async def purchase_domains(self, ctx: StepContext) -> dict[str, Any]:
        workspace_id = self._workspace(ctx)
        provision = await self._load(ctx.provision_id)
        if not provision.domains:
            raise TerminalStepError("No domains selected for this provision")

        purchased: dict[str, str] = {}
        for domain in provision.domains:
            if domain.status in _PURCHASED_STATUSES:
                purchased[domain.domain_name] = domain.zapmail_domain_id
                continue

            domain_id = None
            if domain.status == "purchasing":
                # Outcome of the previous call is unknown; ask before buying again.
                domain_id = await self.zapmail.get_domain(workspace_id, domain.domain_name)
            if domain_id is None:
                await self._set_domain(domain.id, "purchasing")
                try:
                    domain_id = await self.zapmail.purchase_domain(
                        workspace_id, domain.domain_name, domain.service_provider,
                    )
                except TerminalStepError:
                    await self._set_domain(domain.id, "failed")
                    raise
            await self._set_domain(domain.id, "dns_pending", zapmail_domain_id=domain_id)
            purchased[domain.domain_name] = domain_id

        return {"domain_ids": purchased}

    async def wait_for_dns(self, ctx: StepContext) -> dict[str, Any]:
        workspace_id = self._workspace(ctx)
        provision = await self._load(ctx.provision_id)
        waiting: list[str] = []
        for domain in provision.domains:
            if domain.status in ("connected", "active"):
                continue
            if await self.zapmail.check_dns(workspace_id, domain.zapmail_domain_id):
                await self._set_domain(domain.id, "connected")
            else:
                waiting.append(domain.domain_name)
        if waiting:
            raise TransientStepError(f"DNS not yet propagated for {', '.join(waiting)}")
        return {}

    async def configure_dmarc(self, ctx: StepContext) -> dict[str, Any]:
        workspace_id = self._workspace(ctx)
        provision = await self._load(ctx.provision_id)
        for domain in provision.domains:
            await self.zapmail.configure_dmarc(workspace_id, domain.zapmail_domain_id)
        return {}

    async def create_mailboxes(self, ctx: StepContext) -> dict[str, Any]:
        workspace_id = self._workspace(ctx)
        provision = await self._load(ctx.provision_id)
        usernames = mailbox_usernames(provision.mailbox_pattern_1, provision.mailbox_pattern_2)
        if not usernames:
            raise TerminalStepError("No mailbox patterns configured")

        emails: list[str] = []
        for domain in provision.domains:
            async with self.db.get_session() as session:
                attached = await session.get(DomainModel, domain.id)
                mailboxes = await self.store.ensure_mailboxes(session, attached, usernames)

            existing: dict[str, str] | None = None
            for mailbox in mailboxes:
                emails.append(mailbox.email)
                if mailbox.status == "active":
                    continue
                if mailbox.status == "creating":
                    if existing is None:
                        existing = await self.zapmail.list_mailboxes(
                            workspace_id, domain.zapmail_domain_id,
                        )
                    if mailbox.username in existing:
                        await self._set_mailbox(mailbox.id, "active", existing[mailbox.username])
                        continue
                await self._set_mailbox(mailbox.id, "creating")
                external_id = await self.zapmail.create_mailbox(
                    workspace_id, domain.zapmail_domain_id, mailbox.username,
                )
                await self._set_mailbox(mailbox.id, "active", external_id)

        return {"mailboxes": emails}

    async def complete(self, ctx: StepContext) -> dict[str, Any]:
        provision = await self._load(ctx.provision_id)
        for domain in provision.domains:
            if domain.status != "active":
                await self._set_domain(domain.id, "active")
        return {}


class OutreachPipeline(Pipeline):
    product_type = OUTREACH_TOOLS
    steps = OUTREACH_TOOLS_STEPS

    def __init__(
        self,
        db: DatabaseManager,
        store: ProvisionStore,
        plusvibe: PlusVibeClient,
        heyreach: HeyReachClient,
    ):
        super().__init__(db, store)
        self.plusvibe = plusvibe
        self.heyreach = heyreach

    async def _email_infra_mailboxes(self, owner_id: str) -> list[str]:
        async with self.db.get_session() as session:
            current = await self.store.get_owner_provisions(session, owner_id)
        email_infra = current.get(EMAIL_INFRA)
        if email_infra is None:
            return []
        return [m.email for d in email_infra.domains for m in d.mailboxes]

    async def create_workspace(self, ctx: StepContext) -> dict[str, Any]:
        provision = await self._load(ctx.provision_id)
        if provision.plusvibe_workspace_id:
            return {"outreach_workspace_id": provision.plusvibe_workspace_id}

        workspace = None
        if ctx.resumed:
            workspace = await self.plusvibe.find_workspace(reference=ctx.provision_id)
        if workspace is None:
            workspace = await self.plusvibe.create_workspace(
                name=f"gtm-{ctx.owner_id}", reference=ctx.provision_id,
            )
        await self._update(
            ctx.provision_id,
            plusvibe_workspace_id=workspace["id"],
            plusvibe_client_email=workspace.get("client_email"),
        )
        return {"outreach_workspace_id": workspace["id"]}

    async def export_mailboxes(self, ctx: StepContext) -> dict[str, Any]:
        emails = await self._email_infra_mailboxes(ctx.owner_id)
        imported = await self.plusvibe.import_mailboxes(ctx.outputs["outreach_workspace_id"], emails)
        return {"exported_mailboxes": imported}

    async def configure_warmup(self, ctx: StepContext) -> dict[str, Any]:
        emails = await self._email_infra_mailboxes(ctx.owner_id)
        await self.plusvibe.enable_warmup(ctx.outputs["outreach_workspace_id"], emails)
        return {"warmup_mailboxes": len(emails)}

    async def create_lead_list(self, ctx: StepContext) -> dict[str, Any]:
        provision = await self._load(ctx.provision_id)
        list_id = provision.heyreach_list_id
        if list_id is None and ctx.resumed:
            list_id = await self.heyreach.find_lead_list(reference=ctx.provision_id)
        if list_id is None:
            list_id = await self.heyreach.create_lead_list(
                name=f"gtm-{ctx.owner_id} leads", reference=ctx.provision_id,
            )
        await self._update(ctx.provision_id, heyreach_list_id=list_id)
        return {"lead_list_id": list_id}

    async def complete(self, ctx: StepContext) -> dict[str, Any]:
        return {}
