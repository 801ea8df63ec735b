"""Read side of provisioning progress."""

from sqlalchemy.ext.asyncio import AsyncSession

from gtm_infra.progress.projector import aggregate_status, project_progress, project_steps
from gtm_infra.progress.schemas import ProgressSnapshot, StepProgress
from gtm_infra.provisions.models import PROVISIONING
from gtm_infra.provisions.store import ProvisionStore


class ProgressService:
    """Builds progress views from the store."""

    def __init__(self, store: ProvisionStore):
        self.store = store

    async def get_progress(
        self, session: AsyncSession, provision_id: str, is_provisioning: bool | None = None,
    ) -> tuple[list[StepProgress], bool]:
        """Return the projected steps and whether the provision is still provisioning.

        ``is_provisioning`` may be passed by a caller that already knows the
        status; otherwise it is read from the provision.
        """
        provision = await self.store.require_provision(session, provision_id)
        if is_provisioning is None:
            is_provisioning = provision.status == PROVISIONING
        entries = await self.store.get_step_logs(session, provision_id)
        return project_steps(provision.product_type, entries), is_provisioning

    async def snapshot(self, session: AsyncSession, owner_id: str) -> ProgressSnapshot:
        current = await self.store.get_owner_provisions(session, owner_id)
        pairs = []
        for provision in current.values():
            pairs.append((provision, await self.store.get_step_logs(session, provision.id)))
        return ProgressSnapshot(
            owner_id=owner_id,
            sections=project_progress(pairs),
            aggregate=aggregate_status(p.status for p in current.values()),
        )
