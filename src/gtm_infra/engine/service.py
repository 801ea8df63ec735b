"""ProvisioningEngine — executes product step pipelines against the store."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from gtm_infra.common.config import InfraSettings
from gtm_infra.common.database import DatabaseManager
from gtm_infra.common.exceptions import (
    InfraError,
    InvalidTransitionError,
    StepError,
    TransientStepError,
)
from gtm_infra.engine.pipelines import Pipeline, StepContext
from gtm_infra.engine.steps import StepDefinition
from gtm_infra.progress.projector import project_steps
from gtm_infra.provisions.models import (
    ACTIVE,
    EMAIL_INFRA,
    FAILED,
    PRODUCT_TYPES,
    PROVISIONING,
    STEP_COMPLETED,
    STEP_DONE,
    STEP_FAILED,
    STEP_IN_PROGRESS,
    STEP_SKIPPED,
    ProvisionModel,
    StepLogModel,
)
from gtm_infra.provisions.store import ProvisionStore

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one provision's pipeline run."""

    provision_id: str
    product_type: str
    status: str
    failed_step: Optional[int] = None
    error: Optional[str] = None


class ProvisioningEngine:
    """Runs the fixed step sequence of a provision, one step at a time.

    Every log write happens in its own committed session so progress is
    visible to observers in other processes as soon as it is made.
    """

    def __init__(
        self,
        settings: InfraSettings,
        db: DatabaseManager,
        store: ProvisionStore,
        pipelines: dict[str, Pipeline],
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.settings = settings
        self.db = db
        self.store = store
        self.pipelines = pipelines
        self._sleep = sleep or asyncio.sleep

    def backoff(self, attempt: int) -> float:
        return min(
            self.settings.step_backoff_base * (2 ** attempt),
            self.settings.step_backoff_max,
        )

    async def run_pending(self) -> list[PipelineResult]:
        """Run every provision in ``provisioning``; email infra goes first."""
        async with self.db.get_session() as session:
            provisions = await self.store.list_by_status(session, PROVISIONING)
        provisions.sort(key=lambda p: PRODUCT_TYPES.index(p.product_type))

        results = []
        for provision in provisions:
            try:
                results.append(await self.run(provision.id))
            except InvalidTransitionError as e:
                logger.info("Skipping provision %s: %s", provision.id, e.message)
            except Exception:
                logger.exception("Pipeline crashed for provision %s", provision.id)
        return results

    async def run(self, provision_id: str) -> PipelineResult:
        """Run a provision's pipeline while holding its run lease.

        A second caller for the same provision gets InvalidTransitionError
        until the first one finishes or its lease expires.
        """
        token = uuid4().hex
        async with self.db.get_session() as session:
            provision = await self.store.require_provision(session, provision_id)
            if provision.status != PROVISIONING:
                raise InvalidTransitionError(
                    f"Provision '{provision_id}' is '{provision.status}', not provisioning"
                )
            if not await self.store.claim_run(
                session, provision_id, token, self.settings.run_lease_seconds
            ):
                raise InvalidTransitionError(f"Provision '{provision_id}' is already being run")
            latest = await self.store.latest_step_entries(session, provision_id)

        try:
            return await self._run_steps(provision, latest, token)
        finally:
            async with self.db.get_session() as session:
                await self.store.release_run(session, provision_id, token)

    async def _run_steps(
        self, provision: ProvisionModel, latest: dict[int, StepLogModel], token: str
    ) -> PipelineResult:
        provision_id = provision.id
        pipeline = self.pipelines[provision.product_type]
        outputs: dict[str, Any] = {}

        for step in pipeline.steps:
            prior = latest.get(step.number)
            if prior is not None and prior.status in STEP_DONE:
                outputs.update(prior.details or {})
                continue
            if prior is not None and prior.status == STEP_FAILED:
                return await self._fail(provision_id, provision.product_type, step, prior.error, log=False)

            async with self.db.get_session() as session:
                if not await self.store.renew_run(
                    session, provision_id, token, self.settings.run_lease_seconds
                ):
                    raise InvalidTransitionError(
                        f"Provision '{provision_id}' run lease was taken over"
                    )

            if step.requires_active_email_infra and not await self._email_infra_active(provision.owner_id):
                await self._log(
                    provision_id, step, STEP_SKIPPED,
                    details={"reason": "No active email infrastructure"},
                )
                continue

            resumed = prior is not None and prior.status == STEP_IN_PROGRESS
            if resumed:
                logger.warning(
                    "Resuming interrupted step",
                    extra={"provision_id": provision_id, "step": step.number},
                )
            else:
                await self._log(provision_id, step, STEP_IN_PROGRESS)

            ctx = StepContext(
                provision_id=provision_id,
                owner_id=provision.owner_id,
                product_type=provision.product_type,
                outputs=dict(outputs),
                resumed=resumed,
            )
            try:
                details = await self._execute_with_retry(pipeline, step, ctx)
            except StepError as e:
                return await self._fail(provision_id, provision.product_type, step, e.message)
            except Exception as e:
                logger.exception("Unexpected error in step %s of %s", step.number, provision_id)
                return await self._fail(
                    provision_id, provision.product_type, step, f"Unexpected error: {e}",
                )

            await self._log(provision_id, step, STEP_COMPLETED, details=details)
            outputs.update(details)

        async with self.db.get_session() as session:
            await self.store.transition_status(session, provision_id, ACTIVE)
        logger.info(
            "Provisioning complete",
            extra={"provision_id": provision_id, "product_type": provision.product_type},
        )
        return PipelineResult(provision_id, provision.product_type, ACTIVE)

    async def _execute_with_retry(
        self, pipeline: Pipeline, step: StepDefinition, ctx: StepContext
    ) -> dict[str, Any]:
        max_retries = self.settings.step_max_retries
        last_error: TransientStepError | None = None
        resumed = ctx.resumed

        for attempt in range(max_retries + 1):
            # A failed non-idempotent call may still have gone through.
            ctx.resumed = resumed or (attempt > 0 and not step.idempotent)
            try:
                return await pipeline.execute(step, ctx)
            except TransientStepError as e:
                last_error = e
                if attempt < max_retries:
                    delay = self.backoff(attempt)
                    logger.warning(
                        "Transient failure in step %s (attempt %d/%d): %s; retrying in %.1fs",
                        step.number, attempt + 1, max_retries + 1, e.message, delay,
                    )
                    await self._sleep(delay)

        raise TransientStepError(
            f"{last_error.message} (gave up after {max_retries + 1} attempts)"
        )

    async def _email_infra_active(self, owner_id: str) -> bool:
        async with self.db.get_session() as session:
            current = await self.store.get_owner_provisions(session, owner_id)
        email_infra = current.get(EMAIL_INFRA)
        return email_infra is not None and email_infra.status == ACTIVE

    async def _log(
        self,
        provision_id: str,
        step: StepDefinition,
        status: str,
        error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        async with self.db.get_session() as session:
            provision = await self.store.require_provision(session, provision_id)
            await self.store.append_step_log(
                session, provision, step.number, step.name, status,
                error=error, details=details,
            )

    async def _fail(
        self,
        provision_id: str,
        product_type: str,
        step: StepDefinition,
        error: str | None,
        log: bool = True,
    ) -> PipelineResult:
        error = error or "Step failed"
        if log:
            await self._log(provision_id, step, STEP_FAILED, error=error)
        async with self.db.get_session() as session:
            entries = await self.store.get_step_logs(session, provision_id)
            blob = [s.model_dump() for s in project_steps(product_type, entries)]
            await self.store.update_provision(session, provision_id, provisioning_log=blob)
            try:
                await self.store.transition_status(session, provision_id, FAILED)
            except InfraError as e:
                logger.warning("Could not mark provision %s failed: %s", provision_id, e.message)
        logger.error(
            "Provisioning step failed",
            extra={"provision_id": provision_id, "step": step.number, "error": error},
        )
        return PipelineResult(provision_id, product_type, FAILED, step.number, error)
