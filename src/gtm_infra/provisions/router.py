"""Provision API routers: owner views, progress and admin pipeline runs."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from gtm_infra.common.exceptions import InfraError
from gtm_infra.common.security import require_api_key
from gtm_infra.lifecycle.views import route_view
from gtm_infra.progress.projector import aggregate_status
from gtm_infra.progress.schemas import ProgressSnapshot, StepLogEntry
from gtm_infra.provisions.models import PROVISIONING
from gtm_infra.provisions.schemas import (
    OwnerViewResponse,
    ProvisionProgressResponse,
    ProvisionResponse,
    RunScheduledResponse,
)

logger = logging.getLogger(__name__)

owners_router = APIRouter(prefix="/owners", tags=["provisions"])
router = APIRouter(prefix="/provisions", tags=["provisions"])


def _get_store():
    from gtm_infra.deps import get_store
    return get_store()


def _get_progress():
    from gtm_infra.deps import get_progress_service
    return get_progress_service()


def _get_db():
    from gtm_infra.deps import get_db
    return get_db()


# ── Owner views ──

@owners_router.get("/{owner_id}/provisions", response_model=list[ProvisionResponse])
async def list_owner_provisions(owner_id: str):
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        provisions = await store.list_for_owner(session, owner_id)
        return [ProvisionResponse.model_validate(p) for p in provisions]


@owners_router.get("/{owner_id}/view", response_model=OwnerViewResponse)
async def get_owner_view(owner_id: str):
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        current = await store.get_owner_provisions(session, owner_id)
        decision = route_view(current)
        return OwnerViewResponse(
            owner_id=owner_id,
            view=decision.view,
            provisions=[ProvisionResponse.model_validate(p) for p in decision.provisions],
            failed_provision=(
                ProvisionResponse.model_validate(decision.failed_provision)
                if decision.failed_provision is not None else None
            ),
            prefill_from=[ProvisionResponse.model_validate(p) for p in decision.prefill_from],
            missing_products=decision.missing_products,
            aggregate=aggregate_status(p.status for p in current.values()),
        )


@owners_router.get("/{owner_id}/progress", response_model=ProgressSnapshot)
async def get_owner_progress(owner_id: str):
    svc = _get_progress()
    db = _get_db()
    async with db.get_session() as session:
        return await svc.snapshot(session, owner_id)


# ── Single provision ──

@router.get("/{provision_id}/progress", response_model=ProvisionProgressResponse)
async def get_provision_progress(provision_id: str):
    svc = _get_progress()
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        steps, is_provisioning = await svc.get_progress(session, provision_id)
        provision = await store.require_provision(session, provision_id)
        return ProvisionProgressResponse(
            provision_id=provision_id,
            product_type=provision.product_type,
            status=provision.status,
            is_provisioning=is_provisioning,
            steps=steps,
        )


@router.get("/{provision_id}/log", response_model=list[StepLogEntry])
async def get_provision_log(provision_id: str):
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        if await store.get_provision(session, provision_id) is None:
            raise HTTPException(status_code=404, detail="Provision not found")
        entries = await store.get_step_logs(session, provision_id)
        return [StepLogEntry.model_validate(e) for e in entries]


async def _run_pipeline(provision_id: str) -> None:
    from gtm_infra.deps import get_engine

    try:
        result = await get_engine().run(provision_id)
    except InfraError as e:
        logger.warning("Pipeline run for %s not started: %s", provision_id, e.message)
        return
    logger.info("Pipeline run for %s finished: %s", provision_id, result.status)


@router.post("/{provision_id}/run", response_model=RunScheduledResponse, status_code=202)
async def run_provision(
    provision_id: str,
    background_tasks: BackgroundTasks,
    _=Depends(require_api_key),
):
    store = _get_store()
    db = _get_db()
    async with db.get_session() as session:
        provision = await store.get_provision(session, provision_id)
        if provision is None:
            raise HTTPException(status_code=404, detail="Provision not found")
        if provision.status != PROVISIONING:
            raise HTTPException(
                status_code=409,
                detail=f"Provision is '{provision.status}', not provisioning",
            )
        if await store.run_in_progress(session, provision_id):
            raise HTTPException(status_code=409, detail="Provision is already being run")
    background_tasks.add_task(_run_pipeline, provision_id)
    return RunScheduledResponse(provision_id=provision_id)
