# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from timebank.api.deps import AdminDep, OrganizationDep, validate_org_scope
from timebank.db import SessionDep
from timebank.models.organization import OrganizationOvertimeSettings
from timebank.schemas.runs import (
    AuthorizationDecisionRequest,
    AuthorizationResponse,
    ExpireTriggerRequest,
    ExpiryRunResponse,
    ReconcileTriggerRequest,
    ReconciliationRunResponse,
    SweepRunResponse,
    SweepTriggerRequest,
)
from timebank.services.authorization import decide_authorization
from timebank.services.expiry import run_authorization_expiry
from timebank.services.reconciliation import run_weekly_reconciliation
from timebank.services.scheduler_settings import get_global_settings, resolve_effective_settings
from timebank.services.sweep import run_workday_sweep

overtime_router = APIRouter(
    prefix="/organizations/{org_id}/overtime",
    tags=["overtime"],
    dependencies=[Depends(validate_org_scope)],
)


@overtime_router.post("/sweep", response_model=SweepRunResponse)
async def trigger_workday_sweep(
    org_id: uuid.UUID,
    payload: SweepTriggerRequest,
    session: SessionDep,
    org: OrganizationDep,
    auth: AdminDep,
) -> SweepRunResponse:
    """Run the workday sweep for this organization now."""
    lookback = payload.lookback_days
    if lookback is None:
        effective = resolve_effective_settings(
            await get_global_settings(session),
            await session.get(OrganizationOvertimeSettings, org_id),
        )
        lookback = effective.sweep_lookback_days
    result = await run_workday_sweep(session, org_id, lookback, now=datetime.now(UTC))
    return SweepRunResponse(
        processed=result.processed,
        created=result.created,
        updated=result.updated,
        unchanged=result.unchanged,
        skipped=result.skipped,
        errors=result.errors,
    )


@overtime_router.post("/reconcile", response_model=ReconciliationRunResponse)
async def trigger_weekly_reconciliation(
    org_id: uuid.UUID,
    payload: ReconcileTriggerRequest,
    session: SessionDep,
    org: OrganizationDep,
    auth: AdminDep,
) -> ReconciliationRunResponse:
    """Settle the approved candidates of one week into the time bank."""
    result = await run_weekly_reconciliation(session, org_id, payload.week_start)
    return ReconciliationRunResponse(
        processed=result.processed,
        settled=result.settled,
        already_applied=result.already_applied,
        skipped=result.skipped,
        errors=result.errors,
    )


@overtime_router.post("/expire", response_model=ExpiryRunResponse)
async def trigger_authorization_expiry(
    org_id: uuid.UUID,
    payload: ExpireTriggerRequest,
    session: SessionDep,
    org: OrganizationDep,
    auth: AdminDep,
) -> ExpiryRunResponse:
    """Expire stale pending authorizations for this organization now."""
    days = payload.expiry_days
    if days is None:
        days = (await get_global_settings(session)).authorization_expiry_days
    result = await run_authorization_expiry(session, org_id, days)
    return ExpiryRunResponse(
        authorizations_expired=result.authorizations_expired,
        alerts_expired=result.alerts_expired,
        candidates_expired=result.candidates_expired,
    )


@overtime_router.post("/authorizations/{authorization_id}/approve", response_model=AuthorizationResponse)
async def approve_authorization(
    org_id: uuid.UUID,
    authorization_id: uuid.UUID,
    payload: AuthorizationDecisionRequest,
    session: SessionDep,
    auth: AdminDep,
) -> AuthorizationResponse:
    """Approve a pending overwork authorization."""
    decided = await decide_authorization(session, org_id, authorization_id, True, auth.user_id, payload.note)
    return AuthorizationResponse.model_validate(decided, from_attributes=True)


@overtime_router.post("/authorizations/{authorization_id}/reject", response_model=AuthorizationResponse)
async def reject_authorization(
    org_id: uuid.UUID,
    authorization_id: uuid.UUID,
    payload: AuthorizationDecisionRequest,
    session: SessionDep,
    auth: AdminDep,
) -> AuthorizationResponse:
    """Reject a pending overwork authorization."""
    decided = await decide_authorization(session, org_id, authorization_id, False, auth.user_id, payload.note)
    return AuthorizationResponse.model_validate(decided, from_attributes=True)
