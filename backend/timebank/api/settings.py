# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from timebank.api.deps import AdminDep, AuthDep, validate_org_scope
from timebank.db import SessionDep
from timebank.schemas.settings import (
    GlobalSchedulerConfig,
    GlobalSchedulerSettingsUpdate,
    OrganizationSettingsResponse,
    OrganizationSettingsUpdate,
)
from timebank.services import scheduler_settings as settings_service

global_settings_router = APIRouter(prefix="/admin/overtime/scheduler", tags=["scheduler"])

organization_settings_router = APIRouter(
    prefix="/organizations/{org_id}/overtime/settings",
    tags=["scheduler"],
    dependencies=[Depends(validate_org_scope)],
)


@global_settings_router.get("", response_model=GlobalSchedulerConfig)
async def get_global_scheduler_settings(
    session: SessionDep,
    auth: AdminDep,
) -> GlobalSchedulerConfig:
    """Return the platform-wide scheduler defaults."""
    return await settings_service.get_global_settings(session)


@global_settings_router.put("", response_model=GlobalSchedulerConfig)
async def update_global_scheduler_settings(
    payload: GlobalSchedulerSettingsUpdate,
    session: SessionDep,
    auth: AdminDep,
) -> GlobalSchedulerConfig:
    """Update the platform-wide scheduler defaults.

    A new dispatch interval takes effect when the worker next registers the scheduler.
    """
    return await settings_service.update_global_settings(session, payload, auth.user_id)


@organization_settings_router.get("", response_model=OrganizationSettingsResponse)
async def get_organization_overtime_settings(
    org_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> OrganizationSettingsResponse:
    """Return the organization's overrides and the values in effect."""
    return await settings_service.get_organization_settings(session, org_id)


@organization_settings_router.put("", response_model=OrganizationSettingsResponse)
async def update_organization_overtime_settings(
    org_id: uuid.UUID,
    payload: OrganizationSettingsUpdate,
    session: SessionDep,
    auth: AdminDep,
) -> OrganizationSettingsResponse:
    """Update the organization's overrides. Send null to fall back to the default."""
    return await settings_service.update_organization_settings(session, org_id, payload, auth.user_id)
