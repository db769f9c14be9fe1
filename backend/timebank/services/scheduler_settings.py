"""Global scheduler defaults, per-organization overrides and their merge."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from timebank.exceptions import ConfigurationError, NotFoundError
from timebank.models.enums import AuditAction, AuditEntityType
from timebank.models.global_settings import GLOBAL_SETTINGS_ID, GlobalSchedulerSettings
from timebank.models.organization import Organization, OrganizationOvertimeSettings
from timebank.schemas.settings import (
    EffectiveSchedule,
    GlobalSchedulerConfig,
    GlobalSchedulerSettingsUpdate,
    OrganizationSettingsResponse,
    OrganizationSettingsUpdate,
    OvertimePolicy,
)
from timebank.services.audit import audit_snapshot, write_audit_log
from timebank.services.window import clamp_interval

if TYPE_CHECKING:
    import uuid

    from pydantic import BaseModel
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

MIN_EXPIRY_DAYS = 1
MAX_EXPIRY_DAYS = 90
MIN_LOOKBACK_DAYS = 1
MAX_LOOKBACK_DAYS = 14

_ModelT = TypeVar("_ModelT", bound="BaseModel")


def clamp_expiry_days(value: int) -> int:
    return min(MAX_EXPIRY_DAYS, max(MIN_EXPIRY_DAYS, value))


def clamp_lookback_days(value: int) -> int:
    return min(MAX_LOOKBACK_DAYS, max(MIN_LOOKBACK_DAYS, value))


def _coerce(model: type[_ModelT], update: _ModelT | dict[str, Any]) -> _ModelT:
    if isinstance(update, model):
        return update
    try:
        return model.model_validate(update)
    except ValidationError as exc:
        msg = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
        raise ConfigurationError(msg) from exc


# ---------------------------------------------------------------------------
# Global settings
# ---------------------------------------------------------------------------


async def get_global_settings(session: AsyncSession) -> GlobalSchedulerConfig:
    """Return the global scheduler settings, falling back to built-in defaults."""
    row = await session.get(GlobalSchedulerSettings, GLOBAL_SETTINGS_ID)
    if row is None:
        return GlobalSchedulerConfig()
    config = GlobalSchedulerConfig.model_validate(row)
    return config.model_copy(
        update={
            "dispatch_interval_minutes": clamp_interval(config.dispatch_interval_minutes),
            "sweep_lookback_days": clamp_lookback_days(config.sweep_lookback_days),
            "authorization_expiry_days": clamp_expiry_days(config.authorization_expiry_days),
        }
    )


async def update_global_settings(
    session: AsyncSession,
    update: GlobalSchedulerSettingsUpdate | dict[str, Any],
    actor_id: uuid.UUID,
) -> GlobalSchedulerConfig:
    """Validate and persist a partial update of the global settings."""
    payload = _coerce(GlobalSchedulerSettingsUpdate, update)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}

    row = await session.get(GlobalSchedulerSettings, GLOBAL_SETTINGS_ID)
    created = row is None
    if row is None:
        row = GlobalSchedulerSettings(id=GLOBAL_SETTINGS_ID)
        session.add(row)
    before = None if created else audit_snapshot(row)

    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_at = datetime.now(UTC)
    await session.flush()

    await write_audit_log(
        session,
        org_id=None,
        actor_id=actor_id,
        entity_type=AuditEntityType.GLOBAL_SCHEDULER_SETTINGS,
        entity_id=GLOBAL_SETTINGS_ID,
        action=AuditAction.CREATE if created else AuditAction.UPDATE,
        before_json=before,
        after_json=audit_snapshot(row),
    )
    await session.commit()
    logger.info("Global scheduler settings updated by %s: %s", actor_id, sorted(changes))
    return await get_global_settings(session)


# ---------------------------------------------------------------------------
# Organization overrides
# ---------------------------------------------------------------------------


def resolve_effective_settings(
    global_settings: GlobalSchedulerConfig,
    org_settings: OrganizationOvertimeSettings | None,
) -> EffectiveSchedule:
    """Merge one organization's overrides onto the global defaults. Null means inherit."""

    def pick(field: str, default: Any) -> Any:
        if org_settings is None:
            return default
        value = getattr(org_settings, field)
        return default if value is None else value

    return EffectiveSchedule(
        weekly_reconciliation_enabled=pick("weekly_reconciliation_enabled", True),
        reconciliation_weekday=pick("reconciliation_weekday", global_settings.reconciliation_weekday),
        reconciliation_hour=pick("reconciliation_hour", global_settings.reconciliation_hour),
        reconciliation_window_minutes=pick(
            "reconciliation_window_minutes", global_settings.reconciliation_window_minutes
        ),
        daily_sweep_hour=global_settings.daily_sweep_hour,
        daily_sweep_window_minutes=global_settings.daily_sweep_window_minutes,
        sweep_lookback_days=clamp_lookback_days(pick("sweep_lookback_days", global_settings.sweep_lookback_days)),
        authorization_expiry_days=clamp_expiry_days(global_settings.authorization_expiry_days),
    )


def overtime_policy_for(org_settings: OrganizationOvertimeSettings | None) -> OvertimePolicy:
    """Build the overtime policy of an organization, defaulting every unset field."""
    if org_settings is None:
        return OvertimePolicy()
    overrides = {
        field: getattr(org_settings, field)
        for field in OvertimePolicy.model_fields
        if getattr(org_settings, field) is not None
    }
    try:
        return OvertimePolicy.model_validate(overrides)
    except ValidationError:
        logger.warning("Stored overtime policy for org %s is invalid, using defaults", org_settings.org_id)
        return OvertimePolicy()


async def _get_organization(session: AsyncSession, org_id: uuid.UUID) -> Organization:
    org = await session.get(Organization, org_id)
    if org is None:
        raise NotFoundError(f"Organization {org_id} not found")
    return org


def _build_settings_response(
    org_id: uuid.UUID,
    row: OrganizationOvertimeSettings | None,
    global_settings: GlobalSchedulerConfig,
) -> OrganizationSettingsResponse:
    stored: dict[str, Any] = {}
    if row is not None:
        stored = row.model_dump(exclude={"org_id", "updated_at"})
    return OrganizationSettingsResponse(
        org_id=org_id,
        **stored,
        effective=resolve_effective_settings(global_settings, row),
        policy=overtime_policy_for(row),
    )


async def get_organization_settings(session: AsyncSession, org_id: uuid.UUID) -> OrganizationSettingsResponse:
    """Return an organization's overrides together with the effective values."""
    await _get_organization(session, org_id)
    row = await session.get(OrganizationOvertimeSettings, org_id)
    return _build_settings_response(org_id, row, await get_global_settings(session))


async def update_organization_settings(
    session: AsyncSession,
    org_id: uuid.UUID,
    update: OrganizationSettingsUpdate | dict[str, Any],
    actor_id: uuid.UUID,
) -> OrganizationSettingsResponse:
    """Validate and persist a partial update of an organization's overrides."""
    payload = _coerce(OrganizationSettingsUpdate, update)
    await _get_organization(session, org_id)

    row = await session.get(OrganizationOvertimeSettings, org_id)
    created = row is None
    if row is None:
        row = OrganizationOvertimeSettings(org_id=org_id)
        session.add(row)
    before = None if created else audit_snapshot(row)

    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(row, key, value.value if key == "approval_mode" and value is not None else value)
    row.updated_at = datetime.now(UTC)
    await session.flush()

    await write_audit_log(
        session,
        org_id=org_id,
        actor_id=actor_id,
        entity_type=AuditEntityType.ORGANIZATION_SETTINGS,
        entity_id=org_id,
        action=AuditAction.CREATE if created else AuditAction.UPDATE,
        before_json=before,
        after_json=audit_snapshot(row),
    )
    await session.commit()
    return _build_settings_response(org_id, row, await get_global_settings(session))
