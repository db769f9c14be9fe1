# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from timebank.models.enums import ApprovalMode

# ---------------------------------------------------------------------------
# Global scheduler settings
# ---------------------------------------------------------------------------


class GlobalSchedulerSettingsUpdate(BaseModel):
    """Partial update of the platform-wide scheduler defaults."""

    model_config = ConfigDict(extra="forbid")

    reconciliation_weekday: int | None = Field(default=None, ge=1, le=7)
    reconciliation_hour: int | None = Field(default=None, ge=0, le=23)
    reconciliation_window_minutes: int | None = Field(default=None, ge=1, le=60)
    dispatch_interval_minutes: int | None = Field(default=None, ge=1, le=60)
    daily_sweep_hour: int | None = Field(default=None, ge=0, le=23)
    daily_sweep_window_minutes: int | None = Field(default=None, ge=5, le=120)
    sweep_lookback_days: int | None = Field(default=None, ge=1, le=14)
    authorization_expiry_days: int | None = Field(default=None, ge=1, le=90)


class GlobalSchedulerConfig(BaseModel):
    """Immutable snapshot of the global scheduler settings with defaults applied."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    reconciliation_weekday: int = 1
    reconciliation_hour: int = 4
    reconciliation_window_minutes: int = 20
    dispatch_interval_minutes: int = 10
    daily_sweep_hour: int = 4
    daily_sweep_window_minutes: int = 20
    sweep_lookback_days: int = 2
    authorization_expiry_days: int = 7
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Organization overrides
# ---------------------------------------------------------------------------


class OrganizationSettingsUpdate(BaseModel):
    """Partial update of one organization's overrides. An explicit null clears an override."""

    model_config = ConfigDict(extra="forbid")

    weekly_reconciliation_enabled: bool | None = None
    reconciliation_weekday: int | None = Field(default=None, ge=1, le=7)
    reconciliation_hour: int | None = Field(default=None, ge=0, le=23)
    reconciliation_window_minutes: int | None = Field(default=None, ge=1, le=60)
    sweep_lookback_days: int | None = Field(default=None, ge=1, le=14)
    approval_mode: ApprovalMode | None = None
    tolerance_minutes: int | None = Field(default=None, ge=0, le=120)
    rounding_increment_minutes: int | None = Field(default=None, ge=1, le=60)
    deficit_grace_minutes: int | None = Field(default=None, ge=0, le=120)
    max_positive_minutes: int | None = Field(default=None, ge=0, le=100_000)
    max_negative_minutes: int | None = Field(default=None, ge=0, le=100_000)


class EffectiveSchedule(BaseModel):
    """Dispatch windows for one organization after merging its overrides onto the global defaults."""

    model_config = ConfigDict(frozen=True)

    weekly_reconciliation_enabled: bool
    reconciliation_weekday: int
    reconciliation_hour: int
    reconciliation_window_minutes: int
    daily_sweep_hour: int
    daily_sweep_window_minutes: int
    sweep_lookback_days: int
    authorization_expiry_days: int


class OvertimePolicy(BaseModel):
    """How raw deviations become time-bank minutes."""

    model_config = ConfigDict(frozen=True)

    approval_mode: ApprovalMode = ApprovalMode.POST
    tolerance_minutes: int = 15
    rounding_increment_minutes: int = 5
    deficit_grace_minutes: int = 10
    max_positive_minutes: int = 4800
    max_negative_minutes: int = 480


class OrganizationSettingsResponse(BaseModel):
    """Stored overrides plus the values the scheduler will actually use."""

    org_id: uuid.UUID
    weekly_reconciliation_enabled: bool | None = None
    reconciliation_weekday: int | None = None
    reconciliation_hour: int | None = None
    reconciliation_window_minutes: int | None = None
    sweep_lookback_days: int | None = None
    approval_mode: ApprovalMode | None = None
    tolerance_minutes: int | None = None
    rounding_increment_minutes: int | None = None
    deficit_grace_minutes: int | None = None
    max_positive_minutes: int | None = None
    max_negative_minutes: int | None = None
    effective: EffectiveSchedule
    policy: OvertimePolicy
