# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from timebank.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class Organization(UUIDBase, TimestampMixin, table=True):
    """A tenant. All scheduling and overtime data is scoped to one organization."""

    __tablename__ = "organization"

    name: str = Field(max_length=255)
    timezone: str | None = Field(default=None, max_length=64)
    active: bool = Field(default=True, index=True, sa_column_kwargs={"server_default": sa.true()})


class OrganizationOvertimeSettings(UpdatedAtMixin, table=True):
    """Per-tenant overrides for the scheduler windows and the overtime policy.

    A null field falls back to the global default (scheduler fields) or to the
    built-in policy default (policy fields).
    """

    __tablename__ = "organization_overtime_settings"

    org_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("organization.id", ondelete="CASCADE"), primary_key=True),
    )
    weekly_reconciliation_enabled: bool | None = None
    reconciliation_weekday: int | None = None
    reconciliation_hour: int | None = None
    reconciliation_window_minutes: int | None = None
    sweep_lookback_days: int | None = None

    approval_mode: str | None = Field(default=None, max_length=50)
    tolerance_minutes: int | None = None
    rounding_increment_minutes: int | None = None
    deficit_grace_minutes: int | None = None
    max_positive_minutes: int | None = None
    max_negative_minutes: int | None = None
