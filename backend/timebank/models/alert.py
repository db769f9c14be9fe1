# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from timebank.models.base import TimestampMixin, UUIDBase
from timebank.models.enums import AlertStatus


class Alert(UUIDBase, TimestampMixin, table=True):
    """Reviewer-facing notice tied to one employee/day."""

    __tablename__ = "alert"
    __table_args__ = (
        sa.UniqueConstraint("org_id", "employee_id", "date", "type", name="uq_alert_org_employee_date_type"),
    )

    org_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    )
    employee_id: uuid.UUID = Field(index=True)
    date: datetime.date
    type: str = Field(max_length=50)
    status: str = Field(
        default=AlertStatus.ACTIVE, max_length=50, sa_column_kwargs={"server_default": AlertStatus.ACTIVE.value}
    )
    description: str | None = None
    deviation_minutes: int | None = None
    resolved_at: datetime.datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
