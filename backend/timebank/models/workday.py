# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from timebank.models.base import TimestampMixin, UUIDBase
from timebank.models.enums import WorkdayStatus


class WorkdaySummary(UUIDBase, TimestampMixin, table=True):
    """Worked minutes for one employee on one tenant-local calendar day."""

    __tablename__ = "workday_summary"
    __table_args__ = (
        sa.UniqueConstraint("org_id", "employee_id", "date", name="uq_workday_org_employee_date"),
        sa.Index("ix_workday_org_date", "org_id", "date"),
    )

    org_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    )
    employee_id: uuid.UUID = Field(index=True)
    date: datetime.date
    worked_minutes: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    break_minutes: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    expected_minutes: int | None = None
    status: str = Field(
        default=WorkdayStatus.OK, max_length=50, sa_column_kwargs={"server_default": WorkdayStatus.OK.value}
    )
    first_clock_in: datetime.datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    last_clock_out: datetime.datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
