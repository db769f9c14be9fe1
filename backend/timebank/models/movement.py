# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from timebank.models.base import TimestampMixin, UUIDBase


class TimeBankMovement(UUIDBase, TimestampMixin, table=True):
    """Append-only ledger entry adjusting an employee's time-bank balance."""

    __tablename__ = "time_bank_movement"
    __table_args__ = (
        sa.Index("ix_movement_org_employee", "org_id", "employee_id"),
        sa.UniqueConstraint("workday_id", "origin", name="uq_movement_workday_origin"),
    )

    org_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    )
    employee_id: uuid.UUID
    workday_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("workday_summary.id", ondelete="SET NULL"), nullable=True),
    )
    date: datetime.date
    minutes: int
    movement_type: str = Field(max_length=50)
    origin: str = Field(max_length=50)
    description: str | None = Field(default=None, max_length=255)
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
