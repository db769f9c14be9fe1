# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from timebank.models.base import TimestampMixin, UUIDBase
from timebank.models.enums import CandidateStatus, CandidateType


class OvertimeCandidate(UUIDBase, TimestampMixin, table=True):
    """Proposed time-bank adjustment for one employee/day, awaiting or carrying a decision."""

    __tablename__ = "overtime_candidate"
    __table_args__ = (
        sa.UniqueConstraint("org_id", "employee_id", "date", name="uq_candidate_org_employee_date"),
        sa.Index("ix_candidate_org_status_date", "org_id", "status", "date"),
    )

    org_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    )
    employee_id: uuid.UUID = Field(index=True)
    date: datetime.date
    workday_summary_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("workday_summary.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    worked_minutes: int = 0
    expected_minutes: int | None = None
    deviation_minutes: int = 0
    candidate_minutes: int = 0
    candidate_type: str = Field(default=CandidateType.EXTRA, max_length=50)
    requires_approval: bool = False
    status: str = Field(
        default=CandidateStatus.PENDING,
        max_length=50,
        sa_column_kwargs={"server_default": CandidateStatus.PENDING.value},
    )
    overwork_authorization_id: uuid.UUID | None = Field(default=None, index=True)
    time_bank_movement_id: uuid.UUID | None = None
    flags: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    last_calculated_at: datetime.datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    resolved_at: datetime.datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
