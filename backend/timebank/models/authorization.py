# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from timebank.models.base import UUIDBase
from timebank.models.enums import AuthorizationStatus


def _now_utc() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class OverworkAuthorization(UUIDBase, table=True):
    """Request to bank time worked beyond schedule; expires when nobody reviews it."""

    __tablename__ = "overwork_authorization"
    __table_args__ = (
        sa.UniqueConstraint("org_id", "employee_id", "date", name="uq_authorization_org_employee_date"),
        sa.Index("ix_authorization_org_status", "org_id", "status"),
    )

    org_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    )
    employee_id: uuid.UUID = Field(index=True)
    date: datetime.date
    minutes: int
    status: str = Field(
        default=AuthorizationStatus.PENDING,
        max_length=50,
        sa_column_kwargs={"server_default": AuthorizationStatus.PENDING.value},
    )
    requested_at: datetime.datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    resolved_at: datetime.datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    resolved_by: uuid.UUID | None = None
    note: str | None = None
