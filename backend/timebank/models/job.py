# ruff: noqa: TC003
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from timebank.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from timebank.models.enums import JobState


def _now_utc() -> datetime:
    return datetime.now(UTC)


class QueueDefinition(TimestampMixin, table=True):
    """A declared queue. Jobs can only be sent to declared queues."""

    __tablename__ = "job_queue"

    name: str = Field(primary_key=True, max_length=255)


class JobSchedule(UpdatedAtMixin, table=True):
    """Recurring cron cadence for a queue; at most one per queue."""

    __tablename__ = "job_schedule"

    name: str = Field(
        sa_column=sa.Column(
            sa.String(255), sa.ForeignKey("job_queue.name", ondelete="CASCADE"), primary_key=True
        ),
    )
    cron: str = Field(max_length=255)
    payload: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    last_fired_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]


class ScheduledJob(UUIDBase, TimestampMixin, table=True):
    """One unit of queued work, delivered at least once."""

    __tablename__ = "scheduled_job"
    __table_args__ = (sa.Index("ix_scheduled_job_fetch", "name", "state", "start_after"),)

    name: str = Field(
        sa_column=sa.Column(sa.String(255), sa.ForeignKey("job_queue.name", ondelete="CASCADE"), nullable=False),
    )
    payload: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    state: str = Field(
        default=JobState.CREATED, max_length=20, sa_column_kwargs={"server_default": JobState.CREATED.value}
    )
    retry_count: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    retry_limit: int = Field(default=3, sa_column_kwargs={"server_default": "3"})
    retry_delay_seconds: int = Field(default=30, sa_column_kwargs={"server_default": "30"})
    start_after: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    started_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    completed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    last_error: str | None = None
