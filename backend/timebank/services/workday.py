"""Aggregation of raw clock events into per-day workday summaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel
from sqlalchemy import select
from sqlmodel import col

from timebank.exceptions import NotFoundError
from timebank.models.enums import ClockEventType, WorkdayStatus
from timebank.models.organization import Organization
from timebank.models.workday import WorkdaySummary
from timebank.services.window import local_day_start_utc, resolve_time_zone

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ClockEvent(BaseModel):
    """A single punch from the time clock."""

    type: ClockEventType
    occurred_at: datetime


@dataclass
class WorkdayTotals:
    """Worked and break time for one local day."""

    worked_minutes: int = 0
    break_minutes: int = 0
    status: WorkdayStatus = WorkdayStatus.OK
    first_clock_in: datetime | None = None
    last_clock_out: datetime | None = None


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def summarize_clock_events(events: Iterable[ClockEvent], day: date, tz: str) -> WorkdayTotals:
    """Compute worked and break minutes for shifts that start on ``day`` in ``tz``.

    A shift belongs to the local day of its CLOCK_IN, so a shift crossing
    midnight counts entirely toward the day it started. An open shift counts
    up to its last recorded event and flags the day MISSING_CLOCK_OUT.
    """
    day_start = local_day_start_utc(day, tz)
    day_end = local_day_start_utc(day + timedelta(days=1), tz)
    totals = WorkdayTotals()
    worked = timedelta()
    breaks = timedelta()

    shift_start: datetime | None = None
    break_start: datetime | None = None
    last_seen: datetime | None = None

    for event in sorted(events, key=lambda e: _utc(e.occurred_at)):
        at = _utc(event.occurred_at)
        if event.type == ClockEventType.CLOCK_IN:
            if shift_start is not None:
                logger.debug("Ignoring CLOCK_IN at %s inside an open shift", at)
                continue
            if not day_start <= at < day_end:
                continue
            shift_start = at
            last_seen = at
            if totals.first_clock_in is None:
                totals.first_clock_in = at
            continue

        if shift_start is None:
            continue

        if event.type == ClockEventType.BREAK_START:
            if break_start is None:
                worked += at - last_seen  # type: ignore[operator]
                break_start = at
                last_seen = at
        elif event.type == ClockEventType.BREAK_END:
            if break_start is not None:
                breaks += at - break_start
                break_start = None
                last_seen = at
        elif event.type == ClockEventType.CLOCK_OUT:
            if break_start is not None:
                breaks += at - break_start
                break_start = None
            else:
                worked += at - last_seen  # type: ignore[operator]
            totals.last_clock_out = at
            shift_start = None
            last_seen = at

    if shift_start is not None:
        totals.status = WorkdayStatus.MISSING_CLOCK_OUT

    totals.worked_minutes = int(worked.total_seconds() // 60)
    totals.break_minutes = int(breaks.total_seconds() // 60)
    return totals


async def record_workday_summary(
    session: AsyncSession,
    org_id: uuid.UUID,
    employee_id: uuid.UUID,
    day: date,
    events: Iterable[ClockEvent],
    *,
    expected_minutes: int | None = None,
) -> WorkdaySummary:
    """Aggregate ``events`` and upsert the employee's summary for ``day``."""
    org = await session.get(Organization, org_id)
    if org is None:
        raise NotFoundError(f"Organization {org_id} not found")
    totals = summarize_clock_events(events, day, resolve_time_zone(org.timezone))

    stmt = select(WorkdaySummary).where(
        col(WorkdaySummary.org_id) == org_id,
        col(WorkdaySummary.employee_id) == employee_id,
        col(WorkdaySummary.date) == day,
    )
    summary = (await session.execute(stmt)).scalar_one_or_none()
    if summary is None:
        summary = WorkdaySummary(org_id=org_id, employee_id=employee_id, date=day)
        session.add(summary)

    summary.worked_minutes = totals.worked_minutes
    summary.break_minutes = totals.break_minutes
    summary.status = totals.status
    summary.first_clock_in = totals.first_clock_in
    summary.last_clock_out = totals.last_clock_out
    if expected_minutes is not None:
        summary.expected_minutes = expected_minutes

    await session.commit()
    logger.debug(
        "Workday %s for employee=%s: worked=%d break=%d status=%s",
        day,
        employee_id,
        totals.worked_minutes,
        totals.break_minutes,
        totals.status,
    )
    return summary
