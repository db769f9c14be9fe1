# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

DEFAULT_WORKDAY_MINUTES = 480


class ScheduledDay(BaseModel):
    """Expected work for one employee on one local day, from the Schedule Service."""

    employee_id: uuid.UUID
    date: date
    expected_minutes: int
    is_working_day: bool
    source: str = "DEFAULT"  # "DEFAULT", "PATTERN", "EXCEPTION" or "ABSENCE"


@runtime_checkable
class ScheduleService(Protocol):
    """Interface for the Schedule Service."""

    async def get_scheduled_day(self, org_id: uuid.UUID, employee_id: uuid.UUID, day: date) -> ScheduledDay | None:
        """Return the effective schedule for the day, or None if it cannot be resolved."""
        ...


class InMemoryScheduleService:
    """In-memory stub implementation for development.

    Unseeded days follow a Monday-to-Friday schedule of ``workday_minutes``.
    """

    def __init__(self, workday_minutes: int = DEFAULT_WORKDAY_MINUTES) -> None:
        self.workday_minutes = workday_minutes
        self._days: dict[tuple[uuid.UUID, uuid.UUID, date], ScheduledDay] = {}

    def seed(self, org_id: uuid.UUID, scheduled_day: ScheduledDay) -> None:
        """Seed a specific day for testing."""
        self._days[(org_id, scheduled_day.employee_id, scheduled_day.date)] = scheduled_day

    async def get_scheduled_day(self, org_id: uuid.UUID, employee_id: uuid.UUID, day: date) -> ScheduledDay | None:
        seeded = self._days.get((org_id, employee_id, day))
        if seeded is not None:
            return seeded
        working = day.isoweekday() <= 5
        return ScheduledDay(
            employee_id=employee_id,
            date=day,
            expected_minutes=self.workday_minutes if working else 0,
            is_working_day=working,
        )


_schedule_service: ScheduleService = InMemoryScheduleService()


def get_schedule_service() -> ScheduleService:
    """Return the configured Schedule Service."""
    return _schedule_service


def set_schedule_service(service: ScheduleService) -> None:
    """Override the service (for testing or production wiring)."""
    global _schedule_service
    _schedule_service = service
