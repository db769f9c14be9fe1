"""Tenant-local clock helpers and dispatch-window matching.

A dispatch window is ``[HH:00, HH:window_minutes)`` on a given ISO weekday in
the tenant's zone. Windows never span an hour boundary: the minute test only
looks at the minute field of the matching hour, so a 60-minute window covers
exactly one hour and anything longer is cut at the top of the hour.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timebank.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_INTERVAL_MINUTES = 10
MIN_DISPATCH_INTERVAL_MINUTES = 1
MAX_DISPATCH_INTERVAL_MINUTES = 60


@dataclass(frozen=True)
class LocalParts:
    """Calendar fields of an instant in a tenant's zone. ``weekday`` is ISO (Mon=1 .. Sun=7)."""

    year: int
    month: int
    day: int
    hour: int
    minute: int
    weekday: int

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)


def resolve_time_zone(tz: str | None) -> str:
    """Return ``tz`` if it names a valid IANA zone, otherwise the configured default."""
    default = get_settings().default_timezone
    candidate = (tz or "").strip()
    if not candidate:
        return default
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("Invalid timezone %r, falling back to %s", tz, default)
        return default
    return candidate


def _to_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant


def local_parts(instant: datetime, tz: str) -> LocalParts:
    """Split ``instant`` into local calendar fields for ``tz``. Naive instants are UTC."""
    local = _to_utc(instant).astimezone(ZoneInfo(tz))
    return LocalParts(
        year=local.year,
        month=local.month,
        day=local.day,
        hour=local.hour,
        minute=local.minute,
        weekday=local.isoweekday(),
    )


def is_within_window(parts: LocalParts, target_weekday: int, target_hour: int, window_minutes: int) -> bool:
    """True iff ``parts`` falls in ``[target_hour:00, target_hour:window_minutes)`` on ``target_weekday``."""
    if parts.weekday != target_weekday:
        return False
    if parts.hour != target_hour:
        return False
    return 0 <= parts.minute < window_minutes


def week_start_date(parts: LocalParts) -> str:
    """Monday of the ISO week containing ``parts``, as ``YYYY-MM-DD``."""
    monday = parts.date - timedelta(days=parts.weekday - 1)
    return monday.isoformat()


def local_today(instant: datetime, tz: str) -> date:
    """Tenant-local calendar date of ``instant``."""
    return _to_utc(instant).astimezone(ZoneInfo(tz)).date()


def local_day_start_utc(day: date, tz: str) -> datetime:
    """UTC instant of local midnight starting ``day``."""
    local_midnight = datetime(day.year, day.month, day.day, tzinfo=ZoneInfo(tz))
    return local_midnight.astimezone(UTC)


def clamp_interval(value: float | None) -> int:
    """Clamp the dispatch interval to 1..60 minutes, defaulting on garbage."""
    if value is None or not math.isfinite(value):
        return DEFAULT_DISPATCH_INTERVAL_MINUTES
    return min(MAX_DISPATCH_INTERVAL_MINUTES, max(MIN_DISPATCH_INTERVAL_MINUTES, round(value)))


def dispatch_cadence(interval_minutes: float | None) -> str:
    """Cron expression firing the dispatcher every ``interval_minutes``."""
    interval = clamp_interval(interval_minutes)
    if interval == MAX_DISPATCH_INTERVAL_MINUTES:
        return "0 * * * *"
    return f"*/{interval} * * * *"
