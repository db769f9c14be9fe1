"""Overtime dispatcher: decides on every tick which per-organization jobs to enqueue.

The dispatcher itself runs as the ``overtime.dispatch`` job on a cron cadence.
Global settings are read once per tick and passed down as a frozen value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy import select
from sqlmodel import col

from timebank.config import get_settings
from timebank.exceptions import InvalidJobPayloadError
from timebank.models.organization import Organization, OrganizationOvertimeSettings
from timebank.schemas.jobs import (
    OVERTIME_AUTHORIZATION_EXPIRE_JOB,
    OVERTIME_DISPATCH_JOB,
    OVERTIME_WEEKLY_RECONCILIATION_JOB,
    OVERTIME_WORKDAY_SWEEP_JOB,
    AuthorizationExpiryPayload,
    WeeklyReconciliationPayload,
    WorkdaySweepPayload,
)
from timebank.services.expiry import run_authorization_expiry
from timebank.services.reconciliation import run_weekly_reconciliation
from timebank.services.scheduler_settings import get_global_settings, resolve_effective_settings
from timebank.services.sweep import run_workday_sweep
from timebank.services.window import (
    dispatch_cadence,
    is_within_window,
    local_parts,
    resolve_time_zone,
    week_start_date,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from timebank.config import Settings
    from timebank.schemas.jobs import JobPayload
    from timebank.schemas.settings import GlobalSchedulerConfig
    from timebank.services.expiry import ExpiryRunResult
    from timebank.services.queue import JobQueue
    from timebank.services.reconciliation import ReconciliationRunResult
    from timebank.services.sweep import SweepRunResult

logger = logging.getLogger(__name__)

_PayloadT = TypeVar("_PayloadT")

OVERTIME_QUEUES = (
    OVERTIME_DISPATCH_JOB,
    OVERTIME_WORKDAY_SWEEP_JOB,
    OVERTIME_WEEKLY_RECONCILIATION_JOB,
    OVERTIME_AUTHORIZATION_EXPIRE_JOB,
)


@dataclass
class DispatchResult:
    """Summary of one dispatcher tick."""

    organizations: int = 0
    sweeps_enqueued: int = 0
    expiries_enqueued: int = 0
    reconciliations_enqueued: int = 0
    errors: int = 0


async def dispatch_tick(
    session: AsyncSession,
    queue: JobQueue,
    *,
    now: datetime | None = None,
    settings: GlobalSchedulerConfig | None = None,
) -> DispatchResult:
    """Enqueue the sweep, expiry and reconciliation jobs whose windows contain ``now``.

    The daily sweep window applies on every weekday. Enqueuing twice inside one
    window is harmless because every handler is idempotent.
    """
    current = now or datetime.now(UTC)
    config = settings or await get_global_settings(session)
    result = DispatchResult()

    stmt = (
        select(Organization, OrganizationOvertimeSettings)
        .outerjoin(
            OrganizationOvertimeSettings,
            col(OrganizationOvertimeSettings.org_id) == col(Organization.id),
        )
        .where(col(Organization.active).is_(True))
        .order_by(col(Organization.created_at), col(Organization.id))
    )
    rows = (await session.execute(stmt)).all()

    for org, org_settings in rows:
        org_id = org.id
        result.organizations += 1
        try:
            async with session.begin_nested():
                effective = resolve_effective_settings(config, org_settings)
                parts = local_parts(current, resolve_time_zone(org.timezone))

                if is_within_window(
                    parts, parts.weekday, effective.daily_sweep_hour, effective.daily_sweep_window_minutes
                ):
                    await queue.enqueue(
                        session,
                        OVERTIME_WORKDAY_SWEEP_JOB,
                        WorkdaySweepPayload(org_id=org_id, lookback_days=effective.sweep_lookback_days),
                    )
                    await queue.enqueue(
                        session,
                        OVERTIME_AUTHORIZATION_EXPIRE_JOB,
                        AuthorizationExpiryPayload(org_id=org_id, expiry_days=effective.authorization_expiry_days),
                    )
                    result.sweeps_enqueued += 1
                    result.expiries_enqueued += 1

                if effective.weekly_reconciliation_enabled and is_within_window(
                    parts,
                    effective.reconciliation_weekday,
                    effective.reconciliation_hour,
                    effective.reconciliation_window_minutes,
                ):
                    await queue.enqueue(
                        session,
                        OVERTIME_WEEKLY_RECONCILIATION_JOB,
                        WeeklyReconciliationPayload(org_id=org_id, week_start=week_start_date(parts)),
                    )
                    result.reconciliations_enqueued += 1
        except Exception:
            logger.exception("Overtime dispatch failed for org=%s", org_id)
            result.errors += 1

    await session.commit()
    logger.info(
        "Overtime dispatch at %s: orgs=%d sweeps=%d expiries=%d reconciliations=%d errors=%d",
        current.isoformat(),
        result.organizations,
        result.sweeps_enqueued,
        result.expiries_enqueued,
        result.reconciliations_enqueued,
        result.errors,
    )
    return result


# ---------------------------------------------------------------------------
# Queue wiring
# ---------------------------------------------------------------------------


def _expect(payload: JobPayload, kind: type[_PayloadT]) -> _PayloadT:
    if not isinstance(payload, kind):
        msg = f"Expected {kind.__name__}, got {type(payload).__name__}"
        raise InvalidJobPayloadError(msg)
    return payload


def register_overtime_handlers(queue: JobQueue) -> None:
    """Attach the overtime handlers to ``queue``. Dispatch runs one at a time."""

    async def handle_dispatch(session: AsyncSession, payload: JobPayload, now: datetime) -> DispatchResult:
        return await dispatch_tick(session, queue, now=now)

    async def handle_sweep(session: AsyncSession, payload: JobPayload, now: datetime) -> SweepRunResult:
        sweep = _expect(payload, WorkdaySweepPayload)
        return await run_workday_sweep(session, sweep.org_id, sweep.lookback_days, now=now)

    async def handle_reconciliation(
        session: AsyncSession, payload: JobPayload, now: datetime
    ) -> ReconciliationRunResult:
        week = _expect(payload, WeeklyReconciliationPayload)
        return await run_weekly_reconciliation(session, week.org_id, week.week_start, now=now)

    async def handle_expiry(session: AsyncSession, payload: JobPayload, now: datetime) -> ExpiryRunResult:
        expiry = _expect(payload, AuthorizationExpiryPayload)
        return await run_authorization_expiry(session, expiry.org_id, expiry.expiry_days, now=now)

    queue.work(OVERTIME_DISPATCH_JOB, handle_dispatch, team_size=1)
    queue.work(OVERTIME_WORKDAY_SWEEP_JOB, handle_sweep)
    queue.work(OVERTIME_WEEKLY_RECONCILIATION_JOB, handle_reconciliation)
    queue.work(OVERTIME_AUTHORIZATION_EXPIRE_JOB, handle_expiry)


async def register_overtime_scheduler(
    session: AsyncSession,
    queue: JobQueue,
    settings: Settings | None = None,
) -> str | None:
    """Declare the overtime queues, attach handlers and (un)schedule the dispatcher.

    Returns the dispatch cron expression, or None when the scheduler is disabled.
    """
    app_settings = settings or get_settings()
    for name in OVERTIME_QUEUES:
        await queue.create_queue(session, name)
    register_overtime_handlers(queue)

    if not app_settings.overtime_reconciliation_enabled:
        await queue.unschedule(session, OVERTIME_DISPATCH_JOB)
        await session.commit()
        logger.info("Overtime scheduler disabled by OVERTIME_RECONCILIATION_ENABLED")
        return None

    config = await get_global_settings(session)
    cadence = dispatch_cadence(config.dispatch_interval_minutes)
    await queue.schedule(session, OVERTIME_DISPATCH_JOB, cadence)
    await session.commit()
    logger.info("Overtime scheduler registered with cadence %s", cadence)
    return cadence
