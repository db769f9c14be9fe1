"""Weekly reconciliation: settle approved overtime candidates into the time bank.

At most one AUTO_DAILY movement exists per workday. The explicit lookup
handles sequential re-runs and redelivered jobs; the unique constraint on
``(workday_id, origin)`` catches concurrent runs racing on the same workday.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from timebank.exceptions import InvalidJobPayloadError
from timebank.models.candidate import OvertimeCandidate
from timebank.models.enums import CandidateStatus, MovementOrigin, MovementType
from timebank.models.movement import TimeBankMovement
from timebank.models.organization import Organization, OrganizationOvertimeSettings
from timebank.services.scheduler_settings import overtime_policy_for

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from timebank.schemas.settings import OvertimePolicy

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationRunResult:
    """Summary of one weekly reconciliation run."""

    org_id: uuid.UUID
    week_start: date
    processed: int = 0
    settled: int = 0
    already_applied: int = 0
    skipped: int = 0
    errors: int = 0


def clamp_movement_minutes(minutes: int, balance_minutes: int, policy: OvertimePolicy) -> tuple[int, bool]:
    """Limit ``minutes`` so the balance stays within ``[-max_negative, max_positive]``.

    Returns the minutes to apply and whether a limit cut them.
    """
    if minutes > 0:
        available = policy.max_positive_minutes - balance_minutes
        if available <= 0:
            return 0, True
        if minutes > available:
            return available, True
    if minutes < 0:
        available = balance_minutes + policy.max_negative_minutes
        if available <= 0:
            return 0, True
        if -minutes > available:
            return -available, True
    return minutes, False


def parse_week_start(value: date | str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid week_start {value!r}, expected YYYY-MM-DD"
        raise InvalidJobPayloadError(msg) from exc


async def get_employee_balance_minutes(session: AsyncSession, org_id: uuid.UUID, employee_id: uuid.UUID) -> int:
    """Sum of every movement recorded for the employee."""
    stmt = select(func.coalesce(func.sum(TimeBankMovement.minutes), 0)).where(
        col(TimeBankMovement.org_id) == org_id,
        col(TimeBankMovement.employee_id) == employee_id,
    )
    return int((await session.execute(stmt)).scalar_one())


async def _find_auto_movement(session: AsyncSession, workday_id: uuid.UUID) -> TimeBankMovement | None:
    stmt = select(TimeBankMovement).where(
        col(TimeBankMovement.workday_id) == workday_id,
        col(TimeBankMovement.origin) == MovementOrigin.AUTO_DAILY,
    )
    return (await session.execute(stmt)).scalar_one_or_none()


def _mark(
    candidates: list[OvertimeCandidate],
    status: CandidateStatus,
    now: datetime,
    movement_id: uuid.UUID | None = None,
) -> None:
    for candidate in candidates:
        candidate.status = status
        candidate.time_bank_movement_id = movement_id
        candidate.resolved_at = now


async def _settle_workday(
    session: AsyncSession,
    org_id: uuid.UUID,
    employee_id: uuid.UUID,
    workday_id: uuid.UUID,
    candidates: list[OvertimeCandidate],
    policy: OvertimePolicy,
    now: datetime,
) -> str:
    """Apply one workday's approved minutes. Returns settled, already_applied or skipped."""
    existing = await _find_auto_movement(session, workday_id)
    if existing is not None:
        _mark(candidates, CandidateStatus.SETTLED, now, existing.id)
        return "already_applied"

    # Skipped workdays still close their candidates; the sweep never reopens them.
    minutes = sum(c.candidate_minutes for c in candidates)
    if minutes == 0:
        _mark(candidates, CandidateStatus.SETTLED, now)
        return "skipped"

    balance = await get_employee_balance_minutes(session, org_id, employee_id)
    applied, clamped = clamp_movement_minutes(minutes, balance, policy)
    if applied == 0:
        logger.info(
            "Movement for employee=%s workday=%s dropped by balance limit (balance=%d attempted=%d)",
            employee_id,
            workday_id,
            balance,
            minutes,
        )
        _mark(candidates, CandidateStatus.SETTLED, now)
        return "skipped"

    metadata: dict[str, object] = {
        "candidate_ids": [str(c.id) for c in candidates],
        "candidate_type": candidates[0].candidate_type,
    }
    if clamped:
        metadata.update(
            clamped_by_limit=True,
            attempted_minutes=minutes,
            balance_before_minutes=balance,
            max_positive_minutes=policy.max_positive_minutes,
            max_negative_minutes=policy.max_negative_minutes,
        )

    movement = TimeBankMovement(
        org_id=org_id,
        employee_id=employee_id,
        workday_id=workday_id,
        date=candidates[0].date,
        minutes=applied,
        movement_type=MovementType.EXTRA if applied >= 0 else MovementType.DEFICIT,
        origin=MovementOrigin.AUTO_DAILY,
        description="Automatic daily difference (clamped by limit)" if clamped else "Automatic daily difference",
        metadata_json=metadata,
    )

    # Savepoint so that losing the race only rolls back this insert.
    try:
        async with session.begin_nested():
            session.add(movement)
            await session.flush()
    except IntegrityError:
        winner = await _find_auto_movement(session, workday_id)
        _mark(candidates, CandidateStatus.SETTLED, now, winner.id if winner is not None else None)
        return "already_applied"

    _mark(candidates, CandidateStatus.SETTLED, now, movement.id)
    return "settled"


async def run_weekly_reconciliation(
    session: AsyncSession,
    org_id: uuid.UUID,
    week_start: date | str,
    *,
    now: datetime | None = None,
) -> ReconciliationRunResult:
    """Settle every APPROVED candidate dated within the week starting ``week_start``.

    Safe to run any number of times for the same week.
    """
    start = parse_week_start(week_start)
    end = start + timedelta(days=6)
    current = now or datetime.now(UTC)
    result = ReconciliationRunResult(org_id=org_id, week_start=start)

    org = await session.get(Organization, org_id)
    if org is None:
        logger.warning("Weekly reconciliation skipped: organization %s not found", org_id)
        return result

    policy = overtime_policy_for(await session.get(OrganizationOvertimeSettings, org_id))

    stmt = (
        select(OvertimeCandidate)
        .where(
            col(OvertimeCandidate.org_id) == org_id,
            col(OvertimeCandidate.status) == CandidateStatus.APPROVED,
            col(OvertimeCandidate.date) >= start,
            col(OvertimeCandidate.date) <= end,
        )
        .order_by(col(OvertimeCandidate.employee_id), col(OvertimeCandidate.date))
    )
    candidates = (await session.execute(stmt)).scalars().all()

    groups: dict[tuple[uuid.UUID, uuid.UUID], list[OvertimeCandidate]] = defaultdict(list)
    for candidate in candidates:
        groups[(candidate.employee_id, candidate.workday_summary_id)].append(candidate)

    for (employee_id, workday_id), group in groups.items():
        result.processed += 1
        try:
            async with session.begin_nested():
                outcome = await _settle_workday(session, org_id, employee_id, workday_id, group, policy, current)
            setattr(result, outcome, getattr(result, outcome) + 1)
        except Exception:
            logger.exception(
                "Weekly reconciliation failed for org=%s employee=%s workday=%s",
                org_id,
                employee_id,
                workday_id,
            )
            result.errors += 1

    await session.commit()
    logger.info(
        "Weekly reconciliation for org=%s week=%s: processed=%d settled=%d already_applied=%d skipped=%d errors=%d",
        org_id,
        start,
        result.processed,
        result.settled,
        result.already_applied,
        result.skipped,
        result.errors,
    )
    return result
