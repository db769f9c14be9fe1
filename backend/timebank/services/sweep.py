"""Daily workday sweep: turn recent workday summaries into overtime candidates.

Candidates still open (PENDING or SKIPPED) are recomputed on every run.
Candidates carrying a decision are never touched, so a reviewer's call
survives late clock corrections.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from timebank.models.alert import Alert
from timebank.models.authorization import OverworkAuthorization
from timebank.models.candidate import OvertimeCandidate
from timebank.models.enums import (
    DECIDED_CANDIDATE_STATUSES,
    AlertStatus,
    AlertType,
    ApprovalMode,
    AuthorizationStatus,
    CandidateStatus,
    CandidateType,
    WorkdayStatus,
)
from timebank.models.organization import Organization, OrganizationOvertimeSettings
from timebank.models.workday import WorkdaySummary
from timebank.services.schedule import get_schedule_service
from timebank.services.scheduler_settings import clamp_lookback_days, overtime_policy_for
from timebank.services.window import local_today, resolve_time_zone

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from timebank.schemas.settings import OvertimePolicy
    from timebank.services.schedule import ScheduledDay, ScheduleService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class SweepRunResult:
    """Summary of one sweep over an organization's recent workdays.

    ``skipped`` counts decided candidates left untouched; ``unchanged`` counts
    open candidates whose recomputation matched what was stored.
    """

    org_id: uuid.UUID
    start_date: date | None = None
    end_date: date | None = None
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    failed_employee_ids: list[uuid.UUID] = field(default_factory=list)


@dataclass(frozen=True)
class CandidateComputation:
    """Outcome of applying the overtime policy to one workday."""

    expected_minutes: int | None
    deviation_minutes: int
    candidate_minutes: int
    candidate_type: CandidateType
    requires_approval: bool
    status: CandidateStatus
    flags: dict[str, Any]


# ---------------------------------------------------------------------------
# Pure policy helpers
# ---------------------------------------------------------------------------


def normalize_deviation(value: float, policy: OvertimePolicy) -> int:
    """Round to the policy increment, then absorb small surpluses and deficits."""
    if not math.isfinite(value):
        return 0
    increment = max(1, policy.rounding_increment_minutes)
    rounded = math.floor(value / increment + 0.5) * increment
    if 0 < rounded <= policy.tolerance_minutes:
        return 0
    if rounded < 0 and abs(rounded) <= policy.deficit_grace_minutes:
        return 0
    return int(rounded)


def compute_candidate(
    summary: WorkdaySummary,
    scheduled: ScheduledDay | None,
    policy: OvertimePolicy,
) -> CandidateComputation:
    """Classify one workday against its schedule and the overtime policy."""
    worked = summary.worked_minutes
    expected = summary.expected_minutes
    if expected is None and scheduled is not None:
        expected = scheduled.expected_minutes

    requires_review = summary.status == WorkdayStatus.MISSING_CLOCK_OUT

    if expected is None:
        return CandidateComputation(
            expected_minutes=None,
            deviation_minutes=0,
            candidate_minutes=0,
            candidate_type=CandidateType.EXTRA,
            requires_approval=False,
            status=CandidateStatus.SKIPPED,
            flags={"reason": "NO_EXPECTED_MINUTES", "requires_review": requires_review},
        )

    is_working_day = scheduled.is_working_day if scheduled is not None else expected > 0
    is_absence = scheduled is not None and scheduled.source == "ABSENCE"
    non_working = not is_working_day or is_absence

    deviation = worked - expected
    minutes = normalize_deviation(worked if non_working else deviation, policy)

    if minutes < 0:
        candidate_type = CandidateType.DEFICIT
    elif non_working:
        candidate_type = CandidateType.NON_WORKDAY
    else:
        candidate_type = CandidateType.EXTRA

    requires_approval = (
        minutes > 0
        and candidate_type != CandidateType.DEFICIT
        and (policy.approval_mode != ApprovalMode.NONE or requires_review)
    )
    if minutes == 0:
        status = CandidateStatus.SKIPPED
    elif requires_approval:
        status = CandidateStatus.PENDING
    else:
        status = CandidateStatus.APPROVED

    return CandidateComputation(
        expected_minutes=expected,
        deviation_minutes=deviation,
        candidate_minutes=minutes,
        candidate_type=candidate_type,
        requires_approval=requires_approval,
        status=status,
        flags={
            "non_working_day": non_working,
            "absence": is_absence,
            "schedule_source": scheduled.source if scheduled is not None else None,
            "requires_review": requires_review,
            "workday_status": summary.status,
        },
    )


# ---------------------------------------------------------------------------
# Side records
# ---------------------------------------------------------------------------


async def _upsert_alert(
    session: AsyncSession,
    summary: WorkdaySummary,
    alert_type: AlertType,
    description: str,
    deviation_minutes: int | None,
    *,
    reactivate: bool,
) -> Alert:
    stmt = select(Alert).where(
        col(Alert.org_id) == summary.org_id,
        col(Alert.employee_id) == summary.employee_id,
        col(Alert.date) == summary.date,
        col(Alert.type) == alert_type,
    )
    alert = (await session.execute(stmt)).scalar_one_or_none()
    if alert is None:
        alert = Alert(
            org_id=summary.org_id,
            employee_id=summary.employee_id,
            date=summary.date,
            type=alert_type,
            description=description,
            deviation_minutes=deviation_minutes,
        )
        session.add(alert)
    else:
        alert.deviation_minutes = deviation_minutes
        if reactivate and alert.status != AlertStatus.ACTIVE:
            alert.status = AlertStatus.ACTIVE
            alert.resolved_at = None
    return alert


async def _resolve_pending_alert(session: AsyncSession, summary: WorkdaySummary, now: datetime) -> None:
    stmt = select(Alert).where(
        col(Alert.org_id) == summary.org_id,
        col(Alert.employee_id) == summary.employee_id,
        col(Alert.date) == summary.date,
        col(Alert.type) == AlertType.OVERTIME_PENDING_APPROVAL,
        col(Alert.status) == AlertStatus.ACTIVE,
    )
    alert = (await session.execute(stmt)).scalar_one_or_none()
    if alert is not None:
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = now


async def _find_authorization(
    session: AsyncSession, summary: WorkdaySummary, candidate: OvertimeCandidate | None
) -> OverworkAuthorization | None:
    if candidate is not None and candidate.overwork_authorization_id is not None:
        auth = await session.get(OverworkAuthorization, candidate.overwork_authorization_id)
        if auth is not None:
            return auth
    stmt = select(OverworkAuthorization).where(
        col(OverworkAuthorization.org_id) == summary.org_id,
        col(OverworkAuthorization.employee_id) == summary.employee_id,
        col(OverworkAuthorization.date) == summary.date,
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def _request_authorization(
    session: AsyncSession,
    summary: WorkdaySummary,
    candidate: OvertimeCandidate | None,
    minutes: int,
    now: datetime,
) -> OverworkAuthorization:
    auth = await _find_authorization(session, summary, candidate)
    if auth is None:
        auth = OverworkAuthorization(
            org_id=summary.org_id,
            employee_id=summary.employee_id,
            date=summary.date,
            minutes=minutes,
            requested_at=now,
        )
        session.add(auth)
        await session.flush()
        return auth
    if auth.status == AuthorizationStatus.CANCELLED:
        auth.status = AuthorizationStatus.PENDING
        auth.requested_at = now
        auth.resolved_at = None
        auth.resolved_by = None
    if auth.status == AuthorizationStatus.PENDING:
        auth.minutes = minutes
    return auth


async def _cancel_authorization(
    session: AsyncSession, summary: WorkdaySummary, candidate: OvertimeCandidate | None, now: datetime
) -> None:
    if candidate is None or candidate.overwork_authorization_id is None:
        return
    auth = await session.get(OverworkAuthorization, candidate.overwork_authorization_id)
    if auth is not None and auth.status == AuthorizationStatus.PENDING:
        auth.status = AuthorizationStatus.CANCELLED
        auth.resolved_at = now
    await _resolve_pending_alert(session, summary, now)


# ---------------------------------------------------------------------------
# Per-summary processing
# ---------------------------------------------------------------------------


def _same_values(candidate: OvertimeCandidate, computed: CandidateComputation, summary: WorkdaySummary) -> bool:
    return (
        candidate.workday_summary_id == summary.id
        and candidate.worked_minutes == summary.worked_minutes
        and candidate.expected_minutes == computed.expected_minutes
        and candidate.deviation_minutes == computed.deviation_minutes
        and candidate.candidate_minutes == computed.candidate_minutes
        and candidate.candidate_type == computed.candidate_type
        and candidate.requires_approval == computed.requires_approval
        and candidate.status == computed.status
    )


async def _process_summary(
    session: AsyncSession,
    summary: WorkdaySummary,
    policy: OvertimePolicy,
    schedule_service: ScheduleService,
    now: datetime,
) -> str:
    """Upsert the candidate for one summary. Returns created, updated, unchanged or skipped."""
    stmt = select(OvertimeCandidate).where(
        col(OvertimeCandidate.org_id) == summary.org_id,
        col(OvertimeCandidate.employee_id) == summary.employee_id,
        col(OvertimeCandidate.date) == summary.date,
    )
    candidate = (await session.execute(stmt)).scalar_one_or_none()
    if candidate is not None and candidate.status in DECIDED_CANDIDATE_STATUSES:
        return "skipped"

    if summary.status == WorkdayStatus.MISSING_CLOCK_OUT:
        await _upsert_alert(
            session,
            summary,
            AlertType.MISSING_CLOCK_OUT,
            "Workday has a clock-in without a matching clock-out",
            None,
            reactivate=False,
        )

    scheduled = await schedule_service.get_scheduled_day(summary.org_id, summary.employee_id, summary.date)
    computed = compute_candidate(summary, scheduled, policy)

    if candidate is not None and _same_values(candidate, computed, summary):
        return "unchanged"

    if computed.status == CandidateStatus.PENDING:
        auth = await _request_authorization(session, summary, candidate, computed.candidate_minutes, now)
        await _upsert_alert(
            session,
            summary,
            AlertType.OVERTIME_PENDING_APPROVAL,
            f"{computed.candidate_minutes} minutes of overtime awaiting approval",
            computed.candidate_minutes,
            reactivate=True,
        )
        authorization_id = auth.id
    else:
        await _cancel_authorization(session, summary, candidate, now)
        authorization_id = candidate.overwork_authorization_id if candidate is not None else None

    outcome = "updated"
    if candidate is None:
        candidate = OvertimeCandidate(
            org_id=summary.org_id,
            employee_id=summary.employee_id,
            date=summary.date,
            workday_summary_id=summary.id,
        )
        session.add(candidate)
        outcome = "created"

    candidate.workday_summary_id = summary.id
    candidate.worked_minutes = summary.worked_minutes
    candidate.expected_minutes = computed.expected_minutes
    candidate.deviation_minutes = computed.deviation_minutes
    candidate.candidate_minutes = computed.candidate_minutes
    candidate.candidate_type = computed.candidate_type
    candidate.requires_approval = computed.requires_approval
    candidate.status = computed.status
    candidate.overwork_authorization_id = authorization_id
    candidate.flags = computed.flags
    candidate.last_calculated_at = now
    candidate.resolved_at = now if computed.status == CandidateStatus.APPROVED else None
    await session.flush()
    return outcome


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def run_workday_sweep(
    session: AsyncSession,
    org_id: uuid.UUID,
    lookback_days: int,
    *,
    now: datetime | None = None,
) -> SweepRunResult:
    """Recompute overtime candidates for ``[today - lookback_days, today]`` in the tenant's zone.

    Each summary is processed in its own savepoint; a failure is logged and
    counted and the sweep moves on to the next employee.
    """
    current = now or datetime.now(UTC)
    result = SweepRunResult(org_id=org_id)

    org = await session.get(Organization, org_id)
    if org is None:
        logger.warning("Workday sweep skipped: organization %s not found", org_id)
        return result

    tz = resolve_time_zone(org.timezone)
    lookback = clamp_lookback_days(lookback_days)
    result.end_date = local_today(current, tz)
    result.start_date = result.end_date - timedelta(days=lookback)

    policy = overtime_policy_for(await session.get(OrganizationOvertimeSettings, org_id))
    schedule_service = get_schedule_service()

    stmt = (
        select(WorkdaySummary)
        .where(
            col(WorkdaySummary.org_id) == org_id,
            col(WorkdaySummary.date) >= result.start_date,
            col(WorkdaySummary.date) <= result.end_date,
        )
        .order_by(col(WorkdaySummary.date), col(WorkdaySummary.employee_id))
    )
    summaries = (await session.execute(stmt)).scalars().all()

    for summary in summaries:
        employee_id = summary.employee_id
        day = summary.date
        result.processed += 1
        try:
            async with session.begin_nested():
                outcome = await _process_summary(session, summary, policy, schedule_service, current)
            setattr(result, outcome, getattr(result, outcome) + 1)
        except Exception:
            logger.exception(
                "Workday sweep failed for org=%s employee=%s date=%s",
                org_id,
                employee_id,
                day,
            )
            result.errors += 1
            result.failed_employee_ids.append(employee_id)

    await session.commit()
    logger.info(
        "Workday sweep for org=%s %s..%s: processed=%d created=%d updated=%d unchanged=%d skipped=%d errors=%d",
        org_id,
        result.start_date,
        result.end_date,
        result.processed,
        result.created,
        result.updated,
        result.unchanged,
        result.skipped,
        result.errors,
    )
    return result
