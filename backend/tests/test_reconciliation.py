"""Tests for weekly reconciliation into the time bank."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select

from timebank.exceptions import InvalidJobPayloadError
from timebank.models import (
    Alert,
    AlertStatus,
    AlertType,
    AuthorizationStatus,
    CandidateStatus,
    CandidateType,
    ClockEventType,
    MovementOrigin,
    MovementType,
    OvertimeCandidate,
    OverworkAuthorization,
    TimeBankMovement,
    WorkdaySummary,
)
from timebank.schemas.settings import OvertimePolicy
from timebank.services import reconciliation
from timebank.services.authorization import decide_authorization
from timebank.services.reconciliation import (
    clamp_movement_minutes,
    get_employee_balance_minutes,
    parse_week_start,
    run_weekly_reconciliation,
)
from timebank.services.sweep import run_workday_sweep
from timebank.services.workday import ClockEvent, record_workday_summary

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from timebank.models import Organization

WEEK_START = date(2025, 1, 6)
NOW = datetime(2025, 1, 13, 3, 5, tzinfo=UTC)


async def _approved(
    session: AsyncSession,
    org: Organization,
    day: date,
    minutes: int,
    *,
    employee_id: uuid.UUID | None = None,
    candidate_type: CandidateType = CandidateType.EXTRA,
) -> OvertimeCandidate:
    employee = employee_id or uuid.uuid4()
    summary = WorkdaySummary(org_id=org.id, employee_id=employee, date=day, worked_minutes=480 + minutes)
    session.add(summary)
    await session.flush()
    candidate = OvertimeCandidate(
        org_id=org.id,
        employee_id=employee,
        date=day,
        workday_summary_id=summary.id,
        worked_minutes=480 + minutes,
        expected_minutes=480,
        deviation_minutes=minutes,
        candidate_minutes=minutes,
        candidate_type=candidate_type,
        status=CandidateStatus.APPROVED,
    )
    session.add(candidate)
    await session.commit()
    return candidate


async def _movements(session: AsyncSession) -> list[TimeBankMovement]:
    return list((await session.execute(select(TimeBankMovement))).scalars().all())


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("minutes", "balance", "expected"),
    [
        (60, 0, (60, False)),
        (60, 4790, (10, True)),
        (60, 4800, (0, True)),
        (60, 5000, (0, True)),
        (-100, 0, (-100, False)),
        (-100, -400, (-80, True)),
        (-100, -480, (0, True)),
        (0, 0, (0, False)),
    ],
)
def test_clamp_movement_minutes(minutes: int, balance: int, expected: tuple[int, bool]) -> None:
    assert clamp_movement_minutes(minutes, balance, OvertimePolicy()) == expected


def test_parse_week_start() -> None:
    assert parse_week_start("2025-01-06") == WEEK_START
    assert parse_week_start(WEEK_START) == WEEK_START


@pytest.mark.parametrize("value", ["next monday", "2025-02-30", ""])
def test_parse_week_start_rejects_garbage(value: str) -> None:
    with pytest.raises(InvalidJobPayloadError):
        parse_week_start(value)


async def test_run_rejects_invalid_week_start(db_session: AsyncSession, org: Organization) -> None:
    with pytest.raises(InvalidJobPayloadError):
        await run_weekly_reconciliation(db_session, org.id, "06/01/2025", now=NOW)


# ---------------------------------------------------------------------------
# run_weekly_reconciliation
# ---------------------------------------------------------------------------


async def test_settles_approved_candidate(db_session: AsyncSession, org: Organization) -> None:
    candidate = await _approved(db_session, org, date(2025, 1, 7), 60)

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert (result.processed, result.settled, result.errors) == (1, 1, 0)
    (movement,) = await _movements(db_session)
    assert movement.minutes == 60
    assert movement.movement_type == MovementType.EXTRA
    assert movement.origin == MovementOrigin.AUTO_DAILY
    assert movement.workday_id == candidate.workday_summary_id
    assert movement.metadata_json == {"candidate_ids": [str(candidate.id)], "candidate_type": "EXTRA"}
    assert candidate.status == CandidateStatus.SETTLED
    assert candidate.time_bank_movement_id == movement.id


async def test_deficit_creates_negative_movement(db_session: AsyncSession, org: Organization) -> None:
    candidate = await _approved(db_session, org, WEEK_START, -60, candidate_type=CandidateType.DEFICIT)

    await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    (movement,) = await _movements(db_session)
    assert movement.minutes == -60
    assert movement.movement_type == MovementType.DEFICIT
    assert await get_employee_balance_minutes(db_session, org.id, candidate.employee_id) == -60


async def test_running_twice_creates_one_movement(db_session: AsyncSession, org: Organization) -> None:
    await _approved(db_session, org, date(2025, 1, 8), 30)

    first = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)
    second = await run_weekly_reconciliation(db_session, org.id, "2025-01-06", now=NOW)

    assert first.settled == 1
    assert second.processed == 0
    assert len(await _movements(db_session)) == 1


async def test_existing_movement_is_not_duplicated(db_session: AsyncSession, org: Organization) -> None:
    candidate = await _approved(db_session, org, date(2025, 1, 8), 30)
    earlier = TimeBankMovement(
        org_id=org.id,
        employee_id=candidate.employee_id,
        workday_id=candidate.workday_summary_id,
        date=candidate.date,
        minutes=30,
        movement_type=MovementType.EXTRA,
        origin=MovementOrigin.AUTO_DAILY,
    )
    db_session.add(earlier)
    await db_session.commit()

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert result.already_applied == 1
    assert len(await _movements(db_session)) == 1
    assert candidate.status == CandidateStatus.SETTLED
    assert candidate.time_bank_movement_id == earlier.id


async def test_concurrent_insert_is_treated_as_already_applied(
    db_session: AsyncSession, org: Organization, monkeypatch: pytest.MonkeyPatch
) -> None:
    candidate = await _approved(db_session, org, date(2025, 1, 8), 30)
    winner = TimeBankMovement(
        org_id=org.id,
        employee_id=candidate.employee_id,
        workday_id=candidate.workday_summary_id,
        date=candidate.date,
        minutes=30,
        movement_type=MovementType.EXTRA,
        origin=MovementOrigin.AUTO_DAILY,
    )
    db_session.add(winner)
    await db_session.commit()
    winner_id = winner.id

    # The first lookup misses the row, as if another worker inserted it right after.
    original = reconciliation._find_auto_movement
    lookups: list[uuid.UUID] = []

    async def _racing_lookup(session: AsyncSession, workday_id: uuid.UUID) -> TimeBankMovement | None:
        lookups.append(workday_id)
        if len(lookups) == 1:
            return None
        return await original(session, workday_id)

    monkeypatch.setattr(reconciliation, "_find_auto_movement", _racing_lookup)

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert (result.already_applied, result.settled, result.errors) == (1, 0, 0)
    assert len(lookups) == 2
    movements = await _movements(db_session)
    assert [m.id for m in movements] == [winner_id]
    stored = (
        await db_session.execute(select(OvertimeCandidate).execution_options(populate_existing=True))
    ).scalar_one()
    assert stored.status == CandidateStatus.SETTLED
    assert stored.time_bank_movement_id == winner_id


async def test_zero_minutes_are_skipped(db_session: AsyncSession, org: Organization) -> None:
    candidate = await _approved(db_session, org, date(2025, 1, 9), 0)

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert result.skipped == 1
    assert await _movements(db_session) == []
    assert candidate.status == CandidateStatus.SETTLED
    assert candidate.time_bank_movement_id is None


async def test_clamped_movement_records_limit(db_session: AsyncSession, org: Organization) -> None:
    employee_id = uuid.uuid4()
    db_session.add(
        TimeBankMovement(
            org_id=org.id,
            employee_id=employee_id,
            date=date(2025, 1, 1),
            minutes=4790,
            movement_type=MovementType.MANUAL,
            origin=MovementOrigin.MANUAL,
        )
    )
    await db_session.commit()
    candidate = await _approved(db_session, org, date(2025, 1, 7), 60, employee_id=employee_id)

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert result.settled == 1
    stmt = select(TimeBankMovement).where(TimeBankMovement.origin == MovementOrigin.AUTO_DAILY)
    movement = (await db_session.execute(stmt)).scalar_one()
    assert movement.minutes == 10
    assert movement.description == "Automatic daily difference (clamped by limit)"
    assert movement.metadata_json is not None
    assert movement.metadata_json["clamped_by_limit"] is True
    assert movement.metadata_json["attempted_minutes"] == 60
    assert movement.metadata_json["balance_before_minutes"] == 4790
    assert candidate.status == CandidateStatus.SETTLED
    assert await get_employee_balance_minutes(db_session, org.id, employee_id) == 4800


async def test_full_bank_skips_movement(db_session: AsyncSession, org: Organization) -> None:
    employee_id = uuid.uuid4()
    db_session.add(
        TimeBankMovement(
            org_id=org.id,
            employee_id=employee_id,
            date=date(2025, 1, 1),
            minutes=4800,
            movement_type=MovementType.MANUAL,
            origin=MovementOrigin.MANUAL,
        )
    )
    await db_session.commit()
    candidate = await _approved(db_session, org, date(2025, 1, 7), 60, employee_id=employee_id)

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert result.skipped == 1
    assert candidate.status == CandidateStatus.SETTLED
    assert candidate.time_bank_movement_id is None
    assert await get_employee_balance_minutes(db_session, org.id, employee_id) == 4800


async def test_only_candidates_of_the_week_are_settled(db_session: AsyncSession, org: Organization) -> None:
    before = await _approved(db_session, org, date(2025, 1, 5), 30)
    sunday = await _approved(db_session, org, date(2025, 1, 12), 30)
    after = await _approved(db_session, org, date(2025, 1, 13), 30)

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert result.settled == 1
    assert sunday.status == CandidateStatus.SETTLED
    assert before.status == CandidateStatus.APPROVED
    assert after.status == CandidateStatus.APPROVED


async def test_pending_candidates_are_not_settled(db_session: AsyncSession, org: Organization) -> None:
    candidate = await _approved(db_session, org, date(2025, 1, 7), 60)
    candidate.status = CandidateStatus.PENDING
    await db_session.commit()

    result = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert result.processed == 0
    assert await _movements(db_session) == []


async def test_unknown_org_is_a_noop(db_session: AsyncSession) -> None:
    result = await run_weekly_reconciliation(db_session, uuid.uuid4(), WEEK_START, now=NOW)
    assert result.processed == 0
    assert result.week_start == WEEK_START


# ---------------------------------------------------------------------------
# From clock events to the time bank
# ---------------------------------------------------------------------------


def _event(kind: ClockEventType, at: datetime) -> ClockEvent:
    return ClockEvent(type=kind, occurred_at=at)


async def test_regular_day_with_break_leaves_bank_untouched(db_session: AsyncSession, org: Organization) -> None:
    employee_id = uuid.uuid4()
    # 09:00-17:30 Madrid with a 30-minute lunch.
    events = [
        _event(ClockEventType.CLOCK_IN, datetime(2025, 1, 7, 8, 0, tzinfo=UTC)),
        _event(ClockEventType.BREAK_START, datetime(2025, 1, 7, 12, 0, tzinfo=UTC)),
        _event(ClockEventType.BREAK_END, datetime(2025, 1, 7, 12, 30, tzinfo=UTC)),
        _event(ClockEventType.CLOCK_OUT, datetime(2025, 1, 7, 16, 30, tzinfo=UTC)),
    ]
    summary = await record_workday_summary(db_session, org.id, employee_id, date(2025, 1, 7), events)
    assert (summary.worked_minutes, summary.break_minutes) == (480, 30)

    await run_workday_sweep(db_session, org.id, 2, now=datetime(2025, 1, 8, 3, 5, tzinfo=UTC))
    await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert await _movements(db_session) == []


async def test_night_shift_is_banked_once_on_its_start_day(db_session: AsyncSession, org: Organization) -> None:
    employee_id = uuid.uuid4()
    # 22:00 Monday to 02:00 Tuesday, Madrid time.
    events = [
        _event(ClockEventType.CLOCK_IN, datetime(2025, 1, 6, 21, 0, tzinfo=UTC)),
        _event(ClockEventType.CLOCK_OUT, datetime(2025, 1, 7, 1, 0, tzinfo=UTC)),
    ]
    summary = await record_workday_summary(db_session, org.id, employee_id, WEEK_START, events)
    assert summary.worked_minutes == 240

    await run_workday_sweep(db_session, org.id, 2, now=datetime(2025, 1, 7, 3, 5, tzinfo=UTC))
    first = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)
    second = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)

    assert (first.settled, second.settled) == (1, 0)
    (movement,) = await _movements(db_session)
    assert movement.minutes == -240
    assert movement.date == WEEK_START
    assert movement.movement_type == MovementType.DEFICIT


async def test_sweep_keeps_approval_dropped_by_full_bank(db_session: AsyncSession, org: Organization) -> None:
    employee_id = uuid.uuid4()
    db_session.add_all(
        [
            TimeBankMovement(
                org_id=org.id,
                employee_id=employee_id,
                date=date(2025, 1, 1),
                minutes=4800,
                movement_type=MovementType.MANUAL,
                origin=MovementOrigin.MANUAL,
            ),
            WorkdaySummary(org_id=org.id, employee_id=employee_id, date=WEEK_START, worked_minutes=540),
        ]
    )
    await db_session.commit()
    sweep_at = datetime(2025, 1, 8, 3, 5, tzinfo=UTC)
    await run_workday_sweep(db_session, org.id, 2, now=sweep_at)
    candidate = (await db_session.execute(select(OvertimeCandidate))).scalar_one()
    assert candidate.status == CandidateStatus.PENDING
    assert candidate.overwork_authorization_id is not None
    await decide_authorization(db_session, org.id, candidate.overwork_authorization_id, True, uuid.uuid4())

    reconciled = await run_weekly_reconciliation(db_session, org.id, WEEK_START, now=NOW)
    swept = await run_workday_sweep(db_session, org.id, 2, now=sweep_at)

    assert reconciled.skipped == 1
    assert (swept.skipped, swept.updated, swept.created) == (1, 0, 0)
    assert candidate.status == CandidateStatus.SETTLED
    assert candidate.candidate_minutes == 60
    assert candidate.time_bank_movement_id is None
    auth = await db_session.get(OverworkAuthorization, candidate.overwork_authorization_id)
    assert auth is not None
    assert auth.status == AuthorizationStatus.APPROVED
    alert_stmt = select(Alert).where(Alert.type == AlertType.OVERTIME_PENDING_APPROVAL)
    alert = (await db_session.execute(alert_stmt)).scalar_one()
    assert alert.status == AlertStatus.RESOLVED
    assert await get_employee_balance_minutes(db_session, org.id, employee_id) == 4800
