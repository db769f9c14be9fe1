"""Tests for expiring stale overwork authorizations."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import pytest

from timebank.models import (
    Alert,
    AlertStatus,
    AlertType,
    AuthorizationStatus,
    CandidateStatus,
    Organization,
    OvertimeCandidate,
    OverworkAuthorization,
    WorkdaySummary,
)
from timebank.services.expiry import run_authorization_expiry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

# Monday 2025-01-20, 11:00 Madrid. Seven days back is local midnight of 2025-01-13.
NOW = datetime(2025, 1, 20, 10, 0, tzinfo=UTC)
CUTOFF = datetime(2025, 1, 12, 23, 0, tzinfo=UTC)


async def _pending(
    session: AsyncSession,
    org: Organization,
    requested_at: datetime,
    *,
    status: AuthorizationStatus = AuthorizationStatus.PENDING,
) -> tuple[OverworkAuthorization, OvertimeCandidate, Alert]:
    employee_id = uuid.uuid4()
    day = requested_at.date()
    auth = OverworkAuthorization(
        org_id=org.id, employee_id=employee_id, date=day, minutes=60, requested_at=requested_at, status=status
    )
    summary = WorkdaySummary(org_id=org.id, employee_id=employee_id, date=day, worked_minutes=540)
    session.add_all([auth, summary])
    await session.flush()
    candidate = OvertimeCandidate(
        org_id=org.id,
        employee_id=employee_id,
        date=day,
        workday_summary_id=summary.id,
        candidate_minutes=60,
        requires_approval=True,
        status=CandidateStatus.PENDING,
        overwork_authorization_id=auth.id,
    )
    alert = Alert(
        org_id=org.id,
        employee_id=employee_id,
        date=day,
        type=AlertType.OVERTIME_PENDING_APPROVAL,
        deviation_minutes=60,
    )
    session.add_all([candidate, alert])
    await session.commit()
    return auth, candidate, alert


async def test_expires_authorization_with_candidate_and_alert(db_session: AsyncSession, org: Organization) -> None:
    auth, candidate, alert = await _pending(db_session, org, datetime(2025, 1, 10, 9, 0, tzinfo=UTC))

    result = await run_authorization_expiry(db_session, org.id, 7, now=NOW)

    assert result.cutoff == CUTOFF
    assert (result.authorizations_expired, result.alerts_expired, result.candidates_expired) == (1, 1, 1)
    assert result.errors == 0
    assert auth.status == AuthorizationStatus.EXPIRED
    assert auth.resolved_at == NOW
    assert alert.status == AlertStatus.EXPIRED
    assert candidate.status == CandidateStatus.EXPIRED


async def test_cutoff_is_strict(db_session: AsyncSession, org: Organization) -> None:
    just_before, _, _ = await _pending(db_session, org, datetime(2025, 1, 12, 22, 59, tzinfo=UTC))
    at_cutoff, _, _ = await _pending(db_session, org, CUTOFF)

    result = await run_authorization_expiry(db_session, org.id, 7, now=NOW)

    assert result.authorizations_expired == 1
    assert just_before.status == AuthorizationStatus.EXPIRED
    assert at_cutoff.status == AuthorizationStatus.PENDING


async def test_rerun_expires_nothing(db_session: AsyncSession, org: Organization) -> None:
    await _pending(db_session, org, datetime(2025, 1, 2, 9, 0, tzinfo=UTC))

    first = await run_authorization_expiry(db_session, org.id, 7, now=NOW)
    second = await run_authorization_expiry(db_session, org.id, 7, now=NOW)

    assert first.authorizations_expired == 1
    assert (second.authorizations_expired, second.alerts_expired, second.candidates_expired) == (0, 0, 0)


async def test_decided_authorizations_are_untouched(db_session: AsyncSession, org: Organization) -> None:
    auth, _, _ = await _pending(
        db_session, org, datetime(2025, 1, 2, 9, 0, tzinfo=UTC), status=AuthorizationStatus.APPROVED
    )

    result = await run_authorization_expiry(db_session, org.id, 7, now=NOW)

    assert result.authorizations_expired == 0
    assert auth.status == AuthorizationStatus.APPROVED


async def test_other_orgs_are_untouched(db_session: AsyncSession, org: Organization) -> None:
    other = Organization(name="Other", timezone="Europe/Madrid")
    db_session.add(other)
    await db_session.commit()
    auth, _, _ = await _pending(db_session, other, datetime(2025, 1, 2, 9, 0, tzinfo=UTC))

    result = await run_authorization_expiry(db_session, org.id, 7, now=NOW)

    assert result.authorizations_expired == 0
    assert auth.status == AuthorizationStatus.PENDING


@pytest.mark.parametrize(
    ("expiry_days", "cutoff"),
    [
        (0, datetime(2025, 1, 18, 23, 0, tzinfo=UTC)),
        (1, datetime(2025, 1, 18, 23, 0, tzinfo=UTC)),
        # Clamped to 90 days; 2024-10-22 was still summer time in Madrid.
        (500, datetime(2024, 10, 21, 22, 0, tzinfo=UTC)),
    ],
)
async def test_expiry_days_are_clamped(
    db_session: AsyncSession, org: Organization, expiry_days: int, cutoff: datetime
) -> None:
    result = await run_authorization_expiry(db_session, org.id, expiry_days, now=NOW)
    assert result.cutoff == cutoff


async def test_unknown_org_is_a_noop(db_session: AsyncSession) -> None:
    result = await run_authorization_expiry(db_session, uuid.uuid4(), 7, now=NOW)
    assert result.cutoff is None
    assert result.authorizations_expired == 0


async def test_candidate_date_survives_expiry(db_session: AsyncSession, org: Organization) -> None:
    _, candidate, _ = await _pending(db_session, org, datetime(2025, 1, 6, 9, 0, tzinfo=UTC))

    await run_authorization_expiry(db_session, org.id, 7, now=NOW)

    assert candidate.date == date(2025, 1, 6)
    assert candidate.resolved_at == NOW
