from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from timebank.models.alert import Alert
from timebank.models.authorization import OverworkAuthorization
from timebank.models.candidate import OvertimeCandidate
from timebank.models.enums import AlertStatus, AlertType, AuthorizationStatus, CandidateStatus
from timebank.models.organization import Organization
from timebank.services.scheduler_settings import clamp_expiry_days
from timebank.services.window import local_day_start_utc, local_today, resolve_time_zone

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class ExpiryRunResult:
    """Summary of one authorization expiry run."""

    org_id: uuid.UUID
    cutoff: datetime | None = None
    authorizations_expired: int = 0
    alerts_expired: int = 0
    candidates_expired: int = 0
    errors: int = 0


async def _expire_one(session: AsyncSession, auth: OverworkAuthorization, now: datetime) -> tuple[int, int]:
    auth.status = AuthorizationStatus.EXPIRED
    auth.resolved_at = now

    alert_stmt = select(Alert).where(
        col(Alert.org_id) == auth.org_id,
        col(Alert.employee_id) == auth.employee_id,
        col(Alert.date) == auth.date,
        col(Alert.type) == AlertType.OVERTIME_PENDING_APPROVAL,
        col(Alert.status) == AlertStatus.ACTIVE,
    )
    alerts = (await session.execute(alert_stmt)).scalars().all()
    for alert in alerts:
        alert.status = AlertStatus.EXPIRED
        alert.resolved_at = now

    candidate_stmt = select(OvertimeCandidate).where(
        col(OvertimeCandidate.overwork_authorization_id) == auth.id,
        col(OvertimeCandidate.status) == CandidateStatus.PENDING,
    )
    candidates = (await session.execute(candidate_stmt)).scalars().all()
    for candidate in candidates:
        candidate.status = CandidateStatus.EXPIRED
        candidate.resolved_at = now

    await session.flush()
    return len(alerts), len(candidates)


async def run_authorization_expiry(
    session: AsyncSession,
    org_id: uuid.UUID,
    expiry_days: int,
    *,
    now: datetime | None = None,
) -> ExpiryRunResult:
    """Expire PENDING authorizations requested before local midnight ``expiry_days`` days ago."""
    current = now or datetime.now(UTC)
    result = ExpiryRunResult(org_id=org_id)

    org = await session.get(Organization, org_id)
    if org is None:
        logger.warning("Authorization expiry skipped: organization %s not found", org_id)
        return result

    tz = resolve_time_zone(org.timezone)
    days = clamp_expiry_days(expiry_days)
    result.cutoff = local_day_start_utc(local_today(current, tz) - timedelta(days=days), tz)

    stmt = select(OverworkAuthorization).where(
        col(OverworkAuthorization.org_id) == org_id,
        col(OverworkAuthorization.status) == AuthorizationStatus.PENDING,
        col(OverworkAuthorization.requested_at) < result.cutoff,
    )
    pending = (await session.execute(stmt)).scalars().all()

    for auth in pending:
        auth_id = auth.id
        try:
            async with session.begin_nested():
                alerts, candidates = await _expire_one(session, auth, current)
            result.authorizations_expired += 1
            result.alerts_expired += alerts
            result.candidates_expired += candidates
        except Exception:
            logger.exception("Authorization expiry failed for org=%s authorization=%s", org_id, auth_id)
            result.errors += 1

    await session.commit()
    if result.authorizations_expired:
        logger.info(
            "Authorization expiry for org=%s cutoff=%s: authorizations=%d alerts=%d candidates=%d",
            org_id,
            result.cutoff.isoformat(),
            result.authorizations_expired,
            result.alerts_expired,
            result.candidates_expired,
        )
    return result
