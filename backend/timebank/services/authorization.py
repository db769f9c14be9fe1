from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from timebank.exceptions import ConflictError, NotFoundError
from timebank.models.alert import Alert
from timebank.models.authorization import OverworkAuthorization
from timebank.models.candidate import OvertimeCandidate
from timebank.models.enums import (
    AlertStatus,
    AlertType,
    AuditAction,
    AuditEntityType,
    AuthorizationStatus,
    CandidateStatus,
)
from timebank.services.audit import audit_snapshot, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def decide_authorization(
    session: AsyncSession,
    org_id: uuid.UUID,
    authorization_id: uuid.UUID,
    approve: bool,
    actor_id: uuid.UUID,
    note: str | None = None,
) -> OverworkAuthorization:
    """Approve or reject a PENDING overwork authorization.

    The linked PENDING candidate follows the decision so that the next weekly
    reconciliation settles (or ignores) it, and the pending-approval alert is
    resolved.
    """
    auth = await session.get(OverworkAuthorization, authorization_id)
    if auth is None or auth.org_id != org_id:
        raise NotFoundError("Authorization not found")
    if auth.status != AuthorizationStatus.PENDING:
        raise ConflictError(f"Authorization is {auth.status}, only PENDING authorizations can be decided")

    now = datetime.now(UTC)
    before = audit_snapshot(auth)
    auth.status = AuthorizationStatus.APPROVED if approve else AuthorizationStatus.REJECTED
    auth.resolved_at = now
    auth.resolved_by = actor_id
    auth.note = note

    candidate_stmt = select(OvertimeCandidate).where(
        col(OvertimeCandidate.overwork_authorization_id) == auth.id,
        col(OvertimeCandidate.status) == CandidateStatus.PENDING,
    )
    for candidate in (await session.execute(candidate_stmt)).scalars().all():
        candidate.status = CandidateStatus.APPROVED if approve else CandidateStatus.REJECTED
        candidate.resolved_at = now

    alert_stmt = select(Alert).where(
        col(Alert.org_id) == auth.org_id,
        col(Alert.employee_id) == auth.employee_id,
        col(Alert.date) == auth.date,
        col(Alert.type) == AlertType.OVERTIME_PENDING_APPROVAL,
        col(Alert.status) == AlertStatus.ACTIVE,
    )
    for alert in (await session.execute(alert_stmt)).scalars().all():
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = now

    await write_audit_log(
        session,
        org_id=org_id,
        actor_id=actor_id,
        entity_type=AuditEntityType.OVERWORK_AUTHORIZATION,
        entity_id=auth.id,
        action=AuditAction.APPROVE if approve else AuditAction.REJECT,
        before_json=before,
        after_json=audit_snapshot(auth),
    )
    await session.commit()
    logger.info("Authorization %s %s by %s", auth.id, auth.status, actor_id)
    return auth
