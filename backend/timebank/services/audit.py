from __future__ import annotations

from typing import TYPE_CHECKING, Any

from timebank.models.audit import AuditLog

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from timebank.models.enums import AuditAction, AuditEntityType

# Bookkeeping columns change on every write and would drown the actual diff.
_UNAUDITED_FIELDS = {"created_at", "updated_at"}


def audit_snapshot(model: SQLModel) -> dict[str, Any]:
    """JSON-safe copy of an audited row."""
    return model.model_dump(mode="json", exclude=_UNAUDITED_FIELDS)


async def write_audit_log(
    session: AsyncSession,
    *,
    org_id: uuid.UUID | None,
    actor_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID | str,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Add an audit entry to the caller's transaction. The caller commits."""
    entry = AuditLog(
        org_id=org_id,
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=str(entity_id),
        action=action.value,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry
