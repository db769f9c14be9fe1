# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path

from timebank.db import SessionDep
from timebank.exceptions import ForbiddenError, NotFoundError
from timebank.models.organization import Organization
from timebank.schemas.auth import AuthContext


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default="employee"),
    x_org_id: uuid.UUID | None = Header(default=None),
) -> AuthContext:
    """Read the caller identity forwarded by the gateway.

    X-Org-Id is optional: platform admins edit the global scheduler settings
    without acting inside an organization.
    """
    return AuthContext(org_id=x_org_id, user_id=x_user_id, role=x_role.strip().lower())


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(auth: AuthDep) -> AuthContext:
    if not auth.is_admin:
        raise ForbiddenError("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def validate_org_scope(auth: AuthDep, org_id: uuid.UUID = Path()) -> AuthContext:
    """Reject callers whose X-Org-Id does not name the organization in the path."""
    if auth.org_id != org_id:
        raise ForbiddenError(f"Caller is not scoped to organization {org_id}")
    return auth


async def get_organization(session: SessionDep, org_id: uuid.UUID = Path()) -> Organization:
    org = await session.get(Organization, org_id)
    if org is None:
        raise NotFoundError(f"Organization {org_id} not found")
    return org


OrganizationDep = Annotated[Organization, Depends(get_organization)]
