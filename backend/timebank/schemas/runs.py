# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field


class SweepTriggerRequest(BaseModel):
    """Manual workday sweep. Lookback defaults to the organization's effective value."""

    lookback_days: int | None = Field(default=None, ge=1, le=14)


class ReconcileTriggerRequest(BaseModel):
    """Manual weekly reconciliation of the week starting ``week_start``."""

    week_start: date


class ExpireTriggerRequest(BaseModel):
    """Manual authorization expiry. Days default to the global setting."""

    expiry_days: int | None = Field(default=None, ge=1, le=90)


class SweepRunResponse(BaseModel):
    processed: int
    created: int
    updated: int
    unchanged: int
    skipped: int
    errors: int


class ReconciliationRunResponse(BaseModel):
    processed: int
    settled: int
    already_applied: int
    skipped: int
    errors: int


class ExpiryRunResponse(BaseModel):
    authorizations_expired: int
    alerts_expired: int
    candidates_expired: int


class AuthorizationDecisionRequest(BaseModel):
    note: str | None = Field(default=None, max_length=1000)


class AuthorizationResponse(BaseModel):
    """An overwork authorization after a reviewer decision."""

    id: uuid.UUID
    org_id: uuid.UUID
    employee_id: uuid.UUID
    date: date
    minutes: int
    status: str
    requested_at: datetime
    resolved_at: datetime | None = None
    resolved_by: uuid.UUID | None = None
    note: str | None = None
