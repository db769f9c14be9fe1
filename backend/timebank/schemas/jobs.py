# ruff: noqa: TC003
"""Job names and their payload schemas.

Payloads are a tagged union keyed by ``kind``, which always equals the queue
name the job was sent to. Handlers only ever see validated payload objects.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from timebank.exceptions import InvalidJobPayloadError

OVERTIME_DISPATCH_JOB = "overtime.dispatch"
OVERTIME_WORKDAY_SWEEP_JOB = "overtime.workday.sweep"
OVERTIME_WEEKLY_RECONCILIATION_JOB = "overtime.weekly.reconciliation"
OVERTIME_AUTHORIZATION_EXPIRE_JOB = "overtime.authorization.expire"


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class DispatchPayload(_Payload):
    """Scheduler tick. Carries no data; the dispatcher reads settings itself."""

    kind: Literal["overtime.dispatch"] = "overtime.dispatch"


class WorkdaySweepPayload(_Payload):
    """Recompute overtime candidates for the last ``lookback_days`` local days."""

    kind: Literal["overtime.workday.sweep"] = "overtime.workday.sweep"
    org_id: uuid.UUID
    lookback_days: int = Field(ge=1, le=14)


class WeeklyReconciliationPayload(_Payload):
    """Apply approved candidates of the week starting ``week_start`` to the time bank."""

    kind: Literal["overtime.weekly.reconciliation"] = "overtime.weekly.reconciliation"
    org_id: uuid.UUID
    week_start: date


class AuthorizationExpiryPayload(_Payload):
    """Expire overwork authorizations left pending for ``expiry_days``."""

    kind: Literal["overtime.authorization.expire"] = "overtime.authorization.expire"
    org_id: uuid.UUID
    expiry_days: int = Field(ge=1, le=90)


JobPayload = Annotated[
    DispatchPayload | WorkdaySweepPayload | WeeklyReconciliationPayload | AuthorizationExpiryPayload,
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter[JobPayload] = TypeAdapter(JobPayload)


def parse_job_payload(name: str, data: dict[str, Any] | None) -> JobPayload:
    """Validate a raw queue payload for the queue ``name``.

    Raises InvalidJobPayloadError when the payload is malformed or tagged for
    a different queue.
    """
    raw = dict(data or {})
    raw.setdefault("kind", name)
    if raw["kind"] != name:
        msg = f"Payload tagged {raw['kind']!r} was delivered to queue {name!r}"
        raise InvalidJobPayloadError(msg)
    try:
        return _payload_adapter.validate_python(raw)
    except ValidationError as exc:
        msg = f"Invalid payload for {name}: {exc.errors(include_url=False)}"
        raise InvalidJobPayloadError(msg) from exc
