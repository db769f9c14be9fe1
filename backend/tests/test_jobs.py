"""Tests for job payload validation."""

from __future__ import annotations

import uuid
from datetime import date

import pytest

from timebank.exceptions import InvalidJobPayloadError
from timebank.schemas.jobs import (
    OVERTIME_AUTHORIZATION_EXPIRE_JOB,
    OVERTIME_DISPATCH_JOB,
    OVERTIME_WEEKLY_RECONCILIATION_JOB,
    OVERTIME_WORKDAY_SWEEP_JOB,
    AuthorizationExpiryPayload,
    DispatchPayload,
    WeeklyReconciliationPayload,
    WorkdaySweepPayload,
    parse_job_payload,
)

ORG_ID = uuid.uuid4()


def test_dispatch_payload_accepts_empty() -> None:
    assert isinstance(parse_job_payload(OVERTIME_DISPATCH_JOB, {}), DispatchPayload)
    assert isinstance(parse_job_payload(OVERTIME_DISPATCH_JOB, None), DispatchPayload)


def test_sweep_payload() -> None:
    payload = parse_job_payload(OVERTIME_WORKDAY_SWEEP_JOB, {"org_id": str(ORG_ID), "lookback_days": 2})
    assert isinstance(payload, WorkdaySweepPayload)
    assert payload.org_id == ORG_ID
    assert payload.lookback_days == 2


def test_reconciliation_payload_parses_week_start() -> None:
    payload = parse_job_payload(
        OVERTIME_WEEKLY_RECONCILIATION_JOB, {"org_id": str(ORG_ID), "week_start": "2025-01-06"}
    )
    assert isinstance(payload, WeeklyReconciliationPayload)
    assert payload.week_start == date(2025, 1, 6)


def test_expiry_payload() -> None:
    payload = parse_job_payload(OVERTIME_AUTHORIZATION_EXPIRE_JOB, {"org_id": str(ORG_ID), "expiry_days": 7})
    assert isinstance(payload, AuthorizationExpiryPayload)
    assert payload.expiry_days == 7


def test_enqueued_payload_round_trips_through_json() -> None:
    sent = WorkdaySweepPayload(org_id=ORG_ID, lookback_days=3).model_dump(mode="json")
    assert sent["kind"] == OVERTIME_WORKDAY_SWEEP_JOB
    assert parse_job_payload(OVERTIME_WORKDAY_SWEEP_JOB, sent) == WorkdaySweepPayload(org_id=ORG_ID, lookback_days=3)


@pytest.mark.parametrize(
    ("name", "data"),
    [
        (OVERTIME_WORKDAY_SWEEP_JOB, {"org_id": str(ORG_ID), "lookback_days": 0}),
        (OVERTIME_WORKDAY_SWEEP_JOB, {"org_id": str(ORG_ID), "lookback_days": 15}),
        (OVERTIME_WORKDAY_SWEEP_JOB, {"lookback_days": 2}),
        (OVERTIME_WORKDAY_SWEEP_JOB, {"org_id": "not-a-uuid", "lookback_days": 2}),
        (OVERTIME_WEEKLY_RECONCILIATION_JOB, {"org_id": str(ORG_ID), "week_start": "2025-13-01"}),
        (OVERTIME_WEEKLY_RECONCILIATION_JOB, {"org_id": str(ORG_ID)}),
        (OVERTIME_AUTHORIZATION_EXPIRE_JOB, {"org_id": str(ORG_ID), "expiry_days": 91}),
        (OVERTIME_DISPATCH_JOB, {"unexpected": True}),
    ],
)
def test_malformed_payload_rejected(name: str, data: dict) -> None:
    with pytest.raises(InvalidJobPayloadError):
        parse_job_payload(name, data)


def test_payload_for_other_queue_rejected() -> None:
    data = {"kind": OVERTIME_WORKDAY_SWEEP_JOB, "org_id": str(ORG_ID), "lookback_days": 2}
    with pytest.raises(InvalidJobPayloadError, match="delivered to queue"):
        parse_job_payload(OVERTIME_AUTHORIZATION_EXPIRE_JOB, data)


def test_unknown_queue_rejected() -> None:
    with pytest.raises(InvalidJobPayloadError):
        parse_job_payload("overtime.unknown", {})
