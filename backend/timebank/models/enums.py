from __future__ import annotations

import enum


class WorkdayStatus(enum.StrEnum):
    """Data quality of an aggregated workday."""

    OK = "OK"
    MISSING_CLOCK_OUT = "MISSING_CLOCK_OUT"


class CandidateStatus(enum.StrEnum):
    """Lifecycle of an overtime candidate."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    SETTLED = "SETTLED"
    SKIPPED = "SKIPPED"


# Candidates in these states carry a human (or final) decision and are never recomputed.
DECIDED_CANDIDATE_STATUSES = frozenset(
    {
        CandidateStatus.APPROVED,
        CandidateStatus.REJECTED,
        CandidateStatus.EXPIRED,
        CandidateStatus.SETTLED,
    }
)


class CandidateType(enum.StrEnum):
    """Kind of deviation a candidate represents."""

    EXTRA = "EXTRA"
    DEFICIT = "DEFICIT"
    NON_WORKDAY = "NON_WORKDAY"


class ApprovalMode(enum.StrEnum):
    """Whether positive overtime needs a reviewer before reaching the time bank."""

    NONE = "NONE"
    POST = "POST"


class MovementType(enum.StrEnum):
    """Direction of a time-bank movement."""

    EXTRA = "EXTRA"
    DEFICIT = "DEFICIT"
    MANUAL = "MANUAL"


class MovementOrigin(enum.StrEnum):
    """What produced a time-bank movement."""

    AUTO_DAILY = "AUTO_DAILY"
    MANUAL = "MANUAL"


class AuthorizationStatus(enum.StrEnum):
    """State machine for overwork authorizations."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class AlertType(enum.StrEnum):
    """Reviewer-facing notices raised by the overtime jobs."""

    MISSING_CLOCK_OUT = "MISSING_CLOCK_OUT"
    OVERTIME_PENDING_APPROVAL = "OVERTIME_PENDING_APPROVAL"


class AlertStatus(enum.StrEnum):
    """Lifecycle of an alert."""

    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"
    EXPIRED = "EXPIRED"


class JobState(enum.StrEnum):
    """Queue-internal state of a scheduled job."""

    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class ClockEventType(enum.StrEnum):
    """Raw time-clock event kinds."""

    CLOCK_IN = "CLOCK_IN"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"
    CLOCK_OUT = "CLOCK_OUT"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    GLOBAL_SCHEDULER_SETTINGS = "GLOBAL_SCHEDULER_SETTINGS"
    ORGANIZATION_SETTINGS = "ORGANIZATION_SETTINGS"
    OVERWORK_AUTHORIZATION = "OVERWORK_AUTHORIZATION"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
