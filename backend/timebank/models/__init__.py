from sqlmodel import SQLModel

from timebank.models.alert import Alert
from timebank.models.audit import AuditLog
from timebank.models.authorization import OverworkAuthorization
from timebank.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from timebank.models.candidate import OvertimeCandidate
from timebank.models.enums import (
    AlertStatus,
    AlertType,
    ApprovalMode,
    AuditAction,
    AuditEntityType,
    AuthorizationStatus,
    CandidateStatus,
    CandidateType,
    ClockEventType,
    JobState,
    MovementOrigin,
    MovementType,
    WorkdayStatus,
)
from timebank.models.global_settings import GlobalSchedulerSettings
from timebank.models.job import JobSchedule, QueueDefinition, ScheduledJob
from timebank.models.movement import TimeBankMovement
from timebank.models.organization import Organization, OrganizationOvertimeSettings
from timebank.models.workday import WorkdaySummary

__all__ = [
    "Alert",
    "AlertStatus",
    "AlertType",
    "ApprovalMode",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "AuthorizationStatus",
    "CandidateStatus",
    "CandidateType",
    "ClockEventType",
    "GlobalSchedulerSettings",
    "JobSchedule",
    "JobState",
    "MovementOrigin",
    "MovementType",
    "Organization",
    "OrganizationOvertimeSettings",
    "OvertimeCandidate",
    "OverworkAuthorization",
    "QueueDefinition",
    "SQLModel",
    "ScheduledJob",
    "TimeBankMovement",
    "TimestampMixin",
    "UpdatedAtMixin",
    "UUIDBase",
    "WorkdayStatus",
    "WorkdaySummary",
]
