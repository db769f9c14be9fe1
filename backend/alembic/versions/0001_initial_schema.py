"""initial time bank schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _tz() -> sa.DateTime:
    return sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "organization",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_organization_active", "organization", ["active"])

    op.create_table(
        "organization_overtime_settings",
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("weekly_reconciliation_enabled", sa.Boolean(), nullable=True),
        sa.Column("reconciliation_weekday", sa.Integer(), nullable=True),
        sa.Column("reconciliation_hour", sa.Integer(), nullable=True),
        sa.Column("reconciliation_window_minutes", sa.Integer(), nullable=True),
        sa.Column("sweep_lookback_days", sa.Integer(), nullable=True),
        sa.Column("approval_mode", sa.String(length=50), nullable=True),
        sa.Column("tolerance_minutes", sa.Integer(), nullable=True),
        sa.Column("rounding_increment_minutes", sa.Integer(), nullable=True),
        sa.Column("deficit_grace_minutes", sa.Integer(), nullable=True),
        sa.Column("max_positive_minutes", sa.Integer(), nullable=True),
        sa.Column("max_negative_minutes", sa.Integer(), nullable=True),
        sa.Column("updated_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organization.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("org_id"),
    )

    op.create_table(
        "global_scheduler_settings",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("reconciliation_weekday", sa.Integer(), nullable=False),
        sa.Column("reconciliation_hour", sa.Integer(), nullable=False),
        sa.Column("reconciliation_window_minutes", sa.Integer(), nullable=False),
        sa.Column("dispatch_interval_minutes", sa.Integer(), nullable=False),
        sa.Column("daily_sweep_hour", sa.Integer(), nullable=False),
        sa.Column("daily_sweep_window_minutes", sa.Integer(), nullable=False),
        sa.Column("sweep_lookback_days", sa.Integer(), nullable=False),
        sa.Column("authorization_expiry_days", sa.Integer(), nullable=False),
        sa.Column("updated_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "workday_summary",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("worked_minutes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("break_minutes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("expected_minutes", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=50), server_default="OK", nullable=False),
        sa.Column("first_clock_in", _tz(), nullable=True),
        sa.Column("last_clock_out", _tz(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organization.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "employee_id", "date", name="uq_workday_org_employee_date"),
    )
    op.create_index("ix_workday_summary_employee_id", "workday_summary", ["employee_id"])
    op.create_index("ix_workday_org_date", "workday_summary", ["org_id", "date"])

    op.create_table(
        "overwork_authorization",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="PENDING", nullable=False),
        sa.Column("requested_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column("resolved_at", _tz(), nullable=True),
        sa.Column("resolved_by", sa.Uuid(), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organization.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "employee_id", "date", name="uq_authorization_org_employee_date"),
    )
    op.create_index("ix_overwork_authorization_employee_id", "overwork_authorization", ["employee_id"])
    op.create_index("ix_authorization_org_status", "overwork_authorization", ["org_id", "status"])

    op.create_table(
        "overtime_candidate",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("workday_summary_id", sa.Uuid(), nullable=False),
        sa.Column("worked_minutes", sa.Integer(), nullable=False),
        sa.Column("expected_minutes", sa.Integer(), nullable=True),
        sa.Column("deviation_minutes", sa.Integer(), nullable=False),
        sa.Column("candidate_minutes", sa.Integer(), nullable=False),
        sa.Column("candidate_type", sa.String(length=50), nullable=False),
        sa.Column("requires_approval", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="PENDING", nullable=False),
        sa.Column("overwork_authorization_id", sa.Uuid(), nullable=True),
        sa.Column("time_bank_movement_id", sa.Uuid(), nullable=True),
        sa.Column("flags", sa.JSON(), nullable=True),
        sa.Column("last_calculated_at", _tz(), nullable=True),
        sa.Column("resolved_at", _tz(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organization.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["workday_summary_id"], ["workday_summary.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "employee_id", "date", name="uq_candidate_org_employee_date"),
    )
    op.create_index("ix_overtime_candidate_employee_id", "overtime_candidate", ["employee_id"])
    op.create_index("ix_overtime_candidate_workday_summary_id", "overtime_candidate", ["workday_summary_id"])
    op.create_index(
        "ix_overtime_candidate_overwork_authorization_id", "overtime_candidate", ["overwork_authorization_id"]
    )
    op.create_index("ix_candidate_org_status_date", "overtime_candidate", ["org_id", "status", "date"])

    op.create_table(
        "time_bank_movement",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("workday_id", sa.Uuid(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("minutes", sa.Integer(), nullable=False),
        sa.Column("movement_type", sa.String(length=50), nullable=False),
        sa.Column("origin", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organization.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["workday_id"], ["workday_summary.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workday_id", "origin", name="uq_movement_workday_origin"),
    )
    op.create_index("ix_movement_org_employee", "time_bank_movement", ["org_id", "employee_id"])

    op.create_table(
        "alert",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="ACTIVE", nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("deviation_minutes", sa.Integer(), nullable=True),
        sa.Column("resolved_at", _tz(), nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organization.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "employee_id", "date", "type", name="uq_alert_org_employee_date_type"),
    )
    op.create_index("ix_alert_employee_id", "alert", ["employee_id"])

    op.create_table(
        "job_queue",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )

    op.create_table(
        "job_schedule",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("cron", sa.String(length=255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("last_fired_at", _tz(), nullable=True),
        sa.Column("updated_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["name"], ["job_queue.name"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("name"),
    )

    op.create_table(
        "scheduled_job",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("state", sa.String(length=20), server_default="created", nullable=False),
        sa.Column("retry_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("retry_limit", sa.Integer(), server_default="3", nullable=False),
        sa.Column("retry_delay_seconds", sa.Integer(), server_default="30", nullable=False),
        sa.Column("start_after", _tz(), nullable=False),
        sa.Column("started_at", _tz(), nullable=True),
        sa.Column("completed_at", _tz(), nullable=True),
        sa.Column("last_error", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["name"], ["job_queue.name"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scheduled_job_fetch", "scheduled_job", ["name", "state", "start_after"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=True),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", _tz(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_org_created", "audit_log", ["org_id", "created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("scheduled_job")
    op.drop_table("job_schedule")
    op.drop_table("job_queue")
    op.drop_table("alert")
    op.drop_table("time_bank_movement")
    op.drop_table("overtime_candidate")
    op.drop_table("overwork_authorization")
    op.drop_table("workday_summary")
    op.drop_table("global_scheduler_settings")
    op.drop_table("organization_overtime_settings")
    op.drop_table("organization")
