import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlmodel import col

from timebank.config import get_settings
from timebank.db import SessionDep
from timebank.models.enums import JobState
from timebank.models.job import JobSchedule, ScheduledJob
from timebank.schemas.jobs import OVERTIME_DISPATCH_JOB

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded", "error"]
    version: str
    environment: str
    scheduler_enabled: bool
    dispatch_cadence: str | None = None
    pending_jobs: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Return service health, the dispatch cadence and the queue backlog."""
    settings = get_settings()
    status: Literal["ok", "degraded", "error"] = "ok"
    cadence: str | None = None
    pending: int | None = None

    try:
        schedule = await session.get(JobSchedule, OVERTIME_DISPATCH_JOB)
        cadence = schedule.cron if schedule is not None else None
        stmt = select(func.count()).select_from(ScheduledJob).where(col(ScheduledJob.state) == JobState.CREATED)
        pending = (await session.execute(stmt)).scalar_one()
    except Exception:
        logger.exception("Health check: database connectivity failed")
        status = "degraded"
        await session.rollback()

    return HealthResponse(
        status=status,
        version=settings.app_version,
        environment=settings.environment,
        scheduler_enabled=settings.overtime_reconciliation_enabled,
        dispatch_cadence=cadence,
        pending_jobs=pending,
    )
