"""Database-backed job queue with recurring cron cadences.

Delivery is at least once: a job claimed by a worker that dies stays ``active``
and handlers must be idempotent. Claims use ``FOR UPDATE SKIP LOCKED`` so that
several worker processes can share the same tables.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from croniter import croniter
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from timebank.exceptions import ConfigurationError, InvalidJobPayloadError, QueueNotFoundError
from timebank.models.base import as_utc
from timebank.models.enums import JobState
from timebank.models.job import JobSchedule, QueueDefinition, ScheduledJob
from timebank.schemas.jobs import parse_job_payload

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from timebank.schemas.jobs import JobPayload

    # Handlers receive the instant of the worker pass that fired and claimed the job.
    JobHandler = Callable[[AsyncSession, JobPayload, datetime], Awaitable[Any]]

logger = logging.getLogger(__name__)


@dataclass
class _Worker:
    name: str
    handler: JobHandler
    team_size: int
    batch_size: int


@dataclass
class QueueRunResult:
    """Summary of one worker pass."""

    fired: int = 0
    fetched: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0


def _now_utc() -> datetime:
    return datetime.now(UTC)


class JobQueue:
    """Named queues, job delivery and cron cadences over the ``job_*`` tables."""

    def __init__(self, *, retry_limit: int = 3, retry_delay_seconds: int = 30) -> None:
        self.retry_limit = retry_limit
        self.retry_delay_seconds = retry_delay_seconds
        self._workers: dict[str, _Worker] = {}

    # -----------------------------------------------------------------------
    # Declarations
    # -----------------------------------------------------------------------

    async def create_queue(self, session: AsyncSession, name: str) -> None:
        """Declare ``name``. Declaring an existing queue is a no-op."""
        if await session.get(QueueDefinition, name) is not None:
            return
        try:
            async with session.begin_nested():
                session.add(QueueDefinition(name=name))
        except IntegrityError:
            logger.debug("Queue %s declared concurrently", name)

    async def schedule(
        self,
        session: AsyncSession,
        name: str,
        cron: str,
        *,
        payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> JobSchedule:
        """Register or replace the recurring cadence of ``name``.

        The first job fires at the first cron slot after registration.
        """
        if not croniter.is_valid(cron):
            msg = f"Invalid cron expression {cron!r} for queue {name}"
            raise ConfigurationError(msg)
        if await session.get(QueueDefinition, name) is None:
            raise QueueNotFoundError(name)

        current = now or _now_utc()
        existing = await session.get(JobSchedule, name)
        if existing is None:
            existing = JobSchedule(name=name, cron=cron, payload=payload, last_fired_at=current)
            session.add(existing)
        elif existing.cron != cron or existing.payload != payload:
            existing.cron = cron
            existing.payload = payload
            existing.last_fired_at = current
            existing.updated_at = current
        await session.flush()
        logger.info("Queue %s scheduled with cadence %s", name, cron)
        return existing

    async def unschedule(self, session: AsyncSession, name: str) -> bool:
        """Remove the cadence of ``name``. Returns False when none was registered."""
        result = await session.execute(delete(JobSchedule).where(col(JobSchedule.name) == name))
        removed = (result.rowcount or 0) > 0  # type: ignore[attr-defined]
        if removed:
            logger.info("Queue %s unscheduled", name)
        return removed

    def work(
        self,
        name: str,
        handler: JobHandler,
        *,
        team_size: int = 1,
        batch_size: int = 1,
    ) -> None:
        """Register ``handler`` for jobs on ``name``; at most ``team_size`` run concurrently."""
        if team_size < 1 or batch_size < 1:
            msg = f"team_size and batch_size must be positive for queue {name}"
            raise ConfigurationError(msg)
        self._workers[name] = _Worker(name=name, handler=handler, team_size=team_size, batch_size=batch_size)

    @property
    def registered_queues(self) -> list[str]:
        return list(self._workers)

    # -----------------------------------------------------------------------
    # Producing
    # -----------------------------------------------------------------------

    async def enqueue(
        self,
        session: AsyncSession,
        name: str,
        payload: BaseModel | dict[str, Any] | None = None,
        *,
        start_after: datetime | None = None,
    ) -> uuid.UUID:
        """Send a job to ``name`` and return its id. Duplicate payloads are accepted."""
        if await session.get(QueueDefinition, name) is None:
            raise QueueNotFoundError(name)
        data = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload
        job = ScheduledJob(
            name=name,
            payload=data,
            retry_limit=self.retry_limit,
            retry_delay_seconds=self.retry_delay_seconds,
            start_after=start_after or _now_utc(),
        )
        session.add(job)
        await session.flush()
        logger.debug("Enqueued job %s on %s", job.id, name)
        return job.id

    async def fire_due_schedules(self, session: AsyncSession, now: datetime | None = None) -> int:
        """Enqueue one job for every cadence whose next slot has passed.

        Several missed slots collapse into a single job.
        """
        current = now or _now_utc()
        stmt = select(JobSchedule).with_for_update(skip_locked=True)
        schedules = (await session.execute(stmt)).scalars().all()
        fired = 0
        for sched in schedules:
            anchor = as_utc(sched.last_fired_at) if sched.last_fired_at is not None else current
            next_slot = croniter(sched.cron, anchor).get_next(datetime)
            if next_slot > current:
                continue
            await self.enqueue(session, sched.name, sched.payload or {}, start_after=current)
            sched.last_fired_at = current
            sched.updated_at = current
            fired += 1
        await session.flush()
        return fired

    # -----------------------------------------------------------------------
    # Consuming
    # -----------------------------------------------------------------------

    async def fetch(
        self,
        session: AsyncSession,
        name: str,
        limit: int = 1,
        now: datetime | None = None,
    ) -> list[ScheduledJob]:
        """Claim up to ``limit`` due jobs on ``name`` and mark them active."""
        current = now or _now_utc()
        stmt = (
            select(ScheduledJob)
            .where(
                col(ScheduledJob.name) == name,
                col(ScheduledJob.state) == JobState.CREATED,
                col(ScheduledJob.start_after) <= current,
            )
            .order_by(col(ScheduledJob.start_after), col(ScheduledJob.created_at))
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        jobs = list((await session.execute(stmt)).scalars().all())
        for job in jobs:
            job.state = JobState.ACTIVE
            job.started_at = current
        await session.flush()
        return jobs

    async def complete(self, session: AsyncSession, job: ScheduledJob, now: datetime | None = None) -> None:
        job.state = JobState.COMPLETED
        job.completed_at = now or _now_utc()
        job.last_error = None
        await session.flush()

    async def fail(
        self,
        session: AsyncSession,
        job: ScheduledJob,
        error: str,
        now: datetime | None = None,
        *,
        retry: bool = True,
    ) -> bool:
        """Record a failure. Returns True when the job was re-queued for another attempt."""
        current = now or _now_utc()
        job.last_error = error[:2000]
        if retry and job.retry_count < job.retry_limit:
            job.retry_count += 1
            job.state = JobState.CREATED
            job.start_after = current + timedelta(seconds=job.retry_delay_seconds * 2 ** (job.retry_count - 1))
            await session.flush()
            return True
        job.state = JobState.FAILED
        job.completed_at = current
        await session.flush()
        return False

    async def run_once(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        now: datetime | None = None,
    ) -> QueueRunResult:
        """One worker pass: fire due cadences, then run due jobs of every registered queue."""
        current = now or _now_utc()
        result = QueueRunResult()

        async with session_factory() as session:
            result.fired = await self.fire_due_schedules(session, current)
            await session.commit()

        for worker in self._workers.values():
            async with session_factory() as session:
                jobs = await self.fetch(session, worker.name, worker.team_size * worker.batch_size, current)
                job_ids = [job.id for job in jobs]
                await session.commit()
            result.fetched += len(job_ids)
            if not job_ids:
                continue

            team = asyncio.Semaphore(worker.team_size)

            async def _run(job_id: uuid.UUID, worker: _Worker = worker, team: asyncio.Semaphore = team) -> None:
                async with team:
                    await self._run_job(session_factory, worker, job_id, current, result)

            await asyncio.gather(*(_run(job_id) for job_id in job_ids))

        return result

    async def _run_job(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        worker: _Worker,
        job_id: uuid.UUID,
        now: datetime,
        result: QueueRunResult,
    ) -> None:
        async with session_factory() as session:
            job = await session.get(ScheduledJob, job_id)
            if job is None:
                return
            try:
                payload = parse_job_payload(job.name, job.payload)
            except InvalidJobPayloadError as exc:
                logger.error("Rejected job %s on %s: %s", job_id, worker.name, exc.message)
                await self.fail(session, job, exc.message, now, retry=False)
                await session.commit()
                result.failed += 1
                return

            try:
                outcome = await worker.handler(session, payload, now)
                job = await session.get(ScheduledJob, job_id, populate_existing=True)
                if job is not None:
                    await self.complete(session, job, now)
                await session.commit()
                result.completed += 1
                logger.info("Job %s on %s completed: %s", job_id, worker.name, outcome)
            except Exception as exc:
                logger.exception("Job %s on %s failed", job_id, worker.name)
                await session.rollback()
                job = await session.get(ScheduledJob, job_id, populate_existing=True)
                if job is None:
                    return
                if await self.fail(session, job, f"{type(exc).__name__}: {exc}", now):
                    result.retried += 1
                else:
                    result.failed += 1
                await session.commit()
