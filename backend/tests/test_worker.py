from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select

from timebank import worker
from timebank.config import reset_settings
from timebank.models import JobSchedule
from timebank.schemas.jobs import OVERTIME_DISPATCH_JOB
from timebank.services.dispatcher import OVERTIME_QUEUES
from timebank.services.queue import JobQueue, QueueRunResult

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class _StopWorker(BaseException):
    pass


class _CountingQueue(JobQueue):
    """Stops the worker loop on its second pass."""

    def __init__(self) -> None:
        super().__init__()
        self.passes = 0

    async def run_once(
        self, session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
    ) -> QueueRunResult:
        self.passes += 1
        if self.passes > 1:
            raise _StopWorker
        return await super().run_once(session_factory, now)


async def test_worker_registers_scheduler_and_polls(
    monkeypatch: pytest.MonkeyPatch,
    session_factory: async_sessionmaker[AsyncSession],
    db_session: AsyncSession,
) -> None:
    monkeypatch.setenv("WORKER_POLL_INTERVAL_SECONDS", "0")
    reset_settings()
    monkeypatch.setattr(worker, "get_session_factory", lambda: session_factory)
    queue = _CountingQueue()

    with pytest.raises(_StopWorker):
        await worker.run_worker_loop(queue)

    assert queue.passes == 2
    assert sorted(queue.registered_queues) == sorted(OVERTIME_QUEUES)
    schedule = (await db_session.execute(select(JobSchedule))).scalar_one()
    assert schedule.name == OVERTIME_DISPATCH_JOB


async def test_worker_survives_failed_pass(
    monkeypatch: pytest.MonkeyPatch,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    monkeypatch.setenv("WORKER_POLL_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("OVERTIME_RECONCILIATION_ENABLED", "false")
    reset_settings()
    monkeypatch.setattr(worker, "get_session_factory", lambda: session_factory)

    class _FlakyQueue(_CountingQueue):
        async def run_once(
            self, session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
        ) -> QueueRunResult:
            if self.passes == 0:
                self.passes += 1
                msg = "database restarting"
                raise ConnectionError(msg)
            return await super().run_once(session_factory, now)

    queue = _FlakyQueue()

    with pytest.raises(_StopWorker):
        await worker.run_worker_loop(queue)

    assert queue.passes == 2
