"""Worker process for the overtime jobs.

Registers the overtime queues and handlers, then runs an asyncio loop that
fires due cadences and drains the queues every poll interval.
"""

from __future__ import annotations

import asyncio
import logging

from timebank.config import get_settings
from timebank.db import dispose_engine, get_session_factory
from timebank.services.dispatcher import register_overtime_scheduler
from timebank.services.queue import JobQueue

logger = logging.getLogger(__name__)


async def run_worker_loop(queue: JobQueue | None = None) -> None:
    """Main worker loop. A failed pass is logged and retried on the next interval."""
    settings = get_settings()
    queue = queue or JobQueue()
    session_factory = get_session_factory()

    async with session_factory() as session:
        cadence = await register_overtime_scheduler(session, queue, settings)
    logger.info(
        "Overtime worker started: queues=%s cadence=%s poll=%ds",
        ",".join(queue.registered_queues),
        cadence or "disabled",
        settings.worker_poll_interval_seconds,
    )

    try:
        while True:
            try:
                result = await queue.run_once(session_factory)
                if result.fired or result.fetched:
                    logger.info(
                        "Worker pass: fired=%d fetched=%d completed=%d retried=%d failed=%d",
                        result.fired,
                        result.fetched,
                        result.completed,
                        result.retried,
                        result.failed,
                    )
            except Exception:
                logger.exception("Worker pass failed")

            await asyncio.sleep(settings.worker_poll_interval_seconds)
    finally:
        await dispose_engine()


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(run_worker_loop())


if __name__ == "__main__":
    main()
