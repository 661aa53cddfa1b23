"""Background job runner — periodic loops for the settlement jobs.

Jobs:
  auto_complete       AutoCompletionSweeper.sweep
  scheduled_payouts   PayoutService.process_scheduled_payouts
  payout_reconcile    PayoutService.reconcile_submitted
  outbox_dispatch     OutboxDispatcher.dispatch_once

Each iteration first takes a Redis lease named after the job, so only one
instance runs a given job at a time. The lease is an optimization; the jobs
claim their rows in PostgreSQL and stay correct without it.

Started from the FastAPI lifespan when SCHEDULER_ENABLED is set, or standalone:
    python -m src.st_scheduler.runner           # run forever
    python -m src.st_scheduler.runner --once    # one pass of every job
"""

import argparse
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from redis.exceptions import RedisError

from config.settings import settings
from src.st_common.redis_client import acquire_lease, close_redis, get_redis, release_lease
from src.st_notification.application.dispatcher import OutboxDispatcher
from src.st_payout.application.service import PayoutService
from src.st_scheduler.auto_complete import AutoCompletionSweeper

logger = logging.getLogger(__name__)


@dataclass
class Job:
    name: str
    interval_seconds: int
    run: Callable[[], Awaitable[Any]]


def default_jobs() -> list[Job]:
    sweeper = AutoCompletionSweeper()
    payouts = PayoutService()
    dispatcher = OutboxDispatcher()
    return [
        Job("auto_complete", settings.AUTO_COMPLETE_INTERVAL_SECONDS, sweeper.sweep),
        Job(
            "scheduled_payouts",
            settings.SCHEDULED_PAYOUT_INTERVAL_SECONDS,
            payouts.process_scheduled_payouts,
        ),
        Job(
            "payout_reconcile",
            settings.PAYOUT_RECONCILE_INTERVAL_SECONDS,
            payouts.reconcile_submitted,
        ),
        Job("outbox_dispatch", settings.OUTBOX_DISPATCH_INTERVAL_SECONDS, dispatcher.dispatch_once),
    ]


async def run_job_once(job: Job) -> bool:
    """Run one iteration under the job's lease. False if another instance holds it.

    When Redis is unreachable the iteration runs unleased; the jobs claim their
    rows in PostgreSQL, so overlapping runs stay safe.
    """
    try:
        redis = await get_redis()
        token = await acquire_lease(redis, job.name, max(job.interval_seconds, 30))
    except (RedisError, OSError):
        logger.warning("Job %s running without lease, redis unavailable", job.name, exc_info=True)
        await job.run()
        return True
    if token is None:
        logger.debug("Job %s skipped, lease held elsewhere", job.name)
        return False
    try:
        await job.run()
    finally:
        try:
            await release_lease(redis, job.name, token)
        except (RedisError, OSError):
            logger.warning("Job %s lease release failed, it expires on its own", job.name)
    return True


async def _loop(job: Job) -> None:
    logger.info("Job %s started, every %ss", job.name, job.interval_seconds)
    while True:
        try:
            await run_job_once(job)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Job %s iteration failed", job.name)
        await asyncio.sleep(job.interval_seconds)


class JobRunner:
    def __init__(self, jobs: list[Job] | None = None) -> None:
        self._jobs = jobs if jobs is not None else default_jobs()
        self._tasks: list[asyncio.Task[None]] = []

    def start(self) -> None:
        for job in self._jobs:
            self._tasks.append(asyncio.create_task(_loop(job), name=f"job:{job.name}"))

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def run_once(self) -> None:
        for job in self._jobs:
            try:
                await run_job_once(job)
            except Exception:
                logger.exception("Job %s failed", job.name)


async def _main(once: bool) -> None:
    runner = JobRunner()
    try:
        if once:
            await runner.run_once()
        else:
            runner.start()
            await asyncio.Event().wait()
    finally:
        await runner.stop()
        await close_redis()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run settlement background jobs")
    parser.add_argument("--once", action="store_true", help="run every job once and exit")
    args = parser.parse_args()
    logging.basicConfig(level=settings.LOG_LEVEL)
    asyncio.run(_main(args.once))
