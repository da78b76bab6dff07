# src/services/scheduler.py

"""Fixed-period execution of the background cycles on APScheduler."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger("price_tracker.scheduler")

Clock = Callable[[], datetime]
Cycle = Callable[[], Awaitable[object]]


def utc_now() -> datetime:
    """Default clock: the current aware UTC time."""
    return datetime.now(timezone.utc)


def build_scheduler() -> AsyncIOScheduler:
    """Create a UTC scheduler whose jobs run as tasks on the current loop."""
    # Our own cycle logging covers job failures
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    return AsyncIOScheduler(
        executors={"default": AsyncIOExecutor()},
        timezone=timezone.utc,
    )


def guard_cycle(name: str, cycle: Cycle) -> Callable[[], Awaitable[None]]:
    """Wrap *cycle* so a crash is logged and the next period still fires."""

    async def run() -> None:
        logger.debug("%s cycle starting", name)
        try:
            await cycle()
        except asyncio.CancelledError:
            logger.info("%s cycle cancelled", name)
            raise
        except Exception as exc:
            logger.error(
                "%s cycle crashed: %s", name, exc, exc_info=True,
            )

    return run


def add_periodic_job(
    scheduler: AsyncIOScheduler,
    name: str,
    cycle: Cycle,
    interval_seconds: float,
    first_run: datetime | None = None,
) -> Job:
    """Register *cycle* to start every *interval_seconds* on a fixed grid.

    Start times are anchored to the first run, so a slow cycle never
    shifts later ones. A cycle still running at its next start time is
    not started twice; late or missed starts collapse into one run.
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")
    job = scheduler.add_job(
        guard_cycle(name, cycle),
        "interval",
        seconds=interval_seconds,
        id=name,
        name=name,
        next_run_time=first_run or utc_now(),
        max_instances=1,
        coalesce=True,
        misfire_grace_time=None,
        replace_existing=True,
    )
    logger.info("%s job scheduled every %.0fs", name, interval_seconds)
    return job
