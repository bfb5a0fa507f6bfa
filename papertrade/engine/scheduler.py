"""APScheduler integration for FastAPI.

Runs the trade sync pass on a fixed interval.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from papertrade.config import settings
from papertrade.utils.constants import INTERVAL_HOURS

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

SYNC_JOB_ID = "trade_sync"


def _get_trigger(interval: str) -> IntervalTrigger:
    # Support arbitrary "<N>m" schedule intervals
    if interval.endswith("m") and interval[:-1].isdigit():
        return IntervalTrigger(minutes=int(interval[:-1]))
    hours = INTERVAL_HOURS.get(interval, 1 / 60)
    if hours < 1:
        return IntervalTrigger(minutes=int(hours * 60))
    return IntervalTrigger(hours=hours)


def add_sync_job(interval: str):
    """Add or replace the sync job."""
    from papertrade.engine.trade_sync import run_sync_cycle

    scheduler.add_job(
        run_sync_cycle,
        trigger=_get_trigger(interval),
        id=SYNC_JOB_ID,
        name="Trade sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=60,
    )
    logger.info(f"Scheduled trade sync every {interval}")


def reschedule_sync_job(interval: str):
    """Reschedule the sync job with a new interval."""
    if scheduler.get_job(SYNC_JOB_ID):
        scheduler.reschedule_job(SYNC_JOB_ID, trigger=_get_trigger(interval))
        logger.info(f"Rescheduled trade sync to {interval}")
    else:
        add_sync_job(interval)


def start_scheduler():
    """Start the scheduler with the sync job if enabled."""
    if settings.sync_enabled:
        add_sync_job(settings.sync_interval)
    else:
        logger.info("Trade sync disabled; scheduler starts without jobs")

    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")


def stop_scheduler():
    """Shut down the scheduler."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    """Return current scheduler state for the API."""
    jobs = scheduler.get_jobs()
    return {
        "running": scheduler.running,
        "job_count": len(jobs),
        "jobs": [
            {
                "id": j.id,
                "name": j.name,
                "next_run": str(j.next_run_time) if j.next_run_time else None,
                "trigger": str(j.trigger),
            }
            for j in jobs
        ],
    }
