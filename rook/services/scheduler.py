"""
Background Job Scheduler.

WHAT: Owns the process-wide APScheduler that drains the device action queue.

WHY: Queued device actions are drained by a periodic job, not by the
request that queued them, so a slow device action never holds a request
open.

HOW: Uses APScheduler with AsyncIOScheduler so the job runs on the
application's event loop. Jobs live in memory; the durable state is the
DeviceActivity queue table. Queued rows survive a restart; rows a crashed
run left in processing are failed once DEVICE_ACTION_STALE_SECONDS pass.

Example:
    # In main.py startup:
    from rook.services.scheduler import start_scheduler, shutdown_scheduler

    @app.on_event("startup")
    async def startup():
        await start_scheduler()

    @app.on_event("shutdown")
    async def shutdown():
        await shutdown_scheduler()
"""

import logging
from typing import Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from rook.core.config import settings
from rook.services.device_action_service import get_device_action_worker


logger = logging.getLogger(__name__)

DEVICE_ACTION_JOB_ID = "device_action_queue"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the global scheduler instance."""
    return _scheduler


async def start_scheduler() -> None:
    """
    Start the scheduler and register the device action job.

    HOW:
    1. Creates AsyncIOScheduler with memory job store
    2. Registers the device action job
    3. Starts the scheduler

    Note: Call this from FastAPI startup event.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return

    job_defaults = {
        "coalesce": True,  # Combine multiple missed runs into one
        "max_instances": 1,  # Only one instance of each job at a time
        "misfire_grace_time": 60,
    }

    _scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults=job_defaults,
        timezone="UTC",
    )

    _register_device_action_job()

    _scheduler.start()
    logger.info(
        f"Scheduler started with device action run every {settings.DEVICE_ACTION_POLL_SECONDS} seconds"
    )


def _register_device_action_job() -> None:
    """Schedule the device action queue drain."""
    if _scheduler is None:
        logger.error("Cannot register job: scheduler not initialized")
        return

    worker = get_device_action_worker()

    _scheduler.add_job(
        func=worker.process_pending,
        trigger=IntervalTrigger(seconds=settings.DEVICE_ACTION_POLL_SECONDS),
        id=DEVICE_ACTION_JOB_ID,
        name="Device Action Queue",
        replace_existing=True,
    )

    logger.info(
        f"Registered device action job (interval: {settings.DEVICE_ACTION_POLL_SECONDS}s)"
    )


async def shutdown_scheduler() -> None:
    """
    Stop the scheduler, waiting for a running queue drain to finish.

    Note: Call this from FastAPI shutdown event.
    """
    global _scheduler

    if _scheduler is None:
        logger.info("Scheduler not running")
        return

    if not _scheduler.running:
        logger.info("Scheduler already stopped")
        _scheduler = None
        return

    logger.info("Shutting down scheduler...")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler shut down successfully")


async def run_device_actions_now() -> dict:
    """
    Drain the device action queue immediately, outside the schedule.

    Returns:
        Dict with counts of claimed, completed and failed activities
    """
    return await get_device_action_worker().process_pending()


def get_scheduler_status() -> dict:
    """
    Report whether the scheduler runs and when each job fires next.

    Returns:
        Dict with running flag, job list and a human-readable message
    """
    if _scheduler is None:
        return {
            "running": False,
            "jobs": [],
            "message": "Scheduler not initialized",
        }

    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        }
        for job in _scheduler.get_jobs()
    ]

    return {
        "running": _scheduler.running,
        "jobs": jobs,
        "message": "Scheduler is running" if _scheduler.running else "Scheduler is paused",
    }
