"""
APScheduler Configuration

Background scheduler for the daily dwell calculation. The job runs once
right after startup and then every DWELL_JOB_INTERVAL_HOURS.
"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from dockboard.config import settings

logger = logging.getLogger(__name__)

DAILY_DWELL_JOB_ID = 'calculate_daily_dwell'

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.FACILITY_TIMEZONE,
)


async def run_daily_dwell_job():
    """
    Wrapper called by APScheduler.

    A failed run is logged and retried on the next interval.
    """
    from dockboard.jobs.dwell_jobs import calculate_daily_dwell_job

    try:
        result = await calculate_daily_dwell_job()
        logger.info(
            f"Job '{DAILY_DWELL_JOB_ID}' completed: "
            f"{result['count']} trailers, {result['violations']} violations on {result['date']}"
        )
    except Exception as e:
        logger.error(f"Job '{DAILY_DWELL_JOB_ID}' failed: {e}")


def start_scheduler():
    """Start the background job scheduler."""
    if not scheduler.running:
        # Daily dwell aggregate, first run immediately
        scheduler.add_job(
            run_daily_dwell_job,
            'interval',
            hours=settings.DWELL_JOB_INTERVAL_HOURS,
            id=DAILY_DWELL_JOB_ID,
            name='Calculate Daily Dwell',
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]
