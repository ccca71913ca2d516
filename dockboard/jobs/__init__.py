"""
Background Jobs Module

Handles scheduled tasks for:
- Daily dwell calculation
- Analytics retention pruning
"""

from dockboard.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status
from dockboard.jobs.dwell_jobs import calculate_daily_dwell_job

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
    "calculate_daily_dwell_job",
]
