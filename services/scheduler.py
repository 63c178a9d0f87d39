"""
Daily job scheduling for MilestoneBot.

Runs the three daily jobs in a foreground loop using the schedule library:
- HR roster sync at HR_SYNC_TIME
- Pre-day notifications at NOTIFY_TIME (about tomorrow)
- Day-of celebrations at CELEBRATE_TIME

Every job is a single invocation; an exception in one never stops the loop.

Key functions: setup_scheduler(), run_scheduler(), get_scheduler_health()
"""

import time
from datetime import datetime

import schedule

from config import (
    CELEBRATE_TIME,
    HR_SYNC_TIME,
    NOTIFY_TIME,
    SCHEDULER_CHECK_INTERVAL_SECONDS,
    TIMEZONE,
    get_logger,
)
from integrations.hr import sync_roster
from services.celebration import announce_approved_celebrations
from services.notification import send_anniversary_notifications

logger = get_logger("scheduler")

# Scheduler health monitoring
_last_heartbeat = None
_total_executions = 0
_failed_executions = 0


def run_job(name, job, *args, **kwargs):
    """
    Run one scheduled job, absorbing any exception.

    Returns:
        The job's result, or None if it raised
    """
    global _total_executions, _failed_executions

    _total_executions += 1
    logger.info(f"SCHEDULER: Running {name} at {datetime.now().strftime('%H:%M:%S')}")
    try:
        result = job(*args, **kwargs)
        logger.info(f"SCHEDULER: {name} finished: {result}")
        return result
    except Exception as e:
        _failed_executions += 1
        logger.exception(f"SCHEDULER: {name} failed: {e}")
        return None


def setup_scheduler(app, scheduler=None):
    """
    Register the daily jobs.

    Args:
        app: Slack app instance passed to every job
        scheduler: Optional schedule.Scheduler (defaults to the module-level one)

    Returns:
        The scheduler the jobs were registered on
    """
    scheduler = scheduler or schedule.default_scheduler

    sync_time = HR_SYNC_TIME.strftime("%H:%M")
    notify_time = NOTIFY_TIME.strftime("%H:%M")
    celebrate_time = CELEBRATE_TIME.strftime("%H:%M")

    scheduler.every().day.at(sync_time, TIMEZONE).do(run_job, "hr_sync", sync_roster, app)
    scheduler.every().day.at(notify_time, TIMEZONE).do(
        run_job, "notify", send_anniversary_notifications, app
    )
    scheduler.every().day.at(celebrate_time, TIMEZONE).do(
        run_job, "celebrate", announce_approved_celebrations, app
    )

    logger.info(
        f"SCHEDULER: Daily jobs scheduled - sync {sync_time}, notify {notify_time}, "
        f"celebrate {celebrate_time} ({TIMEZONE})"
    )
    return scheduler


def run_scheduler(scheduler=None, max_iterations=None):
    """
    Run pending jobs forever (or max_iterations times) in the foreground.

    Args:
        scheduler: Optional schedule.Scheduler
        max_iterations: Stop after this many checks (tests)
    """
    global _last_heartbeat

    scheduler = scheduler or schedule.default_scheduler
    logger.info("SCHEDULER_HEALTH: Scheduler loop started")

    iterations = 0
    while max_iterations is None or iterations < max_iterations:
        iterations += 1
        try:
            _last_heartbeat = datetime.now()
            scheduler.run_pending()
        except Exception as e:
            logger.error(f"SCHEDULER_HEALTH: Error in scheduler loop: {e}")
        time.sleep(SCHEDULER_CHECK_INTERVAL_SECONDS)


def get_scheduler_health():
    """
    Get scheduler health status for monitoring

    Returns:
        dict: Scheduler health information
    """
    return {
        "last_heartbeat": _last_heartbeat.isoformat() if _last_heartbeat else None,
        "total_executions": _total_executions,
        "failed_executions": _failed_executions,
        "scheduled_jobs": len(schedule.jobs),
    }
