"""
APScheduler configuration for `backy schedule`.

Runs the configured commands (update, clean, remote) on their cron
schedules in the foreground until interrupted. Jobs run one at a time so a
snapshot build and a cleanup never touch the archive simultaneously.
"""

import logging

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from backy.backup.executor import execute_command
from backy.commands import Command
from backy.errors import BackyError

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def init_scheduler(app, settings):
    """
    Initialize APScheduler with one job per scheduled command.

    Args:
        app: BackyApp instance (history database)
        settings: User settings

    Returns:
        The scheduler
    """
    global scheduler

    if scheduler is not None:
        return scheduler

    timezone = app.config.SCHEDULER_TIMEZONE

    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one instance of a job at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BlockingScheduler(
        executors=executors,
        job_defaults=job_defaults,
        timezone=timezone
    )

    for name, expression in settings.schedule.items():
        if not expression:
            continue
        command = Command(name)
        scheduler.add_job(
            func=_execute_command_wrapper,
            args=[app, settings, command],
            trigger=CronTrigger.from_crontab(expression, timezone=timezone),
            id=f"backy_{name}",
            name=f"Backy: {name}",
            replace_existing=True
        )
        logger.info(f"Scheduled command: {name} ({expression})")

    return scheduler


def start_scheduler():
    """
    Start the scheduler; blocks until it is shut down.
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    jobs = get_scheduled_jobs()
    if not jobs:
        logger.warning("No scheduled commands configured (see the [schedule] table)")
        return

    logger.info(f"Starting scheduler with {len(jobs)} jobs:")
    for job in jobs:
        logger.info(f"  - {job['id']}: {job['name']} ({job['trigger']})")
    scheduler.start()


def stop_scheduler():
    """Stop the scheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None


def _execute_command_wrapper(app, settings, command: Command):
    """
    Run a command from the scheduler.

    Failures are already stored in the run history; they are logged here so
    the daemon keeps running.
    """
    logger.info(f"Scheduler executing command: {command.value}")
    try:
        outcome = execute_command(app.Session, settings, command)
        logger.info(f"Command {command.value} completed: {outcome.message}")
    except BackyError as e:
        logger.error(f"Scheduled command {command.value} failed: {e}")
    except Exception:
        logger.exception(f"Scheduled command {command.value} crashed")


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs.

    Returns:
        List of dicts with job information
    """
    if scheduler is None:
        return []

    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, 'next_run_time', None)
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs
