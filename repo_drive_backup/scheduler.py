"""
APScheduler configuration for periodic backup runs

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import DEFAULT_SCHEDULE
from .orchestrator import BackupOrchestrator, RunInProgressError

BACKUP_JOB_ID = "repository_backup"

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def run_scheduled_backup(orchestrator: BackupOrchestrator):
    """
    Scheduler entry point. Goes through the same run lock as a manual
    trigger, so a tick during an active run is skipped.
    """
    logger.info("[SCHEDULE] Scheduled backup triggered")
    try:
        orchestrator.run()
    except RunInProgressError:
        logger.warning("[SCHEDULE] Backup already in progress, skipping this tick")
    except Exception as e:
        # Failure is already recorded in the run status
        logger.error(f"[SCHEDULE] Scheduled backup failed: {e}")


def init_scheduler(orchestrator: BackupOrchestrator, schedule: str = DEFAULT_SCHEDULE):
    """
    Initialize the scheduler with the backup job.

    Args:
        orchestrator: Orchestrator whose run() the job calls
        schedule: Crontab expression, evaluated in UTC
    """
    global scheduler

    if scheduler is not None:
        return scheduler

    job_defaults = {
        "coalesce": True,  # Combine multiple pending instances into one
        "max_instances": 1,
        "misfire_grace_time": 300,
    }

    trigger = CronTrigger.from_crontab(schedule, timezone="UTC")
    new_scheduler = BackgroundScheduler(job_defaults=job_defaults, timezone="UTC")
    new_scheduler.add_job(
        func=run_scheduled_backup,
        trigger=trigger,
        args=[orchestrator],
        id=BACKUP_JOB_ID,
        name="Repository Backup",
        replace_existing=True,
    )
    scheduler = new_scheduler
    logger.info(f"[SCHEDULE] Backup scheduled with cron '{schedule}' (UTC)")
    return scheduler


def start_scheduler():
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if not scheduler.running:
        scheduler.start()
        for job in scheduler.get_jobs():
            next_run = job.next_run_time.isoformat() if job.next_run_time else "N/A"
            logger.info(f"[SCHEDULE] {job.id}: next run {next_run}")
    else:
        logger.info("[SCHEDULE] Scheduler already running")


def stop_scheduler():
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[SCHEDULE] Scheduler stopped")


def is_scheduler_running() -> bool:
    return bool(scheduler and scheduler.running)
