"""
EHI Pipeline Scheduler.

Two independent APScheduler jobs call the same pipeline entry point:
- a daily cron trigger
- a one-shot startup trigger, delayed so the store can come up

They coordinate only through the orchestrator's run lock. A scheduled
failure is logged and swallowed so the next trigger still fires.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from ehi_mapper.core.config import get_settings
from ehi_mapper.core.errors import PipelineAlreadyRunningError
from ehi_mapper.jobs.pipeline import get_orchestrator

logger = logging.getLogger(__name__)

DAILY_JOB_ID = "ehi_daily_pipeline"
STARTUP_JOB_ID = "ehi_startup_pipeline"

_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=get_settings().pipeline_timezone)
    return _scheduler


def reset_scheduler() -> None:
    global _scheduler
    _scheduler = None


# =============================================================================
# APScheduler Wrapper (called by scheduler)
# =============================================================================


async def run_scheduled_pipeline(trigger: str = "schedule") -> Optional[Dict[str, Any]]:
    """Run the full pipeline for a timer trigger; never raises."""
    logger.info(f"Starting {trigger} pipeline run...")
    try:
        result = await get_orchestrator().run_full_pipeline(trigger=trigger)
    except PipelineAlreadyRunningError:
        logger.warning(f"Skipped {trigger} pipeline run: a run is already in progress")
        return None
    except Exception as e:
        logger.error(f"{trigger.capitalize()} pipeline run failed: {e}", exc_info=True)
        return None

    logger.info(f"{trigger.capitalize()} pipeline run completed: {result.step_counts}")
    return result.model_dump(mode="json")


# =============================================================================
# APScheduler Registration
# =============================================================================


def register_pipeline_schedules(now: Optional[datetime] = None) -> Dict[str, bool]:
    """
    Register the daily and startup pipeline jobs.

    Returns:
        Dictionary of job_id -> registration success
    """
    settings = get_settings()
    scheduler = get_scheduler()
    results = {}

    try:
        scheduler.add_job(
            run_scheduled_pipeline,
            trigger=CronTrigger(
                hour=settings.pipeline_cron_hour,
                minute=settings.pipeline_cron_minute,
                timezone=settings.pipeline_timezone,
            ),
            id=DAILY_JOB_ID,
            name="Daily EHI Pipeline",
            kwargs={"trigger": "schedule"},
            replace_existing=True,
        )
        results[DAILY_JOB_ID] = True
        logger.info(
            f"Registered daily pipeline run "
            f"({settings.pipeline_cron_hour:02d}:{settings.pipeline_cron_minute:02d} "
            f"{settings.pipeline_timezone})"
        )
    except Exception as e:
        logger.error(f"Failed to register daily pipeline run: {e}")
        results[DAILY_JOB_ID] = False

    if not settings.startup_run_enabled:
        return results

    run_date = (now or datetime.now(timezone.utc)) + timedelta(
        seconds=settings.startup_delay_seconds
    )
    try:
        scheduler.add_job(
            run_scheduled_pipeline,
            trigger=DateTrigger(run_date=run_date),
            id=STARTUP_JOB_ID,
            name="Startup EHI Pipeline",
            kwargs={"trigger": "startup"},
            replace_existing=True,
        )
        results[STARTUP_JOB_ID] = True
        logger.info(
            f"Registered startup pipeline run in {settings.startup_delay_seconds:.0f}s"
        )
    except Exception as e:
        logger.error(f"Failed to register startup pipeline run: {e}")
        results[STARTUP_JOB_ID] = False

    return results


def start_scheduler():
    """Start the scheduler if not already running."""
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    scheduler = get_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def get_schedule_status() -> Dict[str, Any]:
    """Status of the pipeline jobs."""
    scheduler = get_scheduler()

    jobs = []
    for job_id in (DAILY_JOB_ID, STARTUP_JOB_ID):
        job = scheduler.get_job(job_id)
        if job:
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
                "active": True,
            })
        else:
            jobs.append({
                "id": job_id,
                "name": job_id.replace("ehi_", "").replace("_", " ").title(),
                "next_run": None,
                "trigger": None,
                "active": False,
            })

    return {
        "scheduler_running": scheduler.running,
        "scheduled_jobs": jobs,
        "checked_at": datetime.utcnow().isoformat(),
    }
