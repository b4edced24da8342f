"""
APScheduler setup: background retries of AI trip summaries.

Summaries are first requested right after a plan concludes; this job picks up
the ones that failed (provider down, rate limits) and tries again.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.memory import MemoryJobStore

from tripcollab.config import get_settings
from tripcollab.database import SessionLocal
from tripcollab.services.ai_plans import summarize_trip
from tripcollab.services.ai_service import AIService
from tripcollab.services.conclusion import ConclusionService

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

settings = get_settings()


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone='UTC'
        )
        _setup_scheduled_jobs()

    return scheduler


def _setup_scheduled_jobs():
    scheduler.add_job(
        retry_missing_summaries,
        trigger=IntervalTrigger(minutes=settings.summary_retry_minutes),
        id='summary_retry',
        name='Retry AI Trip Summaries',
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"Scheduled jobs configured: summary retry every {settings.summary_retry_minutes} min")


async def generate_summary_for_plan(plan_id: int, session_factory=SessionLocal) -> Optional[str]:
    """Generate and store one plan's summary in its own session."""
    db = session_factory()
    try:
        return await ConclusionService(db).generate_summary(plan_id, summarize_trip)
    finally:
        db.close()


async def retry_missing_summaries(session_factory=SessionLocal) -> int:
    """Retry every concluded plan that still has no summary.

    Returns:
        Number of summaries generated in this run.
    """
    if not AIService.is_configured():
        logger.debug("AI not configured, skipping summary retry")
        return 0

    db = session_factory()
    try:
        service = ConclusionService(db)
        plan_ids = [c.plan_id for c in service.pending_summaries()]
        generated = 0
        for plan_id in plan_ids:
            if await service.generate_summary(plan_id, summarize_trip):
                generated += 1
    finally:
        db.close()

    if plan_ids:
        logger.info(f"Summary retry: {generated}/{len(plan_ids)} generated")
    return generated


def start_scheduler():
    """Start the scheduler (call this from FastAPI startup)."""
    scheduler_instance = get_scheduler()

    if not scheduler_instance.running:
        scheduler_instance.start()
        logger.info("APScheduler started successfully")
        for job in scheduler_instance.get_jobs():
            logger.info(f"Next '{job.name}': {job.next_run_time}")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler (call this from FastAPI shutdown)."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
        scheduler = None
