"""
Batch Scheduler Service using APScheduler.
Runs the workflow batch and the campaign queue on a fixed interval.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from typing import Awaitable, Callable, List, Optional

from core.logging import get_logger

logger = get_logger(__name__)

WORKFLOW_BATCH_JOB_ID = "workflow_batch"
CAMPAIGN_QUEUE_JOB_ID = "campaign_queue"

_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone="UTC")
    return _scheduler


def start_scheduler():
    """Start the scheduler if not already running."""
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started", jobs=len(scheduler.get_jobs()))


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    global _scheduler
    scheduler = get_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shutdown")
    _scheduler = None


def register_interval_job(job_id: str, seconds: int,
                          callback: Callable[..., Awaitable], **kwargs) -> str:
    """
    Register a recurring job.

    Overlapping runs are never started: a tick that fires while the previous
    one is still running is dropped (max_instances=1), and missed ticks are
    collapsed into one (coalesce).

    Args:
        job_id: Unique identifier for the job
        seconds: Interval between runs
        callback: Async function to call when job fires
        **kwargs: Additional arguments passed to the callback

    Returns:
        The job_id
    """
    scheduler = get_scheduler()
    scheduler.add_job(
        callback,
        trigger=IntervalTrigger(seconds=seconds, timezone="UTC"),
        id=job_id,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs=kwargs,
    )
    logger.info("Registered interval job", job_id=job_id, seconds=seconds)
    return job_id


def register_batch_jobs(workflow_service, seconds: int) -> List[str]:
    """Schedule the workflow batch and campaign queue ticks."""

    async def run_workflow_batch():
        try:
            summary = await workflow_service.process_workflow_batch()
            if summary["total"]:
                logger.info("Workflow batch tick", **summary)
        except Exception as e:
            logger.error("Workflow batch tick failed", error=str(e))

    async def run_campaign_queue():
        try:
            result = await workflow_service.process_campaign_queue()
            if result["results"]:
                logger.info("Campaign queue tick", processed=result["processed"])
        except Exception as e:
            logger.error("Campaign queue tick failed", error=str(e))

    return [
        register_interval_job(WORKFLOW_BATCH_JOB_ID, seconds, run_workflow_batch),
        register_interval_job(CAMPAIGN_QUEUE_JOB_ID, seconds, run_campaign_queue),
    ]
