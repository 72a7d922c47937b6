"""Background job scheduler.

APScheduler-based periodic evaluation pass over all open deadline events.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from compliance_escalation.config import settings
from compliance_escalation.container import get_service
from compliance_escalation.logging_config import get_logger

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def run_escalation_checks() -> None:
    """Evaluate every open deadline event.

    Per-event failures are isolated by the service; anything escaping the
    pass itself is logged so the job stays scheduled.
    """
    logger.info("Starting scheduled escalation check")
    try:
        summary = await get_service().run_evaluation_pass()
    except Exception as e:
        logger.error("Scheduled escalation check failed", error=str(e))
        return

    logger.info(
        "Scheduled escalation check completed",
        evaluated=summary.evaluated,
        level_changes=summary.level_changes,
        errors=summary.errors,
    )


def start_scheduler() -> AsyncIOScheduler | None:
    """Start the background job scheduler.

    Returns:
        The started scheduler, or None when checks are disabled or the
        application runs under tests.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return scheduler

    if settings.testing or not settings.escalation_check_enabled:
        logger.info(
            "Escalation checks not scheduled",
            testing=settings.testing,
            enabled=settings.escalation_check_enabled,
        )
        return None

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_escalation_checks,
        trigger=IntervalTrigger(minutes=settings.escalation_check_interval_minutes),
        id="escalation_check",
        name="Compliance Deadline Escalation Check",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(
        "Scheduled escalation check job",
        interval_minutes=settings.escalation_check_interval_minutes,
    )

    scheduler.start()
    return scheduler


def stop_scheduler() -> None:
    """Stop the background job scheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the current scheduler instance, or None if not started."""
    return scheduler
