"""Background job scheduler.

APScheduler runs the account purge on a fixed interval.
"""

from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from planora_api.config import settings
from planora_api.core.errors import DatastoreError
from planora_api.logging_config import get_logger
from planora_api.services.account_purge import PurgeReport, build_purge_worker

logger = get_logger(__name__)

scheduler: AsyncIOScheduler | None = None


async def purge_due_accounts() -> PurgeReport | None:
    """Scheduled job: purge every account whose grace period has ended.

    Returns:
        The cycle's report, or None if the candidates could not be listed.
    """
    logger.info("Starting scheduled account purge")
    try:
        report = await build_purge_worker().run_purge_cycle(datetime.now(UTC))
    except DatastoreError as e:
        logger.error("Scheduled account purge could not list candidates", error=e.message)
        return None

    for result in report.results:
        if not result.success:
            logger.warning(
                "Account purge will be retried next cycle",
                user_id=str(result.user_id),
                error=result.error,
            )
    return report


def start_scheduler() -> AsyncIOScheduler:
    """Start the background job scheduler.

    Returns:
        The started scheduler instance
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return scheduler

    scheduler = AsyncIOScheduler()

    if settings.purge_enabled:
        scheduler.add_job(
            purge_due_accounts,
            trigger=IntervalTrigger(hours=settings.purge_interval_hours),
            id="account_purge",
            name="Scheduled Account Purge",
            replace_existing=True,
            max_instances=1,
        )
        logger.info(
            "Scheduled account purge job",
            interval_hours=settings.purge_interval_hours,
        )

    scheduler.start()
    logger.info("Background scheduler started")
    return scheduler


def stop_scheduler() -> None:
    """Stop the background job scheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    return scheduler
