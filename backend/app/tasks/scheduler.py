"""Background task scheduler for stats reconciliation."""

import logging
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import async_session_maker
from app.services.reports import ReportService
from app.services.stats import reconcile_status_counts, refresh_operator_stats
from app.websocket.manager import manager as ws_manager
from app.websocket.schemas import Topic

logger = logging.getLogger(__name__)
settings = get_settings()

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def reconcile_stats(db: AsyncSession) -> dict[str, int]:
    """
    Rebuild status counters and operator snapshots, then refresh open priorities.

    Publishes admin:stats:update once the snapshots are committed.
    """
    counts = await reconcile_status_counts(db)
    stats = await refresh_operator_stats(db)
    await db.commit()
    logger.info(f"Status counters reconciled: {counts}")

    changed = await ReportService(db).refresh_priorities()

    await ws_manager.publish(Topic.ADMIN_STATS_UPDATE, {})
    return {
        "total_managed": stats.total_managed,
        "priorities_changed": changed,
    }


async def reconcile_stats_job() -> None:
    """Background job wrapping reconcile_stats in its own session."""
    logger.info("Starting scheduled stats reconciliation")
    try:
        async with async_session_maker() as db:
            summary = await reconcile_stats(db)
            logger.info(f"Stats reconciliation complete: {summary}")
    except Exception as e:
        logger.error(f"Stats reconciliation failed: {e}", exc_info=True)


def setup_scheduler() -> AsyncIOScheduler:
    """Set up and start the background task scheduler."""
    global scheduler

    scheduler = AsyncIOScheduler()
    now = datetime.now(UTC)

    scheduler.add_job(
        reconcile_stats_job,
        trigger=IntervalTrigger(minutes=settings.stats_reconcile_interval_minutes),
        next_run_time=now + timedelta(seconds=10),
        id="reconcile_stats",
        name="Reconcile status counters and operator stats",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")

    return scheduler


def shutdown_scheduler() -> None:
    """Shut down the scheduler gracefully."""
    global scheduler

    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
        scheduler = None
