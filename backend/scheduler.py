"""
APScheduler job for the periodic league sync.
"""

import logging
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from backend.config import settings
from shared.models import CronSyncReport

logger = logging.getLogger(__name__)

# Initialize scheduler
scheduler: Optional[AsyncIOScheduler] = None


async def run_league_sync(sync_service_factory: Callable) -> Optional[CronSyncReport]:
    """
    Background job that re-syncs every stored league.

    A failure of one league is isolated inside the report; a failure of the
    whole run is logged and swallowed so the scheduler keeps running.
    """
    try:
        logger.info("🔄 [CRON] Running scheduled league sync...")
        report = await sync_service_factory().sync_all_leagues()
        logger.info(
            f"✅ [CRON] League sync finished in {report.duration_seconds}s: "
            f"{len(report.synced)} synced, {len(report.failed)} failed, {len(report.skipped)} deferred"
        )
        for league_id, error in report.failed.items():
            logger.warning(f"[CRON] League {league_id} failed: {error}")
        return report
    except Exception as e:
        logger.error(f"❌ [CRON] League sync job failed: {e}", exc_info=True)
        return None


def start_scheduler(sync_service_factory: Callable) -> AsyncIOScheduler:
    """Start the APScheduler with the league sync job."""
    global scheduler

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_league_sync,
        CronTrigger.from_crontab(settings.CRON_SYNC_SCHEDULE),
        args=[sync_service_factory],
        id="league_sync",
        name="League Sync Job",
        replace_existing=True,
        max_instances=1  # Prevent overlapping runs
    )
    scheduler.start()
    logger.info(f"🚀 Background scheduler started - league sync on '{settings.CRON_SYNC_SCHEDULE}'")
    return scheduler


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global scheduler

    if scheduler is None:
        return
    try:
        scheduler.shutdown(wait=False)
        logger.info("🛑 Background scheduler stopped")
    except Exception as e:
        logger.error(f"Error stopping scheduler: {e}")
    finally:
        scheduler = None
