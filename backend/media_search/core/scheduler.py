"""
Background scheduler for periodic tasks.

This module manages background jobs that run on a schedule:
- Prune search history past the retention window: runs every HISTORY_PRUNE_INTERVAL_HOURS
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from media_search.core.config import settings
from media_search.core.database import SessionLocal
from media_search.core.errors import PersistenceError
from media_search.services.search_history_service import search_history_service
import logging

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def prune_search_history_job(retention_days: int = None):
    """
    Delete search records older than the retention window.

    Failures are logged and left for the next run.
    """
    days = settings.SEARCH_HISTORY_RETENTION_DAYS if retention_days is None else retention_days
    db = SessionLocal()
    try:
        deleted = search_history_service.prune_older_than(db, days)
        if deleted > 0:
            logger.info(f"History prune completed: deleted {deleted} searches older than {days} days")
        else:
            logger.info("History prune completed: nothing to delete")
        return deleted
    except PersistenceError as e:
        logger.error(f"Error in prune_search_history_job: {e.__cause__ or e}")
        return 0
    finally:
        db.close()


def start_scheduler():
    """
    Start the background scheduler.

    Called from the FastAPI lifespan. Does nothing when retention is disabled.
    """
    if settings.SEARCH_HISTORY_RETENTION_DAYS <= 0:
        logger.info("Search history retention disabled; scheduler not started.")
        return

    if not scheduler.running:
        scheduler.add_job(
            prune_search_history_job,
            trigger=IntervalTrigger(hours=settings.HISTORY_PRUNE_INTERVAL_HOURS),
            id="prune_search_history",
            name="Prune search history",
            replace_existing=True
        )

        scheduler.start()
        logger.info(
            f"Background scheduler started. History prune scheduled every "
            f"{settings.HISTORY_PRUNE_INTERVAL_HOURS} hours.")


def stop_scheduler():
    """
    Stop the background scheduler.

    Called when the FastAPI app shuts down.
    """
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped.")
