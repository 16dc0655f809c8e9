"""Background job scheduler for one-off maintenance jobs."""
import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlmodel import Session

from app.core.config import settings
from app.core.database import engine
from app.core.repository import EventStore
from app.series.backfill import backfill_series_ids

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def backfill_job():
    """Background series-id backfill."""
    try:
        with Session(engine) as session:
            report = backfill_series_ids(EventStore(session))
            logger.info(f"Background backfill completed: {report.groups} groups, {report.updated} rows updated")
    except Exception as e:
        logger.error(f"Background backfill failed: {e}")


def start_scheduler():
    """Start the background scheduler."""
    if settings.backfill_on_startup:
        scheduler.add_job(
            backfill_job,
            trigger=DateTrigger(run_date=datetime.now()),
            id="series_backfill",
            replace_existing=True,
        )
    scheduler.start()
    logger.info(
        f"Scheduler started{', series backfill queued' if settings.backfill_on_startup else ''}"
    )


def shutdown_scheduler():
    """Graceful shutdown."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")
