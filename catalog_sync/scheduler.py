"""
Scheduled conflict sweep.

The sweep is the safety net for webhook deliveries that were dropped or
failed against a Square outage, so it runs on a cron schedule inside the app
process when CONFLICT_SWEEP_ENABLED is set.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from catalog_sync.core.config import Settings
from catalog_sync.database import async_session
from catalog_sync.integrations.base import ExternalCatalogClient
from catalog_sync.repositories.product import ProductRepository
from catalog_sync.repositories.sync_conflict import SyncConflictRepository
from catalog_sync.services.conflict_detector import ConflictDetector

logger = logging.getLogger(__name__)


async def conflict_sweep_task(client: ExternalCatalogClient):
    """Run a full conflict sweep in its own session"""
    try:
        logger.info("=== SCHEDULED CONFLICT SWEEP STARTING ===")
        async with async_session() as db:
            detector = ConflictDetector(ProductRepository(db), SyncConflictRepository(db), client)
            result = await detector.detect(system=client.system)
        logger.info(
            f"Scheduled sweep completed: {result.detected} new conflicts, "
            f"{result.skipped} already pending, {len(result.conflicts)} pending in total"
        )
    except Exception as e:
        logger.exception(f"Error in scheduled conflict sweep: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(settings: Settings, client: ExternalCatalogClient) -> Optional[AsyncIOScheduler]:
    """Build the scheduler, or None when the sweep is disabled"""
    if not settings.CONFLICT_SWEEP_ENABLED:
        logger.info("Scheduled conflict sweep is disabled. Set CONFLICT_SWEEP_ENABLED=true to enable")
        return None

    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        conflict_sweep_task,
        CronTrigger.from_crontab(settings.CONFLICT_SWEEP_SCHEDULE),
        args=[client],
        id="conflict_sweep",
        name="Sync Conflict Sweep",
        replace_existing=True,
        max_instances=1,  # Only one sweep at a time
        misfire_grace_time=3600,
    )
    logger.info(f"Conflict sweep scheduled: {settings.CONFLICT_SWEEP_SCHEDULE}")
    return scheduler
