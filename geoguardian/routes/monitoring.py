"""
This module defines the API routes for triggering monitoring checks: scheduled
batches fired by an external scheduler and manual single-region checks.
"""

import logging
import secrets

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status

from geoguardian.config import settings
from geoguardian.dependencies import get_region_store, get_scheduler
from geoguardian.exceptions import RegionNotFoundError
from geoguardian.models.change_report import BatchSummary
from geoguardian.models.monitored_region import Frequency
from geoguardian.services.region_store import RegionStore
from geoguardian.services.scheduler import MonitoringScheduler

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter()


async def verify_scheduler_token(x_scheduler_token: str = Header(default=None)):
    """
    Verifies the shared scheduler token sent by an external trigger such as
    Cloud Scheduler. In local mode, this is a no-op for testing.
    """
    if settings.BACKEND_ENV == "local":
        logger.debug("Skipping scheduler token verification in local mode")
        return True

    expected = settings.SCHEDULER_TOKEN
    if not expected or not x_scheduler_token or not secrets.compare_digest(x_scheduler_token, expected):
        logger.error("Missing or invalid scheduler token in production mode")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing scheduler token",
        )
    return True


@router.post(
    "/monitoring/batches/{frequency}",
    response_model=BatchSummary,
    summary="Run the scheduled check for every region of a frequency",
    dependencies=[Depends(verify_scheduler_token)],
)
async def run_batch(
    frequency: Frequency,
    scheduler: MonitoringScheduler = Depends(get_scheduler),
):
    """
    Runs one batch synchronously and returns its summary. Per-region failures
    are counted in the summary rather than failing the request.
    """
    return await scheduler.run_scheduled_batch(frequency)


async def _run_manual_check(scheduler: MonitoringScheduler, region_id: str) -> None:
    try:
        outcome = await scheduler.check_region_now(region_id)
        logger.info("Manual check for region %s finished: %s", region_id, outcome.status)
    except Exception as e:
        logger.exception("❌ Manual check for region %s failed: %s", region_id, e)


@router.post(
    "/monitoring/regions/{region_id}/check",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger an immediate check of one region",
)
async def trigger_manual_check(
    region_id: str,
    background_tasks: BackgroundTasks,
    scheduler: MonitoringScheduler = Depends(get_scheduler),
    region_store: RegionStore = Depends(get_region_store),
):
    """
    Queues the same single-region cycle the scheduler runs. The check runs in
    the background; its result is visible on the region record.

    Raises:
        HTTPException: 404 if the region does not exist.
    """
    try:
        await region_store.load(region_id)
    except RegionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Region not found")

    background_tasks.add_task(_run_manual_check, scheduler, region_id)
    logger.info("Manual check queued for region %s", region_id)
    return {"message": "Manual check started", "region_id": region_id}
