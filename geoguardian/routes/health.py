"""
This module defines the health check endpoint for the GeoGuardian API.
"""

from fastapi import APIRouter, Depends

from geoguardian.config import settings
from geoguardian.dependencies import get_scheduler
from geoguardian.services.scheduler import MonitoringScheduler

router = APIRouter()


@router.get("/health", summary="Health check endpoint")
async def health_check(scheduler: MonitoringScheduler = Depends(get_scheduler)):
    """
    Returns a simple status to indicate that the service is healthy, along with
    whether the periodic monitoring triggers are running in this process.

    This endpoint can be used by load balancers or orchestrators (like Cloud Run)
    to determine the liveness and readiness of the application.
    """
    return {
        "status": "healthy",
        "environment": settings.BACKEND_ENV,
        "scheduler_running": scheduler.running,
    }
