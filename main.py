"""
This is the main entry point for the GeoGuardian monitoring API.
It initializes the FastAPI app, includes API routers, configures middleware
and runs the periodic monitoring scheduler for the lifetime of the process.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from geoguardian.config import settings
from geoguardian.dependencies import get_scheduler
from geoguardian.routes import change_detection, health, imagery, monitoring, timelapse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Determine environment
IS_PRODUCTION = settings.BACKEND_ENV == "production"

# Configure CORS based on environment
if IS_PRODUCTION:
    # Production: Restrict to the dashboard origin only
    allowed_origins = [settings.FRONTEND_ORIGIN]
    logger.info("🚀 Production mode: CORS restricted to %s", allowed_origins)
else:
    # Local development: Allow all origins
    allowed_origins = ["*"]
    logger.info("🔧 Local mode: CORS allows all origins")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("=" * 60)
    logger.info("GeoGuardian Monitoring API starting up...")
    logger.info("Environment: %s", "PRODUCTION" if IS_PRODUCTION else "LOCAL")
    logger.info("Persistence backend: %s", settings.PERSISTENCE_BACKEND)
    logger.info("GCP Project: %s", settings.GCP_PROJECT_ID)
    logger.info("Blob bucket: %s", settings.GCS_BUCKET_NAME)
    logger.info("=" * 60)

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        try:
            scheduler = get_scheduler()
            scheduler.start()
            logger.info("✅ Monitoring scheduler started")
        except Exception as e:
            logger.error("❌ Failed to start monitoring scheduler: %s", e)
            scheduler = None
    else:
        logger.info("Monitoring scheduler disabled; batches run only via the API")

    yield

    # Shutdown
    logger.info("=" * 60)
    logger.info("GeoGuardian Monitoring API shutting down...")
    if scheduler is not None:
        await scheduler.stop()
        logger.info("✅ Monitoring scheduler stopped")
    logger.info("=" * 60)


app = FastAPI(
    title="GeoGuardian Monitoring API",
    description="Satellite change detection, scheduled region monitoring and time-lapse generation.",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(imagery.router, prefix="/api", tags=["Imagery"])
app.include_router(change_detection.router, prefix="/api", tags=["Change Detection"])
app.include_router(monitoring.router, prefix="/api", tags=["Monitoring"])
app.include_router(timelapse.router, prefix="/api", tags=["Time-lapse"])
