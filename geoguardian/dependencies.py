"""
Dependency providers for the API routes and the application lifespan.

Each collaborator is built once from settings and shared, so the scheduler's
per-region locks and the in-memory backends are process-wide.
"""

import logging
from functools import lru_cache

from geoguardian.config import settings
from geoguardian.services.alert_dispatcher import AlertDispatcher
from geoguardian.services.blob_store import BlobStore, GCSBlobStore, InMemoryBlobStore
from geoguardian.services.notification_channel import (
    LogNotificationChannel,
    NotificationChannel,
    WebhookNotificationChannel,
)
from geoguardian.services.region_store import FirestoreRegionStore, InMemoryRegionStore, RegionStore
from geoguardian.services.scheduler import MonitoringScheduler
from geoguardian.services.sentinel_client import ImageryProvider, SentinelHubClient

logger = logging.getLogger(__name__)


@lru_cache
def get_blob_store() -> BlobStore:
    if settings.PERSISTENCE_BACKEND == "memory":
        logger.info("Using in-memory blob store")
        return InMemoryBlobStore()
    return GCSBlobStore(project_id=settings.GCP_PROJECT_ID, bucket_name=settings.GCS_BUCKET_NAME)


@lru_cache
def get_region_store() -> RegionStore:
    if settings.PERSISTENCE_BACKEND == "memory":
        logger.info("Using in-memory region store")
        return InMemoryRegionStore()
    return FirestoreRegionStore(
        project_id=settings.GCP_PROJECT_ID,
        database=settings.FIRESTORE_DATABASE,
        collection=settings.REGIONS_COLLECTION,
    )


@lru_cache
def get_imagery_provider() -> ImageryProvider:
    return SentinelHubClient()


@lru_cache
def get_notification_channel() -> NotificationChannel:
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotificationChannel(settings.NOTIFICATION_WEBHOOK_URL)
    if settings.BACKEND_ENV == "production":
        logger.warning("NOTIFICATION_WEBHOOK_URL is not set; alerts will only be logged")
    return LogNotificationChannel()


@lru_cache
def get_alert_dispatcher() -> AlertDispatcher:
    return AlertDispatcher(
        channel=get_notification_channel(),
        sender=settings.ALERT_SENDER,
        dashboard_url=settings.DASHBOARD_URL,
    )


@lru_cache
def get_scheduler() -> MonitoringScheduler:
    return MonitoringScheduler(
        region_store=get_region_store(),
        blob_store=get_blob_store(),
        provider=get_imagery_provider(),
        dispatcher=get_alert_dispatcher(),
    )
