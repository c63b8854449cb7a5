"""
This module provides the region store used by the monitoring scheduler, with a
Google Cloud Firestore backend and a process-local backend for local runs and
tests.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List

from google.cloud import firestore_v1
from google.cloud.firestore_v1.async_transaction import async_transactional

from geoguardian.exceptions import RegionNotFoundError, StaleRegionError
from geoguardian.models.monitored_region import MonitoredRegion

logger = logging.getLogger(__name__)


def _next_revision(region: MonitoredRegion, region_id: str) -> MonitoredRegion:
    return region.model_copy(
        update={
            "region_id": region_id,
            "version": region.version + 1,
            "updated_at": datetime.now(timezone.utc),
        }
    )


class RegionStore(ABC):
    """
    Persistence contract for monitored regions.

    `save` is a compare-and-set on `version`: it succeeds only when the stored
    record still carries the version the caller loaded, and returns the record
    as written (version bumped, `updated_at` refreshed).
    """

    @abstractmethod
    async def load(self, region_id: str) -> MonitoredRegion:
        """Raises RegionNotFoundError for unknown ids."""

    @abstractmethod
    async def load_all_enabled(self, frequency: str) -> List[MonitoredRegion]:
        """All regions with monitoring enabled for the given frequency."""

    @abstractmethod
    async def save(self, region: MonitoredRegion) -> MonitoredRegion:
        """Raises StaleRegionError when the stored version moved on."""


class InMemoryRegionStore(RegionStore):
    """Dictionary-backed region store."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def load(self, region_id: str) -> MonitoredRegion:
        record = self._records.get(region_id)
        if record is None:
            raise RegionNotFoundError(region_id)
        return MonitoredRegion.model_validate(record)

    async def load_all_enabled(self, frequency: str) -> List[MonitoredRegion]:
        regions = [MonitoredRegion.model_validate(r) for r in self._records.values()]
        return [
            r for r in regions
            if r.monitoring.enabled and r.monitoring.frequency == frequency
        ]

    async def save(self, region: MonitoredRegion) -> MonitoredRegion:
        async with self._lock:
            region_id = region.region_id or uuid.uuid4().hex
            stored = self._records.get(region_id)
            stored_version = stored["version"] if stored else 0
            if stored_version != region.version:
                raise StaleRegionError(
                    f"Region {region_id} is at version {stored_version}, save was based on {region.version}"
                )
            saved = _next_revision(region, region_id)
            self._records[region_id] = saved.model_dump()
            return saved


class FirestoreRegionStore(RegionStore):
    """
    Region store backed by a Firestore collection. The version check and the
    write happen inside one transaction.
    """

    def __init__(self, project_id: str, database: str = "(default)", collection: str = "monitored_regions"):
        try:
            self.db = firestore_v1.AsyncClient(project=project_id, database=database)
            self.regions_ref = self.db.collection(collection)
            logger.info("Successfully connected to Firestore project %s", project_id)
        except Exception as e:
            logger.exception("Failed to connect to Firestore project %s: %s", project_id, e)
            raise

    async def load(self, region_id: str) -> MonitoredRegion:
        doc = await self.regions_ref.document(region_id).get()
        if not doc.exists:
            raise RegionNotFoundError(region_id)
        data = doc.to_dict()
        data["region_id"] = doc.id
        return MonitoredRegion.model_validate(data)

    async def load_all_enabled(self, frequency: str) -> List[MonitoredRegion]:
        regions = []
        query = self.regions_ref.where("monitoring.enabled", "==", True).where(
            "monitoring.frequency", "==", frequency
        )
        async for doc in query.stream():
            data = doc.to_dict()
            data["region_id"] = doc.id
            try:
                regions.append(MonitoredRegion.model_validate(data))
            except ValueError as e:
                # One corrupt document must not hide the rest of the batch
                logger.error("Skipping malformed region %s: %s", doc.id, e)
        return regions

    async def save(self, region: MonitoredRegion) -> MonitoredRegion:
        region_id = region.region_id or self.regions_ref.document().id
        doc_ref = self.regions_ref.document(region_id)
        saved = _next_revision(region, region_id)

        @async_transactional
        async def _compare_and_set(transaction):
            snapshot = await doc_ref.get(transaction=transaction)
            stored_version = (snapshot.to_dict() or {}).get("version", 0) if snapshot.exists else 0
            if stored_version != region.version:
                raise StaleRegionError(
                    f"Region {region_id} is at version {stored_version}, save was based on {region.version}"
                )
            transaction.set(doc_ref, saved.model_dump())

        await _compare_and_set(self.db.transaction())
        logger.info("Saved region %s at version %d", region_id, saved.version)
        return saved
