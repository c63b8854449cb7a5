"""
Monitoring scheduler: periodic and manual change checks for monitored regions.

Three independent triggers (daily, weekly on Monday, monthly on the 1st) fire
at the same wall-clock time in UTC. Every check, scheduled or manual, runs the
same single-region cycle under a per-region lock.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from geoguardian.config import settings
from geoguardian.exceptions import AcquisitionError
from geoguardian.models.change_report import BatchSummary, CheckOutcome
from geoguardian.models.monitored_region import FREQUENCIES, MonitoredRegion
from geoguardian.services.alert_dispatcher import AlertDispatcher, AlertPayload
from geoguardian.services.blob_store import BlobStore
from geoguardian.services.change_detection import compare_images
from geoguardian.services.region_store import RegionStore
from geoguardian.services.sentinel_client import ImageryProvider

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_trigger_time(frequency: str, now: datetime, hour: int = 9, minute: int = 0) -> datetime:
    """
    The first activation strictly after `now` for a frequency class.

    daily: every day at hour:minute. weekly: Mondays. monthly: the 1st.
    """
    if frequency not in FREQUENCIES:
        raise ValueError(f"Unknown frequency {frequency!r}, expected one of {FREQUENCIES}")

    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)

    if frequency == "daily":
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    if frequency == "weekly":
        candidate += timedelta(days=(0 - now.weekday()) % 7)
        if candidate <= now:
            candidate += timedelta(days=7)
        return candidate

    candidate = candidate.replace(day=1)
    if candidate <= now:
        if candidate.month == 12:
            candidate = candidate.replace(year=candidate.year + 1, month=1)
        else:
            candidate = candidate.replace(month=candidate.month + 1)
    return candidate


class MonitoringScheduler:
    """Runs region checks and owns the periodic trigger tasks."""

    def __init__(
        self,
        region_store: RegionStore,
        blob_store: BlobStore,
        provider: ImageryProvider,
        dispatcher: AlertDispatcher,
        hour: int = None,
        minute: int = None,
        min_image_bytes: int = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.region_store = region_store
        self.blob_store = blob_store
        self.provider = provider
        self.dispatcher = dispatcher
        self.hour = settings.SCHEDULE_HOUR if hour is None else hour
        self.minute = settings.SCHEDULE_MINUTE if minute is None else minute
        self.min_image_bytes = settings.MIN_IMAGE_BYTES if min_image_bytes is None else min_image_bytes
        self._clock = clock
        # region_id -> (lock, number of cycles holding or waiting on it)
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}
        self._tasks: List[asyncio.Task] = []

    # Lifecycle

    def start(self) -> None:
        if self._tasks:
            return
        logger.info("🕐 Starting automated monitoring scheduler")
        for frequency in FREQUENCIES:
            task = asyncio.create_task(self._trigger_loop(frequency), name=f"monitoring-{frequency}")
            self._tasks.append(task)
        logger.info(
            "📅 Checks at %02d:%02d UTC: daily every day, weekly on Monday, monthly on the 1st",
            self.hour,
            self.minute,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Monitoring scheduler stopped")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def _trigger_loop(self, frequency: str) -> None:
        while True:
            now = self._clock()
            fire_at = next_trigger_time(frequency, now, self.hour, self.minute)
            logger.info("Next %s check at %s", frequency, fire_at.isoformat())
            await asyncio.sleep((fire_at - now).total_seconds())
            try:
                await self.run_scheduled_batch(frequency)
            except Exception as e:
                logger.exception("❌ Error in %s check: %s", frequency, e)

    # Checks

    async def run_scheduled_batch(self, frequency: str) -> BatchSummary:
        """
        Check every enabled region of `frequency` sequentially. A failing region
        is logged and counted; it never stops the batch.
        """
        if frequency not in FREQUENCIES:
            raise ValueError(f"Unknown frequency {frequency!r}, expected one of {FREQUENCIES}")

        logger.info("⏰ %s monitoring check started", frequency.capitalize())
        regions = await self.region_store.load_all_enabled(frequency)
        logger.info("Found %d %s regions to check", len(regions), frequency)

        summary = BatchSummary(frequency=frequency, total=len(regions))
        for region in regions:
            try:
                outcome = await self._run_cycle(region.region_id)
            except Exception as e:
                summary.failed += 1
                logger.error("❌ Error checking region %s: %s", region.region_id, e, exc_info=True)
                continue
            summary.succeeded += 1
            summary.outcomes.append(outcome)

        logger.info(
            "✅ %s monitoring check complete: %d succeeded, %d failed",
            frequency,
            summary.succeeded,
            summary.failed,
        )
        return summary

    async def check_region_now(self, region_id: str) -> CheckOutcome:
        """Run the single-region cycle outside the schedule. Raises RegionNotFoundError."""
        logger.info("Manual check requested for region %s", region_id)
        return await self._run_cycle(region_id)

    @asynccontextmanager
    async def _region_lock(self, region_id: str):
        """Hold the region's lock; the entry is dropped once no cycle uses it."""
        lock, users = self._locks.get(region_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[region_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[region_id]
            if users == 1:
                del self._locks[region_id]
            else:
                self._locks[region_id] = (lock, users - 1)

    async def _run_cycle(self, region_id: str) -> CheckOutcome:
        # The record is re-read under the lock so a queued cycle sees the
        # baseline written by the one before it.
        async with self._region_lock(region_id):
            region = await self.region_store.load(region_id)
            return await self._check_region(region)

    async def _check_region(self, region: MonitoredRegion) -> CheckOutcome:
        logger.info("📍 Checking region: %s (%s)", region.name, region.region_id)
        now = self._clock()
        today = now.date()

        try:
            image = await self.provider.fetch(today, region.bbox)
        except AcquisitionError as e:
            logger.warning("⚠️ No data for %s on %s: %s", region.name, today, e)
            return CheckOutcome(region_id=region.region_id, status="no_data", checked_at=now)

        if not image or len(image) < self.min_image_bytes:
            logger.warning("⚠️ No data for %s on %s", region.name, today)
            return CheckOutcome(region_id=region.region_id, status="no_data", checked_at=now)

        new_ref = await self.blob_store.put(
            image,
            content_type="image/jpeg",
            metadata={"type": "monitoring", "region_id": region.region_id, "date": today.isoformat()},
        )
        logger.info("✅ New image saved: %s", new_ref)

        if not region.last_baseline_image_ref:
            await self.region_store.save(
                region.model_copy(update={"last_baseline_image_ref": new_ref, "last_checked_at": now})
            )
            logger.info("📝 First check for %s - baseline set", region.name)
            return CheckOutcome(region_id=region.region_id, status="baseline_set", checked_at=now)

        baseline = await self.blob_store.get(region.last_baseline_image_ref)
        report = await compare_images(baseline, image, self.blob_store)
        logger.info("📊 Change detected: %.2f%% (%s)", report.change_percentage, report.severity)

        alert_sent = await self._maybe_alert(region, report, today)

        await self.region_store.save(
            region.model_copy(
                update={
                    "last_baseline_image_ref": new_ref,
                    "last_checked_at": now,
                    "last_change_percentage": report.change_percentage,
                    "total_alerts_sent": region.total_alerts_sent + (1 if alert_sent else 0),
                }
            )
        )
        logger.info("✅ Region %s check complete", region.name)
        return CheckOutcome(
            region_id=region.region_id,
            status="compared",
            report=report,
            alert_sent=alert_sent,
            checked_at=now,
        )

    async def _maybe_alert(self, region: MonitoredRegion, report, today) -> bool:
        if report.severity not in region.monitoring.alert_severities:
            logger.info("ℹ️ No alert needed - %s not in alert list", report.severity)
            return False

        recipient: Optional[str] = region.owner_email
        if not recipient:
            logger.warning("Region %s has no owner contact; alert skipped", region.region_id)
            return False

        logger.info("📧 Sending alert for region %s", region.name)
        return await self.dispatcher.send(recipient, AlertPayload.from_report(report, region.name, today))
