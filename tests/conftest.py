import asyncio
import os
from datetime import datetime, timezone
from io import BytesIO
from types import SimpleNamespace

# Keep imports of the app off real cloud backends
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import numpy as np
import pytest
from PIL import Image

from geoguardian.exceptions import NoDataError, NotificationError
from geoguardian.models.monitored_region import MonitoredRegion
from geoguardian.services.alert_dispatcher import AlertDispatcher
from geoguardian.services.blob_store import InMemoryBlobStore
from geoguardian.services.notification_channel import NotificationChannel
from geoguardian.services.region_store import InMemoryRegionStore
from geoguardian.services.scheduler import MonitoringScheduler
from geoguardian.services.sentinel_client import ImageryProvider

FIXED_NOW = datetime(2024, 6, 3, 9, 0, tzinfo=timezone.utc)
TEST_BBOX = [76.95, 9.82, 77.10, 9.97]


def make_image(size=(64, 64), base=(40, 90, 40), block=None, block_color=(240, 240, 240), seed=0, fmt="PNG"):
    """
    A textured test image: `base` plus small per-pixel noise (well under the
    change threshold), optionally with a solid `block` = (x0, y0, x1, y1).
    The noise keeps encoded payloads above the minimum image size.
    """
    width, height = size
    rng = np.random.default_rng(seed)
    pixels = np.asarray(base) + rng.integers(0, 10, size=(height, width, 3))
    pixels = np.clip(pixels, 0, 255).astype(np.uint8)
    if block is not None:
        x0, y0, x1, y1 = block
        pixels[y0:y1, x0:x1] = block_color
    buffer = BytesIO()
    Image.fromarray(pixels).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeProvider(ImageryProvider):
    """Serves queued images in order; `None` entries raise NoDataError."""

    def __init__(self, images=None, default=None):
        self.images = list(images or [])
        self.default = default
        self.calls = []

    async def fetch(self, day, bbox, width=512, height=512):
        self.calls.append(day)
        await asyncio.sleep(0)
        image = self.images.pop(0) if self.images else self.default
        if image is None:
            raise NoDataError(f"No satellite data available for {day}")
        return image


class FakeChannel(NotificationChannel):
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send(self, recipient, content):
        if self.fail:
            raise NotificationError("relay unavailable")
        self.sent.append((recipient, content))


def make_region(**overrides):
    fields = {
        "owner_id": "user-1",
        "owner_email": "owner@example.com",
        "name": "Periyar Forest",
        "location": "Kerala",
        "bbox": TEST_BBOX,
    }
    fields.update(overrides)
    return MonitoredRegion(**fields)


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def region_store():
    return InMemoryRegionStore()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def provider():
    return FakeProvider(default=make_image(seed=1))


@pytest.fixture
def dispatcher(channel):
    return AlertDispatcher(channel, sender="alerts@example.com", dashboard_url="http://localhost:3000/analysis-history")


@pytest.fixture
def scheduler(region_store, blob_store, provider, dispatcher):
    return MonitoringScheduler(
        region_store=region_store,
        blob_store=blob_store,
        provider=provider,
        dispatcher=dispatcher,
        hour=9,
        minute=0,
        min_image_bytes=1000,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def services(blob_store, region_store, provider, channel, scheduler):
    return SimpleNamespace(
        blob_store=blob_store,
        region_store=region_store,
        provider=provider,
        channel=channel,
        scheduler=scheduler,
    )
