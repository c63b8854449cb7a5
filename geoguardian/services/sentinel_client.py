"""
Sentinel Hub imagery acquisition.

Fetches true-colour Sentinel-2 L2A JPEG renders for a bounding box around a
given date through the Process API.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Awaitable, Callable, Optional, Tuple

import httpx

from geoguardian.config import settings
from geoguardian.exceptions import NoDataError
from geoguardian.models.monitored_region import BoundingBox

logger = logging.getLogger(__name__)

# Refresh tokens this many seconds before the provider-declared expiry
TOKEN_EXPIRY_MARGIN_SECONDS = 300

TRUE_COLOR_EVALSCRIPT = """
//VERSION=3
function setup() {
  return {
    input: ["B04", "B03", "B02", "dataMask"],
    output: { bands: 3 }
  };
}

function evaluatePixel(sample) {
  return [2.5 * sample.B04, 2.5 * sample.B03, 2.5 * sample.B02];
}
"""


class ImageryProvider(ABC):
    """Source of satellite imagery for a date and bounding box."""

    @abstractmethod
    async def fetch(self, day: date, bbox: BoundingBox, width: int = 512, height: int = 512) -> bytes:
        """Return encoded image bytes; raises NoDataError when nothing usable exists."""


class TokenCache:
    """
    Holds one OAuth access token and refreshes it when it is missing or within
    `margin` seconds of expiring. Concurrent callers share a single refresh.
    """

    def __init__(
        self,
        margin: float = TOKEN_EXPIRY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.margin = margin
        self._clock = clock
        self._token: Optional[str] = None
        self._refresh_at = 0.0
        self._lock = asyncio.Lock()

    def _valid(self) -> bool:
        return self._token is not None and self._clock() < self._refresh_at

    async def get(self, refresh: Callable[[], Awaitable[Tuple[str, float]]]) -> str:
        """
        Return the cached token, calling `refresh` for a new
        `(access_token, expires_in_seconds)` pair when needed.
        """
        if self._valid():
            return self._token

        async with self._lock:
            if not self._valid():
                token, expires_in = await refresh()
                self._token = token
                self._refresh_at = self._clock() + expires_in - self.margin
        return self._token

    def invalidate(self) -> None:
        self._token = None
        self._refresh_at = 0.0


class SentinelHubClient(ImageryProvider):
    """Client for the Sentinel Hub OAuth and Process APIs."""

    def __init__(
        self,
        client_id: str = None,
        client_secret: str = None,
        token_url: str = None,
        process_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.SENTINEL_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.SENTINEL_CLIENT_SECRET
        self.token_url = token_url or settings.SENTINEL_TOKEN_URL
        self.process_url = process_url or settings.SENTINEL_PROCESS_URL
        self.timeout = timeout or settings.SENTINEL_TIMEOUT_SECONDS
        self.window_days = settings.SENTINEL_SEARCH_WINDOW_DAYS
        self.max_cloud_coverage = settings.SENTINEL_MAX_CLOUD_COVERAGE
        self.min_image_bytes = settings.MIN_IMAGE_BYTES
        self.token_cache = TokenCache()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _request_token(self) -> Tuple[str, float]:
        logger.info("🔑 Requesting Sentinel Hub access token")
        async with self._client() as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            response.raise_for_status()
            payload = response.json()
        return payload["access_token"], float(payload.get("expires_in", 3600))

    def build_request(self, day: date, bbox: BoundingBox, width: int, height: int) -> dict:
        """Process API request body for one acquisition."""
        window = timedelta(days=self.window_days)
        date_from = (day - window).isoformat()
        date_to = (day + window).isoformat()
        return {
            "input": {
                "bounds": {
                    "bbox": bbox.as_list(),
                    "properties": {"crs": "http://www.opengis.net/def/crs/EPSG/0/4326"},
                },
                "data": [
                    {
                        "type": "sentinel-2-l2a",
                        "dataFilter": {
                            "timeRange": {
                                "from": f"{date_from}T00:00:00Z",
                                "to": f"{date_to}T23:59:59Z",
                            },
                            "maxCloudCoverage": self.max_cloud_coverage,
                        },
                    }
                ],
            },
            "output": {
                "width": width,
                "height": height,
                "responses": [{"identifier": "default", "format": {"type": "image/jpeg"}}],
            },
            "evalscript": TRUE_COLOR_EVALSCRIPT,
        }

    async def fetch(self, day: date, bbox: BoundingBox, width: int = 512, height: int = 512) -> bytes:
        logger.info("🛰️ Fetching Sentinel-2 image for %s, bbox %s", day.isoformat(), bbox.as_list())

        try:
            token = await self.token_cache.get(self._request_token)
            async with self._client() as client:
                response = await client.post(
                    self.process_url,
                    json=self.build_request(day, bbox, width, height),
                    headers={"Authorization": f"Bearer {token}", "Accept": "image/jpeg"},
                )
            if response.status_code == 401:
                self.token_cache.invalidate()
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise NoDataError(f"Sentinel Hub timed out after {self.timeout}s for {day}") from e
        except httpx.HTTPStatusError as e:
            logger.error("Sentinel Hub returned %s: %s", e.response.status_code, e.response.text[:500])
            raise NoDataError(f"Sentinel Hub returned status {e.response.status_code} for {day}") from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise NoDataError(f"Failed to fetch satellite image for {day}: {e}") from e

        image = response.content
        logger.info("Sentinel Hub response received: %d bytes", len(image))
        if len(image) < self.min_image_bytes:
            raise NoDataError(
                f"No satellite data available for {day} ({len(image)} bytes). Try a different date."
            )
        return image
