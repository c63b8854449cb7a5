"""Pixel-level change detection between two satellite images."""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from geoguardian.exceptions import DecodeError, DimensionError
from geoguardian.models.change_report import ChangeReport
from geoguardian.services.blob_store import BlobStore

logger = logging.getLogger(__name__)

# RGB distance above which a pixel counts towards the change percentage (max ~441.7)
CHANGE_DISTANCE_THRESHOLD = 50
# RGB distance above which a pixel is highlighted in the diff visualisation
DIFF_HIGHLIGHT_THRESHOLD = 30

DIFF_RED_BOOST = 100
DIFF_GREEN_BLUE_CUT = 50

DEFAULT_DIFF_SIZE = (512, 512)
RESAMPLING = Image.Resampling.LANCZOS


def _decode(data: bytes, label: str) -> Image.Image:
    """Decode image bytes, rejecting undecodable or empty rasters."""
    if not data:
        raise DecodeError(f"{label} image is empty")
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise DecodeError(f"{label} image could not be decoded: {exc}") from exc

    width, height = image.size
    if width == 0 or height == 0:
        raise DimensionError(f"{label} image has zero dimension ({width}x{height})")
    return image


def _to_rgb_array(image: Image.Image, size: Tuple[int, int]) -> np.ndarray:
    """Cover-fit the image to `size` and return its RGB samples as int32."""
    fitted = ImageOps.fit(image.convert("RGB"), size, method=RESAMPLING)
    return np.asarray(fitted, dtype=np.int32)


def _color_distance(before: np.ndarray, after: np.ndarray) -> np.ndarray:
    """Euclidean distance in RGB space for every pixel."""
    delta = after - before
    return np.sqrt(np.sum(delta * delta, axis=2))


def detect_changes(before_bytes: bytes, after_bytes: bytes) -> ChangeReport:
    """
    Compare two images and quantify how many pixels changed.

    Both images are normalised to the element-wise minimum of their sizes, so
    the larger one is downsampled.

    Raises:
        DecodeError: If either input is not a decodable raster image.
        DimensionError: If either decoded image has a zero dimension.
    """
    before = _decode(before_bytes, "before")
    after = _decode(after_bytes, "after")

    logger.info("Before image: %dx%d, after image: %dx%d", *before.size, *after.size)

    size = (min(before.width, after.width), min(before.height, after.height))
    logger.info("Normalizing both images to %dx%d", *size)

    distance = _color_distance(_to_rgb_array(before, size), _to_rgb_array(after, size))

    total_pixels = int(distance.size)
    changed_pixels = int(np.count_nonzero(distance > CHANGE_DISTANCE_THRESHOLD))

    report = ChangeReport.from_pixel_counts(changed_pixels, total_pixels)
    logger.info(
        "Changed pixels: %d/%d (%.2f%%), severity=%s, change_type=%s",
        changed_pixels,
        total_pixels,
        report.change_percentage,
        report.severity,
        report.change_type,
    )
    return report


def render_diff(
    before_bytes: bytes,
    after_bytes: bytes,
    width: int = DEFAULT_DIFF_SIZE[0],
    height: int = DEFAULT_DIFF_SIZE[1],
) -> bytes:
    """
    Render a PNG of the after image with changed pixels highlighted in red.

    This resize is independent from the one used by `detect_changes`: both
    images are fitted to the fixed `width x height`.
    """
    size = (width, height)
    before = _to_rgb_array(_decode(before_bytes, "before"), size)
    after = _to_rgb_array(_decode(after_bytes, "after"), size)

    highlight = _color_distance(before, after) > DIFF_HIGHLIGHT_THRESHOLD

    diff = after.copy()
    diff[highlight, 0] = np.minimum(255, after[highlight, 0] + DIFF_RED_BOOST)
    diff[highlight, 1] = np.maximum(0, after[highlight, 1] - DIFF_GREEN_BLUE_CUT)
    diff[highlight, 2] = np.maximum(0, after[highlight, 2] - DIFF_GREEN_BLUE_CUT)

    buffer = BytesIO()
    Image.fromarray(diff.astype(np.uint8)).save(buffer, format="PNG")
    png = buffer.getvalue()
    logger.info("Diff image created: %d bytes (%d highlighted pixels)", len(png), int(highlight.sum()))
    return png


async def compare_images(
    before_bytes: bytes,
    after_bytes: bytes,
    blob_store: Optional[BlobStore] = None,
) -> ChangeReport:
    """
    Run change detection and, when a blob store is given, attach a stored diff
    visualisation.

    The diff is an optional enrichment: any failure while rendering or storing
    it is logged and the report is returned without `diff_image_ref`.
    """
    report = await asyncio.to_thread(detect_changes, before_bytes, after_bytes)

    if blob_store is None:
        return report

    try:
        diff_png = await asyncio.to_thread(render_diff, before_bytes, after_bytes)
        diff_ref = await blob_store.put(
            diff_png,
            content_type="image/png",
            metadata={"type": "difference_map"},
        )
        report = report.model_copy(update={"diff_image_ref": diff_ref})
        logger.info("Diff image saved: %s", diff_ref)
    except Exception as e:
        logger.warning("Diff image creation failed: %s", e)

    return report
