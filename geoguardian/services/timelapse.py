"""
Time-lapse frame pipeline: builds a date series, acquires one image per date,
stamps each with its date and stores the sequence frame by frame.
"""
import asyncio
import logging
import uuid
from datetime import date, timedelta
from io import BytesIO
from typing import List, Sequence

from PIL import Image, ImageDraw, ImageFont

from geoguardian.config import settings
from geoguardian.exceptions import (
    DateRangeError,
    GeoGuardianError,
    InsufficientDatesError,
    NoFramesGeneratedError,
    TooManyFramesError,
)
from geoguardian.models.monitored_region import BoundingBox
from geoguardian.models.timelapse import (
    SequenceFrames,
    StoredFrame,
    TimelapseFrame,
    TimelapseMetadata,
    TimelapseResult,
)
from geoguardian.services.blob_store import BlobStore
from geoguardian.services.sentinel_client import ImageryProvider
from geoguardian.utils.validators import validate_resolution

logger = logging.getLogger(__name__)

JPEG_QUALITY = 85
FRAME_URL_TEMPLATE = "/api/timelapse/frame/{ref}"

# Date label box, anchored to the lower-right corner
LABEL_BOX_SIZE = (150, 30)
LABEL_MARGIN = 10
LABEL_FONT_SIZE = 16


def date_range(start: date, end: date, interval_days: int = 15) -> List[date]:
    """
    Dates from `start` stepping by `interval_days`, always ending with `end`.

    Raises:
        DateRangeError: If start is not strictly before end.
        ValueError: If interval_days is below 1.
    """
    if start >= end:
        raise DateRangeError("Start date must be before end date")
    if interval_days < 1:
        raise ValueError("interval_days must be at least 1")

    dates = []
    current = start
    step = timedelta(days=interval_days)
    while current <= end:
        dates.append(current)
        current += step

    if dates[-1] != end:
        dates.append(end)

    logger.info("📅 Generated %d dates from %s to %s", len(dates), start, end)
    return dates


def label_frame(image_bytes: bytes, day: date, width: int, height: int) -> bytes:
    """Resize to width x height, draw the date label and encode as JPEG."""
    with Image.open(BytesIO(image_bytes)) as source:
        frame = source.convert("RGB").resize((width, height), Image.Resampling.LANCZOS)

    overlay = Image.new("RGBA", frame.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    box_w, box_h = LABEL_BOX_SIZE
    x0 = max(0, width - box_w - LABEL_MARGIN)
    y0 = max(0, height - box_h - LABEL_MARGIN)
    draw.rounded_rectangle((x0, y0, x0 + box_w, y0 + box_h), radius=5, fill=(0, 0, 0, 178))
    font = ImageFont.load_default(size=LABEL_FONT_SIZE)
    draw.text((x0 + 10, y0 + 7), day.isoformat(), fill=(255, 255, 255, 255), font=font)

    labeled = Image.alpha_composite(frame.convert("RGBA"), overlay).convert("RGB")
    buffer = BytesIO()
    labeled.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    return buffer.getvalue()


async def generate_frames(
    provider: ImageryProvider,
    dates: Sequence[date],
    bbox: BoundingBox,
    width: int = 512,
    height: int = 512,
    min_image_bytes: int = None,
) -> List[TimelapseFrame]:
    """
    Acquire and label one frame per date. Dates whose acquisition or decoding
    fails are skipped; ordinals number the surviving frames from 0.

    Raises:
        InsufficientDatesError: If fewer than two dates are given.
        NoFramesGeneratedError: If no date produced a frame.
    """
    if len(dates) < 2:
        raise InsufficientDatesError("At least 2 dates required for time-lapse")

    min_bytes = settings.MIN_IMAGE_BYTES if min_image_bytes is None else min_image_bytes
    logger.info("🎬 Starting time-lapse generation for %d dates", len(dates))

    frames: List[TimelapseFrame] = []
    for position, day in enumerate(dates, start=1):
        try:
            logger.info("📥 Fetching frame %d/%d for %s", position, len(dates), day)
            image_bytes = await provider.fetch(day, bbox, width, height)
            if not image_bytes or len(image_bytes) < min_bytes:
                logger.warning("⚠️ Skipping %s - insufficient data", day)
                continue

            labeled = await asyncio.to_thread(label_frame, image_bytes, day, width, height)
        except (GeoGuardianError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.error("❌ Error processing frame for %s: %s", day, e)
            continue

        frames.append(TimelapseFrame(date=day, ordinal=len(frames), image=labeled, size=len(labeled)))

    if not frames:
        raise NoFramesGeneratedError("No frames could be generated. Check dates and location.")

    logger.info("✅ Time-lapse frames ready: %d of %d dates", len(frames), len(dates))
    return frames


async def save_frames(
    blob_store: BlobStore,
    frames: Sequence[TimelapseFrame],
    metadata: TimelapseMetadata,
) -> TimelapseResult:
    """Store each frame under a new sequence id."""
    sequence_id = uuid.uuid4().hex
    bbox = ",".join(str(v) for v in metadata.bbox)
    stored: List[StoredFrame] = []

    logger.info("💾 Saving %d frames for sequence %s", len(frames), sequence_id)
    for frame in frames:
        ref = await blob_store.put(
            frame.image,
            content_type="image/jpeg",
            metadata={
                "type": "timelapse_frame",
                "sequence_id": sequence_id,
                "ordinal": frame.ordinal,
                "date": frame.date.isoformat(),
                "start_date": metadata.start_date.isoformat(),
                "end_date": metadata.end_date.isoformat(),
                "bbox": bbox,
            },
        )
        stored.append(
            StoredFrame(
                frame_id=ref,
                ordinal=frame.ordinal,
                date=frame.date,
                url=FRAME_URL_TEMPLATE.format(ref=ref),
            )
        )

    logger.info("✅ %d frames saved with sequence id %s", len(stored), sequence_id)
    return TimelapseResult(sequence_id=sequence_id, frames=stored, metadata=metadata)


async def list_sequence_frames(blob_store: BlobStore, sequence_id: str) -> SequenceFrames:
    """Stored frames of a sequence ordered by ordinal; `frames` is empty for unknown ids."""
    blobs = await blob_store.find({"type": "timelapse_frame", "sequence_id": sequence_id})
    blobs.sort(key=lambda info: int(info.metadata.get("ordinal", 0)))

    frames = [
        StoredFrame(
            frame_id=info.ref,
            ordinal=int(info.metadata.get("ordinal", 0)),
            date=date.fromisoformat(info.metadata["date"]),
            url=FRAME_URL_TEMPLATE.format(ref=info.ref),
        )
        for info in blobs
    ]

    result = SequenceFrames(sequence_id=sequence_id, frame_count=len(frames), frames=frames)
    if blobs:
        first = blobs[0].metadata
        result.start_date = date.fromisoformat(first["start_date"]) if "start_date" in first else None
        result.end_date = date.fromisoformat(first["end_date"]) if "end_date" in first else None
        if first.get("bbox"):
            result.bbox = [float(v) for v in first["bbox"].split(",")]
    return result


async def generate_timelapse(
    provider: ImageryProvider,
    blob_store: BlobStore,
    start: date,
    end: date,
    bbox: BoundingBox,
    interval_days: int = 15,
    width: int = 512,
    height: int = 512,
    max_frames: int = None,
) -> TimelapseResult:
    """
    Build the date series, enforce the frame cap before any acquisition, then
    generate and store the frames.

    Raises:
        DateRangeError, TooManyFramesError, ResolutionError: On invalid requests.
        NoFramesGeneratedError: If every acquisition failed.
    """
    limit = settings.TIMELAPSE_MAX_FRAMES if max_frames is None else max_frames
    validate_resolution(bbox, width, height)

    dates = date_range(start, end, interval_days)
    if len(dates) > limit:
        raise TooManyFramesError(
            f"Too many frames ({len(dates)}). Maximum {limit} allowed. Increase the interval."
        )

    frames = await generate_frames(provider, dates, bbox, width, height)
    metadata = TimelapseMetadata(
        start_date=start,
        end_date=end,
        bbox=bbox.as_list(),
        frame_count=len(frames),
        dates=[frame.date for frame in frames],
        dimensions=f"{width}x{height}",
    )
    return await save_frames(blob_store, frames, metadata)
