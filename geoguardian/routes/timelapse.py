"""
This module defines the API routes for generating time-lapse sequences and
serving their stored frames.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from geoguardian.config import settings
from geoguardian.dependencies import get_blob_store, get_imagery_provider
from geoguardian.exceptions import BlobNotFoundError, NoFramesGeneratedError
from geoguardian.models.timelapse import SequenceFrames, TimelapseRequest, TimelapseResult
from geoguardian.services.blob_store import BlobStore
from geoguardian.services.sentinel_client import ImageryProvider
from geoguardian.services.timelapse import generate_timelapse, list_sequence_frames
from geoguardian.utils.geometry import normalize_bbox

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/timelapse/generate",
    response_model=TimelapseResult,
    status_code=status.HTTP_201_CREATED,
    summary="Generate and store a time-lapse sequence",
)
async def create_timelapse(
    request: TimelapseRequest,
    provider: ImageryProvider = Depends(get_imagery_provider),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """
    Acquires one labeled frame per date between `start_date` and `end_date`
    and stores the frames individually.

    Raises:
        HTTPException: 400 for an invalid bbox or date range, too many frames
            or a too coarse resolution.
        HTTPException: 404 if no frame could be generated.
    """
    logger.info(
        "🎬 Time-lapse requested: %s to %s every %d days, bbox %s",
        request.start_date,
        request.end_date,
        request.interval_days,
        request.bbox,
    )
    try:
        bbox = normalize_bbox(request.bbox)
        return await generate_timelapse(
            provider,
            blob_store,
            start=request.start_date,
            end=request.end_date,
            bbox=bbox,
            interval_days=request.interval_days,
            width=request.width,
            height=request.height,
            max_frames=settings.TIMELAPSE_MAX_FRAMES,
        )
    except ValueError as e:
        logger.warning("Invalid time-lapse request: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NoFramesGeneratedError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/timelapse/frame/{ref:path}",
    summary="Retrieve a single time-lapse frame",
    response_class=Response,
)
async def get_frame(ref: str, blob_store: BlobStore = Depends(get_blob_store)):
    try:
        info = await blob_store.stat(ref)
        if info.metadata.get("type") != "timelapse_frame":
            raise BlobNotFoundError(ref)
        data = await blob_store.get(ref)
    except BlobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Frame not found")
    return Response(
        content=data,
        media_type=info.content_type,
        headers={"Cache-Control": "public, max-age=31536000"},
    )


@router.get(
    "/timelapse/{sequence_id}/frames",
    response_model=SequenceFrames,
    summary="List the frames of a stored time-lapse",
)
async def get_sequence_frames(sequence_id: str, blob_store: BlobStore = Depends(get_blob_store)):
    sequence = await list_sequence_frames(blob_store, sequence_id)
    if not sequence.frames:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No frames found for this time-lapse")
    return sequence
