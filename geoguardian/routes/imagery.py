"""
This module defines the API routes for acquiring a satellite image for a date
and area, storing it, and serving stored acquisitions. The returned references
feed the change detection route.
"""

import logging
from datetime import date
from typing import Dict, List, Union

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from geoguardian.dependencies import get_blob_store, get_imagery_provider
from geoguardian.exceptions import AcquisitionError, BlobNotFoundError, NoDataError
from geoguardian.services.blob_store import BlobStore
from geoguardian.services.sentinel_client import ImageryProvider
from geoguardian.utils.geometry import normalize_bbox
from geoguardian.utils.validators import validate_resolution

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_URL_TEMPLATE = "/api/imagery/{ref}"


class AcquisitionRequest(BaseModel):
    date: date
    bbox: Union[str, List[float], Dict[str, float]]
    width: int = Field(512, ge=64, le=2500)
    height: int = Field(512, ge=64, le=2500)


class AcquiredImage(BaseModel):
    """A stored acquisition, addressable by `ref`."""
    ref: str
    url: str
    date: date
    bbox: List[float]
    size: int = Field(..., description="Payload size in bytes")


@router.post(
    "/imagery",
    response_model=AcquiredImage,
    status_code=status.HTTP_201_CREATED,
    summary="Acquire and store a satellite image",
)
async def acquire_image(
    request: AcquisitionRequest,
    provider: ImageryProvider = Depends(get_imagery_provider),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """
    Fetches the least cloudy image around `date` for the bbox and stores it.

    Raises:
        HTTPException: 400 for an invalid bbox or a too coarse resolution.
        HTTPException: 404 if no imagery is available for the date.
        HTTPException: 502 if the imagery provider fails otherwise.
    """
    try:
        bbox = normalize_bbox(request.bbox)
        validate_resolution(bbox, request.width, request.height)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info("📸 Acquiring image for %s, bbox %s", request.date, bbox.as_list())
    try:
        image = await provider.fetch(request.date, bbox, request.width, request.height)
    except NoDataError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AcquisitionError as e:
        logger.error("❌ Acquisition failed for %s: %s", request.date, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if not image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No image data received")

    ref = await blob_store.put(
        image,
        "image/jpeg",
        {
            "type": "acquisition",
            "date": request.date.isoformat(),
            "bbox": ",".join(str(v) for v in bbox.as_list()),
        },
    )
    logger.info("✅ Image stored: %s (%d bytes)", ref, len(image))
    return AcquiredImage(
        ref=ref,
        url=IMAGE_URL_TEMPLATE.format(ref=ref),
        date=request.date,
        bbox=bbox.as_list(),
        size=len(image),
    )


@router.get(
    "/imagery/{ref:path}",
    summary="Retrieve a stored satellite image",
    response_class=Response,
)
async def get_image(ref: str, blob_store: BlobStore = Depends(get_blob_store)):
    try:
        info = await blob_store.stat(ref)
        if info.metadata.get("type") != "acquisition":
            raise BlobNotFoundError(ref)
        data = await blob_store.get(ref)
    except BlobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(
        content=data,
        media_type=info.content_type,
        headers={"Cache-Control": "public, max-age=3600"},
    )
