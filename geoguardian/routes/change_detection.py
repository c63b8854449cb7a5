"""
This module defines the API routes for comparing two stored images and
retrieving the resulting difference visualisation.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from geoguardian.dependencies import get_blob_store
from geoguardian.exceptions import BlobNotFoundError, DecodeError, DimensionError
from geoguardian.models.change_report import ChangeReport
from geoguardian.services.blob_store import BlobStore
from geoguardian.services.change_detection import compare_images

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter()


class CompareRequest(BaseModel):
    """References of the two stored images to compare."""
    before_ref: str = Field(..., min_length=1)
    after_ref: str = Field(..., min_length=1)


@router.post(
    "/change-detection",
    response_model=ChangeReport,
    summary="Compare two stored images and quantify the change",
)
async def compare(
    request: CompareRequest,
    blob_store: BlobStore = Depends(get_blob_store),
):
    """
    Loads both images from the blob store, runs change detection and stores a
    diff visualisation when possible.

    Raises:
        HTTPException: 404 if either reference is unknown.
        HTTPException: 422 if either image cannot be decoded.
    """
    logger.info("🔍 Comparing images: %s vs %s", request.before_ref, request.after_ref)
    try:
        before = await blob_store.get(request.before_ref)
        after = await blob_store.get(request.after_ref)
    except BlobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Image not found: {e.args[0]}")

    try:
        return await compare_images(before, after, blob_store)
    except (DecodeError, DimensionError) as e:
        logger.warning("Rejected comparison %s vs %s: %s", request.before_ref, request.after_ref, e)
        raise HTTPException(status_code=422, detail=str(e))


@router.get(
    "/change-detection/diff/{ref:path}",
    summary="Retrieve a stored difference image",
    response_class=Response,
)
async def get_diff_image(ref: str, blob_store: BlobStore = Depends(get_blob_store)):
    try:
        info = await blob_store.stat(ref)
        if info.metadata.get("type") != "difference_map":
            raise BlobNotFoundError(ref)
        data = await blob_store.get(ref)
    except BlobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Diff image not found")
    return Response(content=data, media_type=info.content_type)
