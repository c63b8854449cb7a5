"""
This module defines the Pydantic models for time-lapse frames and the
request/response shapes of the time-lapse API.
"""

from datetime import date
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


class TimelapseFrame(BaseModel):
    """One labeled image of a sequence. Immutable once generated."""
    date: date
    ordinal: int = Field(..., ge=0)
    image: bytes = Field(..., repr=False)
    size: int = Field(..., ge=0, description="Byte length of the encoded image")

    model_config = {"frozen": True}


class StoredFrame(BaseModel):
    """A frame persisted to the blob store."""
    frame_id: str
    ordinal: int
    date: date
    url: str


class TimelapseMetadata(BaseModel):
    start_date: date
    end_date: date
    bbox: List[float]
    frame_count: int
    dates: List[date]
    dimensions: str
    delay_ms: int = 800


class TimelapseResult(BaseModel):
    """Stored sequence returned by `generate_timelapse`."""
    sequence_id: str
    frames: List[StoredFrame]
    metadata: TimelapseMetadata


class TimelapseRequest(BaseModel):
    """
    Incoming time-lapse request. The bbox may arrive as a "w,s,e,n" string, a
    list or a dict; the route normalises it before any pipeline code sees it.
    """
    start_date: date
    end_date: date
    bbox: Union[str, List[float], Dict[str, float]]
    interval_days: int = Field(15, ge=1, le=365)
    width: int = Field(512, ge=64, le=2500)
    height: int = Field(512, ge=64, le=2500)


class SequenceFrames(BaseModel):
    sequence_id: str
    frame_count: int
    frames: List[StoredFrame]
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    bbox: Optional[List[float]] = None
