"""
This module defines the Pydantic models for Monitored Regions, including their
bounding box, monitoring configuration and rolling check state.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional, Set

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from geoguardian.exceptions import InvalidBBoxError


Frequency = Literal["daily", "weekly", "monthly"]
Severity = Literal["low", "medium", "high"]

FREQUENCIES = ("daily", "weekly", "monthly")


class BoundingBox(BaseModel):
    """
    Pydantic model for a geographic rectangle, stored as [west, south, east, north].
    """
    west: float = Field(..., ge=-180, le=180, description="Western longitude")
    south: float = Field(..., ge=-90, le=90, description="Southern latitude")
    east: float = Field(..., ge=-180, le=180, description="Eastern longitude")
    north: float = Field(..., ge=-90, le=90, description="Northern latitude")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_ordering(self) -> "BoundingBox":
        if not self.west < self.east:
            raise InvalidBBoxError(f"west ({self.west}) must be less than east ({self.east})")
        if not self.south < self.north:
            raise InvalidBBoxError(f"south ({self.south}) must be less than north ({self.north})")
        return self

    @classmethod
    def from_list(cls, values: List[float]) -> "BoundingBox":
        if len(values) != 4:
            raise InvalidBBoxError(
                f"BBox must contain exactly 4 values [west, south, east, north], got {len(values)}"
            )
        west, south, east, north = (float(v) for v in values)
        return cls(west=west, south=south, east=east, north=north)

    def as_list(self) -> List[float]:
        return [self.west, self.south, self.east, self.north]


class MonitoringConfig(BaseModel):
    """
    Pydantic model for a region's standing watch settings.
    """
    enabled: bool = Field(True, description="Whether scheduled checks run for this region")
    frequency: Frequency = Field("weekly", description="Which periodic trigger checks this region")
    alert_severities: Set[Severity] = Field(
        default_factory=lambda: {"high", "medium"},
        description="Report severities that trigger an alert to the owner",
    )

    @field_serializer("alert_severities")
    def serialize_severities(self, value: Set[str]) -> List[str]:
        order = {"low": 0, "medium": 1, "high": 2}
        return sorted(value, key=order.__getitem__)


class MonitoredRegion(BaseModel):
    """
    Pydantic model for a monitored region as stored in the database.

    Rolling state (baseline ref, last check, last percentage, alert counter) is
    only written by the monitoring scheduler; `version` is bumped on every save.
    """
    region_id: Optional[str] = Field(None, description="Unique identifier for the region")
    owner_id: str = Field(..., description="User ID of the region owner")
    owner_email: Optional[str] = Field(None, description="Contact address for alerts")
    name: str = Field(..., min_length=1, max_length=100, description="Name of the region")
    description: str = Field("", description="Free-form description")
    location: str = Field("Unknown", description="Human readable location label")
    bbox: BoundingBox = Field(..., description="Geographic bounding box of the region")
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    last_checked_at: Optional[datetime] = Field(None, description="Timestamp of the last completed check")
    last_baseline_image_ref: Optional[str] = Field(None, description="Blob reference of the current baseline")
    last_change_percentage: float = Field(0.0, ge=0, le=100, description="Change percentage of the last comparison")
    total_alerts_sent: int = Field(0, ge=0, description="Number of alerts successfully dispatched")
    version: int = Field(0, ge=0, description="Optimistic concurrency counter")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Timestamp of creation",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Timestamp of the last update",
    )

    @field_validator("bbox", mode="before")
    @classmethod
    def coerce_stored_bbox(cls, v):
        # Stored records keep the bbox as a plain list
        if isinstance(v, (list, tuple)):
            return BoundingBox.from_list(list(v))
        return v

    @field_serializer("bbox")
    def serialize_bbox(self, bbox: BoundingBox) -> List[float]:
        return bbox.as_list()
