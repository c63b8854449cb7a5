"""
This module provides utility functions for validating imagery requests, such as
the ground resolution implied by a bounding box and an output size.
"""

from geopy.distance import geodesic

from geoguardian.exceptions import ResolutionError
from geoguardian.models.monitored_region import BoundingBox

# Sentinel Hub rejects requests coarser than this
MAX_METERS_PER_PIXEL = 1500.0


def ground_size_km(bbox: BoundingBox) -> tuple:
    """
    Returns the (width_km, height_km) of the bounding box, measured along its
    southern edge and western edge using geodesic distances.
    """
    width_km = geodesic((bbox.south, bbox.west), (bbox.south, bbox.east)).km
    height_km = geodesic((bbox.south, bbox.west), (bbox.north, bbox.west)).km
    return width_km, height_km


def validate_resolution(
    bbox: BoundingBox,
    width: int,
    height: int,
    max_meters_per_pixel: float = MAX_METERS_PER_PIXEL,
) -> None:
    """
    Validates that rendering the bbox at width x height pixels stays within the
    provider's coarsest supported resolution.

    Raises:
        ResolutionError: If either axis exceeds `max_meters_per_pixel`.
    """
    width_km, height_km = ground_size_km(bbox)

    x_resolution = width_km * 1000 / width
    y_resolution = height_km * 1000 / height

    if x_resolution > max_meters_per_pixel or y_resolution > max_meters_per_pixel:
        raise ResolutionError(
            f"Requested resolution exceeds {max_meters_per_pixel:.0f} m/px"
            f" (got {x_resolution:.0f} x {y_resolution:.0f} m/px)."
            " Use a smaller bbox or a larger output size."
        )
