"""
This module provides utility functions for normalising loosely typed bounding
box payloads into the strict [west, south, east, north] form used by the core.
"""

from typing import Any

from pydantic import ValidationError

from geoguardian.exceptions import InvalidBBoxError
from geoguardian.models.monitored_region import BoundingBox


def normalize_bbox(raw: Any) -> BoundingBox:
    """
    Converts a bbox payload into a validated BoundingBox.

    Accepted shapes:
        - "west,south,east,north" (comma separated string)
        - [west, south, east, north] (list or tuple of numbers / numeric strings)
        - {"west": .., "south": .., "east": .., "north": ..}
        - an existing BoundingBox

    Raises:
        InvalidBBoxError: If the payload does not describe exactly four ordered floats.
    """
    if isinstance(raw, BoundingBox):
        return raw

    try:
        if isinstance(raw, str):
            values = [float(part.strip()) for part in raw.split(",")]
            return BoundingBox.from_list(values)
        if isinstance(raw, (list, tuple)):
            return BoundingBox.from_list([float(v) for v in raw])
        if isinstance(raw, dict):
            return BoundingBox(**raw)
    except InvalidBBoxError:
        raise
    except (TypeError, ValueError, ValidationError) as e:
        raise InvalidBBoxError(f"Invalid bbox {raw!r}: {e}") from e

    raise InvalidBBoxError(
        f"BBox must be a 'west,south,east,north' string or a list of 4 numbers, got {type(raw).__name__}"
    )
