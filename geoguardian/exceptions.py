"""
Exception hierarchy shared by the monitoring pipeline.

Input errors subclass ValueError so callers that already treat bad input as a
ValueError (pydantic validators, route handlers) keep working.
"""


class GeoGuardianError(Exception):
    """Base class for all pipeline errors."""


# Input errors
class InvalidBBoxError(GeoGuardianError, ValueError):
    """Bounding box is not four ordered floats with west < east and south < north."""


class DateRangeError(GeoGuardianError, ValueError):
    """Start date is not strictly before the end date."""


class InsufficientDatesError(GeoGuardianError, ValueError):
    """Fewer than two dates were supplied for a time-lapse."""


class TooManyFramesError(GeoGuardianError, ValueError):
    """A time-lapse request would produce more frames than allowed."""


class ResolutionError(GeoGuardianError, ValueError):
    """Requested output size is too coarse for the bounding box."""


# Decode / format errors
class DecodeError(GeoGuardianError):
    """Image bytes could not be decoded as a raster image."""


class DimensionError(GeoGuardianError):
    """A decoded image has zero width or height."""


class NoFramesGeneratedError(GeoGuardianError):
    """Every acquisition in a time-lapse run failed."""


# External dependency errors
class AcquisitionError(GeoGuardianError):
    """The imagery provider could not be reached or rejected the request."""


class NoDataError(AcquisitionError):
    """No usable imagery exists for the requested date and area."""


class BlobNotFoundError(GeoGuardianError, KeyError):
    """A blob reference does not exist in the blob store."""


class RegionNotFoundError(GeoGuardianError, KeyError):
    """A monitored region id does not exist in the region store."""


class StaleRegionError(GeoGuardianError):
    """A region save was rejected because the stored version moved on."""


class NotificationError(GeoGuardianError):
    """A notification channel could not deliver a message."""
