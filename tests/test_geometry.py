import pytest

from geoguardian.exceptions import InvalidBBoxError, ResolutionError
from geoguardian.models.monitored_region import BoundingBox, MonitoredRegion
from geoguardian.utils.geometry import normalize_bbox
from geoguardian.utils.validators import ground_size_km, validate_resolution


def test_normalize_bbox_from_string():
    bbox = normalize_bbox(" 76.95, 9.82,77.10 ,9.97")

    assert bbox.as_list() == [76.95, 9.82, 77.10, 9.97]


def test_normalize_bbox_from_numeric_strings_list():
    assert normalize_bbox(["76.95", "9.82", "77.10", "9.97"]).west == 76.95


def test_normalize_bbox_from_dict():
    bbox = normalize_bbox({"west": 1, "south": 2, "east": 3, "north": 4})

    assert bbox == BoundingBox(west=1, south=2, east=3, north=4)


@pytest.mark.parametrize(
    "raw",
    [
        "1,2,3",
        [1, 2, 3, 4, 5],
        [3, 2, 1, 4],
        [1, 4, 3, 2],
        "a,b,c,d",
        [1, 2, 3, 200],
        42,
        None,
    ],
)
def test_normalize_bbox_rejects_invalid_payloads(raw):
    with pytest.raises(InvalidBBoxError):
        normalize_bbox(raw)


def test_invalid_bbox_error_is_a_value_error():
    with pytest.raises(ValueError):
        normalize_bbox("1,1,1,1")


def test_region_bbox_is_stored_as_list():
    region = MonitoredRegion(owner_id="u", name="Lake", bbox=[10, 20, 11, 21])

    data = region.model_dump()

    assert data["bbox"] == [10, 20, 11, 21]
    assert data["monitoring"]["frequency"] == "weekly"
    assert data["monitoring"]["alert_severities"] == ["medium", "high"]
    assert MonitoredRegion.model_validate(data).bbox == region.bbox


def test_ground_size_of_small_bbox():
    width_km, height_km = ground_size_km(BoundingBox(west=0, south=0, east=0.1, north=0.1))

    assert width_km == pytest.approx(11.13, rel=0.01)
    assert height_km == pytest.approx(11.06, rel=0.01)


def test_resolution_within_limit_passes():
    validate_resolution(BoundingBox(west=76.95, south=9.82, east=77.10, north=9.97), 512, 512)


def test_resolution_too_coarse_is_rejected():
    with pytest.raises(ResolutionError):
        validate_resolution(BoundingBox(west=0, south=0, east=10, north=10), 64, 64)
