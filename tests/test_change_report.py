import pytest
from pydantic import ValidationError

from geoguardian.models.change_report import (
    ChangeReport,
    classify_change_type,
    classify_severity,
    summarize,
)


@pytest.mark.parametrize(
    "percentage, expected",
    [(0, "low"), (10.0, "low"), (10.01, "medium"), (20.0, "medium"), (20.01, "high"), (100, "high")],
)
def test_severity_boundaries_are_strict(percentage, expected):
    assert classify_severity(percentage) == expected


@pytest.mark.parametrize(
    "percentage, expected",
    [(8.0, "minor"), (8.01, "moderate"), (15.0, "moderate"), (15.01, "significant")],
)
def test_change_type_boundaries_are_strict(percentage, expected):
    assert classify_change_type(percentage) == expected


def test_scales_are_independent():
    # 12% is already medium severity but still a moderate change
    report = ChangeReport(change_percentage=12, changed_pixel_count=12, total_pixel_count=100)

    assert report.severity == "medium"
    assert report.change_type == "moderate"


def test_unknown_severity_falls_back_to_low_summary():
    assert summarize(4.5, "catastrophic") == summarize(4.5, "low")
    assert summarize(4.5, None).startswith("INFO: 4.50% change detected")


def test_summary_uses_severity_template():
    report = ChangeReport(change_percentage=15.5, changed_pixel_count=155, total_pixel_count=1000)

    assert report.summary.startswith("WARNING: 15.50% change detected")


def test_from_pixel_counts_rounds_to_two_decimals():
    report = ChangeReport.from_pixel_counts(1, 3)

    assert report.change_percentage == 33.33


def test_changed_cannot_exceed_total():
    with pytest.raises(ValidationError):
        ChangeReport(change_percentage=100, changed_pixel_count=11, total_pixel_count=10)


def test_percentage_out_of_range_is_rejected():
    with pytest.raises(ValidationError):
        ChangeReport(change_percentage=101, changed_pixel_count=10, total_pixel_count=10)


def test_derived_fields_are_serialized():
    data = ChangeReport.from_pixel_counts(25, 100).model_dump()

    assert data["severity"] == "high"
    assert data["change_type"] == "significant"
    assert data["summary"].startswith("CRITICAL")
    assert data["diff_image_ref"] is None
