"""
This module defines the Pydantic models for change reports and the outcomes of
monitoring cycles.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, computed_field, model_validator


Severity = Literal["low", "medium", "high"]
ChangeType = Literal["minor", "moderate", "significant"]

# Severity scale (strict, evaluated high -> low)
HIGH_SEVERITY_PERCENTAGE = 20.0
MEDIUM_SEVERITY_PERCENTAGE = 10.0

# Change type scale, independent from the severity scale
SIGNIFICANT_CHANGE_PERCENTAGE = 15.0
MODERATE_CHANGE_PERCENTAGE = 8.0

SUMMARY_TEMPLATES = {
    "high": (
        "CRITICAL: {percentage:.2f}% change detected. Significant environmental change "
        "observed. Immediate review recommended."
    ),
    "medium": (
        "WARNING: {percentage:.2f}% change detected. Moderate environmental change "
        "observed. Further analysis recommended."
    ),
    "low": (
        "INFO: {percentage:.2f}% change detected. Minor change observed. Likely natural "
        "variation or seasonal effect."
    ),
}


def classify_severity(change_percentage: float) -> Severity:
    if change_percentage > HIGH_SEVERITY_PERCENTAGE:
        return "high"
    if change_percentage > MEDIUM_SEVERITY_PERCENTAGE:
        return "medium"
    return "low"


def classify_change_type(change_percentage: float) -> ChangeType:
    if change_percentage > SIGNIFICANT_CHANGE_PERCENTAGE:
        return "significant"
    if change_percentage > MODERATE_CHANGE_PERCENTAGE:
        return "moderate"
    return "minor"


def summarize(change_percentage: float, severity: Optional[str]) -> str:
    """Render the human summary; unknown severities use the low template."""
    template = SUMMARY_TEMPLATES.get(severity or "low", SUMMARY_TEMPLATES["low"])
    return template.format(percentage=change_percentage)


class ChangeReport(BaseModel):
    """
    The result of comparing two images.

    `severity`, `change_type` and `summary` are computed from
    `change_percentage` and cannot be set independently.
    """
    change_percentage: float = Field(..., ge=0, le=100, description="Changed pixels as a percentage (2 decimals)")
    changed_pixel_count: int = Field(..., ge=0, description="Pixels whose colour distance exceeded the threshold")
    total_pixel_count: int = Field(..., gt=0, description="Pixels compared")
    diff_image_ref: Optional[str] = Field(None, description="Blob reference of the diff visualisation")

    @model_validator(mode="after")
    def check_pixel_counts(self) -> "ChangeReport":
        if self.changed_pixel_count > self.total_pixel_count:
            raise ValueError(
                f"changed_pixel_count ({self.changed_pixel_count}) exceeds "
                f"total_pixel_count ({self.total_pixel_count})"
            )
        return self

    @classmethod
    def from_pixel_counts(cls, changed: int, total: int) -> "ChangeReport":
        return cls(
            change_percentage=round(changed / total * 100, 2),
            changed_pixel_count=changed,
            total_pixel_count=total,
        )

    @computed_field
    @property
    def severity(self) -> Severity:
        return classify_severity(self.change_percentage)

    @computed_field
    @property
    def change_type(self) -> ChangeType:
        return classify_change_type(self.change_percentage)

    @computed_field
    @property
    def summary(self) -> str:
        return summarize(self.change_percentage, self.severity)


CheckStatus = Literal["no_data", "baseline_set", "compared"]


class CheckOutcome(BaseModel):
    """Outcome of a single-region monitoring cycle."""
    region_id: str
    status: CheckStatus
    report: Optional[ChangeReport] = None
    alert_sent: bool = False
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BatchSummary(BaseModel):
    """Outcome of one scheduled batch for a frequency class."""
    frequency: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    outcomes: List[CheckOutcome] = Field(default_factory=list)
