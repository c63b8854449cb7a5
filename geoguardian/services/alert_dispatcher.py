"""
Formats change alerts and hands them to a notification channel.
"""
import html
import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from geoguardian.models.change_report import ChangeReport
from geoguardian.services.notification_channel import NotificationChannel, NotificationContent

logger = logging.getLogger(__name__)

SEVERITY_MARKERS = {
    "high": "🔴",
    "medium": "🟠",
    "low": "🟢",
}

SEVERITY_COLORS = {
    "high": "#f44336",
    "medium": "#ff9800",
    "low": "#4caf50",
}


class AlertPayload(BaseModel):
    """
    Everything an alert shows. Missing values fall back to placeholders so a
    partially filled payload still renders.
    """
    change_percentage: float = 0
    severity: str = "unknown"
    changed_pixels: int = 0
    total_pixels: int = 0
    change_type: str = "Unknown Change"
    summary: str = "Environmental change detected"
    analyzed_on: date = Field(default_factory=date.today)
    location: str = "Monitored Area"

    @classmethod
    def from_report(cls, report: ChangeReport, region_name: Optional[str], check_date: date) -> "AlertPayload":
        fields = {
            "change_percentage": report.change_percentage,
            "severity": report.severity,
            "changed_pixels": report.changed_pixel_count,
            "total_pixels": report.total_pixel_count,
            "change_type": report.change_type,
            "summary": report.summary,
            "analyzed_on": check_date,
        }
        if region_name:
            fields["location"] = region_name
        return cls(**fields)


class AlertDispatcher:
    """Stateless formatter and sender for change alerts."""

    def __init__(self, channel: NotificationChannel, sender: str, dashboard_url: str):
        self.channel = channel
        self.sender = sender
        self.dashboard_url = dashboard_url

    def render(self, alert: AlertPayload) -> NotificationContent:
        """Build the subject, plain-text body and HTML body for an alert."""
        alert_date = alert.analyzed_on.isoformat()
        severity = alert.severity.upper()
        marker = SEVERITY_MARKERS.get(alert.severity, "⚪")
        percentage = f"{alert.change_percentage:g}"

        subject = f"🚨 {severity} Severity Alert: {percentage}% Change Detected"

        text = "\n".join(
            [
                f"{marker} {severity} SEVERITY ALERT",
                "",
                alert.summary,
                "",
                f"Change detected: {percentage}%",
                f"Pixels changed:  {alert.changed_pixels:,} of {alert.total_pixels:,}",
                f"Change type:     {alert.change_type}",
                f"Region:          {alert.location}",
                f"Date analyzed:   {alert_date}",
                "",
                f"View the full analysis: {self.dashboard_url}",
            ]
        )

        color = SEVERITY_COLORS.get(alert.severity, "#2196f3")
        e = html.escape
        body = f"""<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <h1>🛰️ GeoGuardian Alert</h1>
  <div style="background: {color}; color: white; padding: 20px; border-radius: 8px;">
    <h2>{marker} {e(severity)} SEVERITY ALERT</h2>
    <p>{e(alert.summary)}</p>
  </div>
  <ul>
    <li><strong>Change Detected:</strong> {percentage}%</li>
    <li><strong>Pixels Changed:</strong> {alert.changed_pixels:,}</li>
    <li><strong>Total Pixels:</strong> {alert.total_pixels:,}</li>
    <li><strong>Change Type:</strong> {e(alert.change_type)}</li>
    <li><strong>Region:</strong> {e(alert.location)}</li>
    <li><strong>Date Analyzed:</strong> {alert_date}</li>
  </ul>
  <p><a href="{e(self.dashboard_url)}">View Full Analysis</a></p>
  <p style="color: #999; font-size: 12px;">Automated alert from GeoGuardian environmental monitoring.</p>
</body>
</html>
"""
        return NotificationContent(sender=self.sender, subject=subject, text=text, html=body)

    async def send(self, recipient: str, alert: AlertPayload) -> bool:
        """
        Render and deliver an alert.

        Returns:
            True if the channel accepted the message, False otherwise. Never raises.
        """
        try:
            content = self.render(alert)
            await self.channel.send(recipient, content)
            logger.info("✅ Alert sent to %s (%s severity)", recipient, alert.severity)
            return True
        except Exception as e:
            logger.error("❌ Failed to send alert to %s: %s", recipient, e)
            return False
