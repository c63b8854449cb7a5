import asyncio
import json
from datetime import date

import httpx
import pytest

from geoguardian.exceptions import NotificationError
from geoguardian.models.change_report import ChangeReport
from geoguardian.services.alert_dispatcher import AlertDispatcher, AlertPayload
from geoguardian.services.notification_channel import (
    LogNotificationChannel,
    NotificationContent,
    WebhookNotificationChannel,
)

from conftest import FakeChannel


def make_dispatcher(channel):
    return AlertDispatcher(channel, sender="alerts@example.com", dashboard_url="https://dash.example.com")


def test_payload_defaults_to_placeholders():
    alert = AlertPayload()

    assert alert.change_percentage == 0
    assert alert.severity == "unknown"
    assert alert.change_type == "Unknown Change"
    assert alert.summary == "Environmental change detected"
    assert alert.location == "Monitored Area"
    assert alert.analyzed_on == date.today()


def test_payload_from_report():
    report = ChangeReport.from_pixel_counts(300, 1000)

    alert = AlertPayload.from_report(report, "Mangrove Delta", date(2024, 6, 3))

    assert alert.change_percentage == 30.0
    assert alert.severity == "high"
    assert alert.changed_pixels == 300
    assert alert.total_pixels == 1000
    assert alert.change_type == "significant"
    assert alert.summary == report.summary
    assert alert.location == "Mangrove Delta"


def test_payload_from_report_without_region_name_keeps_placeholder():
    alert = AlertPayload.from_report(ChangeReport.from_pixel_counts(1, 10), None, date(2024, 6, 3))

    assert alert.location == "Monitored Area"


def test_render_includes_all_fields():
    dispatcher = make_dispatcher(FakeChannel())
    alert = AlertPayload(
        change_percentage=14.06,
        severity="medium",
        changed_pixels=12345,
        total_pixels=262144,
        change_type="moderate",
        summary="WARNING: 14.06% change detected.",
        analyzed_on=date(2024, 6, 3),
        location="Lake <Vembanad>",
    )

    content = dispatcher.render(alert)

    assert content.sender == "alerts@example.com"
    assert content.subject == "🚨 MEDIUM Severity Alert: 14.06% Change Detected"
    assert "12,345 of 262,144" in content.text
    assert "moderate" in content.text
    assert "2024-06-03" in content.text
    assert "https://dash.example.com" in content.text
    assert "Lake &lt;Vembanad&gt;" in content.html
    assert "#ff9800" in content.html


def test_render_unknown_severity():
    content = make_dispatcher(FakeChannel()).render(AlertPayload())

    assert content.subject == "🚨 UNKNOWN Severity Alert: 0% Change Detected"
    assert "⚪" in content.text


def test_send_returns_true_on_delivery():
    channel = FakeChannel()

    sent = asyncio.run(make_dispatcher(channel).send("owner@example.com", AlertPayload(severity="high")))

    assert sent is True
    assert channel.sent[0][0] == "owner@example.com"


def test_send_never_raises_on_channel_failure():
    sent = asyncio.run(make_dispatcher(FakeChannel(fail=True)).send("owner@example.com", AlertPayload()))

    assert sent is False


def test_webhook_channel_posts_json():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(202)

    async def deliver():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            channel = WebhookNotificationChannel("https://relay.example.com/send", client=client)
            await channel.send(
                "owner@example.com",
                NotificationContent(sender="a@example.com", subject="s", text="t", html="<p>h</p>"),
            )

    asyncio.run(deliver())

    body = json.loads(requests[0].content)
    assert str(requests[0].url) == "https://relay.example.com/send"
    assert body == {"to": "owner@example.com", "sender": "a@example.com", "subject": "s", "text": "t", "html": "<p>h</p>"}


def test_webhook_channel_raises_on_error_status():
    async def deliver():
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport) as client:
            channel = WebhookNotificationChannel("https://relay.example.com/send", client=client)
            await channel.send("owner@example.com", NotificationContent(sender="a", subject="s", text="t", html="h"))

    with pytest.raises(NotificationError):
        asyncio.run(deliver())


def test_dispatcher_reports_webhook_failure_as_false():
    async def deliver():
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            dispatcher = make_dispatcher(WebhookNotificationChannel("https://relay.example.com/send", client=client))
            return await dispatcher.send("owner@example.com", AlertPayload(severity="high"))

    assert asyncio.run(deliver()) is False


def test_log_channel_accepts_messages():
    dispatcher = make_dispatcher(LogNotificationChannel())

    assert asyncio.run(dispatcher.send("owner@example.com", AlertPayload())) is True
