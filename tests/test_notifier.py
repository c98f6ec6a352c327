"""Tests for stakeholder notifications."""

import json
from unittest.mock import patch

import httpx
import pytest

from ratepilot.events import EventBus, EventType
from ratepilot.models.pricing import (
    ChannelConfig,
    NotificationChannel,
    NotificationRecipient,
    NotificationTemplate,
)
from ratepilot.models.results import AdjustmentSummary
from ratepilot.modules.automation.notifier import Notifier
from ratepilot.modules.pricing.defaults import APPLIED, ROLLED_BACK

SUMMARY = AdjustmentSummary(
    total_days=4,
    average_adjustment=47.0,
    revenue_impact=376.0,
    occupancy_impact=-23.5,
    competitive_position="aggressive",
    seasonal_trend="stable",
)

CONTEXT = {"property_id": "prop-1", "room_type_id": "deluxe", "summary": SUMMARY, "dates": []}


@pytest.fixture(autouse=True)
def no_smtp(monkeypatch):
    for key in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def notifier(http_client, event_bus):
    return Notifier(http_client, event_bus)


@pytest.mark.asyncio
async def test_dashboard_publishes_event(notifier, event_bus, summer_config):
    received = []
    event_bus.subscribe(EventType.DASHBOARD_NOTIFICATION, received.append)

    sent, failed = await notifier.notify(summer_config, APPLIED, CONTEXT)

    assert sent == ["dashboard"]
    assert failed == []
    payload = received[0].data
    assert payload["type"] == APPLIED
    assert payload["subject"] == "Seasonal Pricing Changes Applied"
    assert "Revenue impact: 376.0" in payload["content"]
    assert payload["data"]["summary"]["competitive_position"] == "aggressive"


@pytest.mark.asyncio
async def test_slack_and_webhook(notifier, summer_config, sent_requests):
    summer_config.notifications.channels = [
        NotificationChannel(
            type="webhook", priority=2,
            config=ChannelConfig(endpoint="https://hooks.example.com/pricing", credentials={"token": "s3cret"}),
        ),
        NotificationChannel(type="slack", priority=1, config=ChannelConfig(endpoint="https://slack.example.com/T1")),
    ]

    sent, failed = await notifier.notify(summer_config, APPLIED, CONTEXT)

    # Lower priority number goes first
    assert sent == ["slack", "webhook"]
    slack, webhook = sent_requests
    assert json.loads(slack.content)["text"].startswith("*Seasonal Pricing Changes Applied*\n")
    assert webhook.headers["Authorization"] == "Bearer s3cret"
    assert json.loads(webhook.content)["data"]["room_type_id"] == "deluxe"


@pytest.mark.asyncio
async def test_http_error_marks_channel_failed(event_bus, summer_config):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    notifier = Notifier(client, event_bus)
    summer_config.notifications.channels = [
        NotificationChannel(type="webhook", config=ChannelConfig(endpoint="https://hooks.example.com/x")),
        NotificationChannel(type="dashboard", priority=5),
    ]

    sent, failed = await notifier.notify(summer_config, APPLIED, CONTEXT)

    assert sent == ["dashboard"]
    assert failed == ["webhook"]


@pytest.mark.asyncio
async def test_disabled_channels_are_skipped(notifier, summer_config):
    summer_config.notifications.channels[0].enabled = False
    assert await notifier.notify(summer_config, APPLIED, CONTEXT) == ([], [])


@pytest.mark.asyncio
async def test_missing_template_sends_nothing(notifier, summer_config):
    summer_config.notifications.templates = []
    assert await notifier.notify(summer_config, APPLIED, CONTEXT) == ([], [])


@pytest.mark.asyncio
async def test_broken_template_fails_every_channel(notifier, summer_config):
    summer_config.notifications.templates = [
        NotificationTemplate(id=ROLLED_BACK, name="Broken", subject="Rollback", content="{{ reason "),
    ]
    sent, failed = await notifier.notify(summer_config, ROLLED_BACK, {"reason": "x"})
    assert sent == []
    assert failed == ["dashboard"]


@pytest.mark.asyncio
async def test_email_without_smtp_fails(notifier, summer_config):
    summer_config.notifications.channels = [NotificationChannel(type="email")]
    sent, failed = await notifier.notify(summer_config, APPLIED, CONTEXT)
    assert sent == []
    assert failed == ["email"]


@pytest.mark.asyncio
async def test_email_via_smtp(notifier, summer_config, monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "pricing@example.com")
    monkeypatch.setenv("SMTP_PASSWORD", "pw")
    summer_config.notifications.channels = [NotificationChannel(type="email")]

    with patch("ratepilot.modules.automation.notifier.smtplib.SMTP") as mock_smtp:
        sent, failed = await notifier.notify(summer_config, APPLIED, CONTEXT)

    assert sent == ["email"]
    mock_smtp.assert_called_once_with("smtp.example.com", 587)
    server = mock_smtp.return_value.__enter__.return_value
    server.login.assert_called_once_with("pricing@example.com", "pw")
    message = server.send_message.call_args[0][0]
    assert message["To"] == "revenue@example.com"
    assert message["Subject"] == "Seasonal Pricing Changes Applied"


@pytest.mark.asyncio
async def test_sms_without_twilio_fails(notifier, summer_config):
    summer_config.notifications.channels = [NotificationChannel(type="sms")]
    summer_config.notifications.recipients.append(
        NotificationRecipient(id="gm", name="GM", contact="+15550100", notifications=["sms"])
    )
    sent, failed = await notifier.notify(summer_config, APPLIED, CONTEXT)
    assert failed == ["sms"]


@pytest.mark.asyncio
async def test_email_without_recipients_fails(notifier, summer_config):
    summer_config.notifications.channels = [NotificationChannel(type="email")]
    summer_config.notifications.recipients = []
    assert await notifier.notify(summer_config, APPLIED, CONTEXT) == ([], ["email"])
