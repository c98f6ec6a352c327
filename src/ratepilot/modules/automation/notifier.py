"""Stakeholder notifications: template rendering and channel delivery."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from typing import Any, Awaitable, Callable

import httpx
from jinja2 import Environment, TemplateError, select_autoescape

from ratepilot.config import get_env
from ratepilot.events import Event, EventBus, EventType
from ratepilot.models.pricing import (
    ChannelType,
    NotificationChannel,
    NotificationRecipient,
    SeasonalPricingConfig,
)
from ratepilot.models.results import response_to_dict

logger = logging.getLogger(__name__)


class Notifier:
    """Renders a notification template once and delivers it on every enabled channel.

    Delivery problems are logged and reported back as failed channels; they
    never propagate to the caller.
    """

    def __init__(self, http: httpx.AsyncClient, event_bus: EventBus) -> None:
        self._http = http
        self._event_bus = event_bus
        self._jinja_env = Environment(autoescape=select_autoescape(default=False))
        self._twilio_client = None
        self._senders: dict[ChannelType, Callable[..., Awaitable[bool]]] = {
            ChannelType.EMAIL: self._send_email,
            ChannelType.SMS: self._send_sms,
            ChannelType.SLACK: self._send_slack,
            ChannelType.WEBHOOK: self._send_webhook,
            ChannelType.DASHBOARD: self._send_dashboard,
        }

    async def notify(
        self,
        config: SeasonalPricingConfig,
        notification_type: str,
        context: dict[str, Any],
    ) -> tuple[list[str], list[str]]:
        """Send ``notification_type`` to stakeholders. Returns (sent, failed) channel types."""
        channels = sorted(
            (c for c in config.notifications.channels if c.enabled), key=lambda c: c.priority
        )
        if not channels:
            return [], []

        template = config.notifications.template_for(notification_type)
        if template is None:
            logger.info("No %s template for %s, skipping notification", notification_type, config.property_id)
            return [], []

        try:
            subject = self._jinja_env.from_string(template.subject).render(**context)
            body = self._jinja_env.from_string(template.content).render(**context)
        except TemplateError:
            logger.exception("Failed to render %s template for %s", notification_type, config.property_id)
            return [], [c.type.value for c in channels]

        payload = {
            "type": notification_type,
            "subject": subject,
            "content": body,
            "data": response_to_dict(context),
        }

        sent: list[str] = []
        failed: list[str] = []
        for channel in channels:
            recipients = [
                r for r in config.notifications.recipients if channel.type in r.notifications
            ]
            try:
                ok = await self._senders[channel.type](channel, recipients, subject, body, payload)
            except Exception:
                logger.exception("Failed to send %s notification via %s", notification_type, channel.type.value)
                ok = False
            (sent if ok else failed).append(channel.type.value)

        logger.info(
            "Notification %s for %s: sent=%s failed=%s",
            notification_type, config.property_id, sent, failed,
        )
        return sent, failed

    # --- Channels ---

    async def _send_email(
        self,
        channel: NotificationChannel,
        recipients: list[NotificationRecipient],
        subject: str,
        body: str,
        payload: dict[str, Any],
    ) -> bool:
        if not recipients:
            logger.warning("No email recipients configured")
            return False
        return await asyncio.to_thread(
            self._send_email_sync, [r.contact for r in recipients], subject, body
        )

    def _send_email_sync(self, to_addresses: list[str], subject: str, body: str) -> bool:
        """Send a message via SMTP email."""
        smtp_host = get_env("SMTP_HOST")
        smtp_port = int(get_env("SMTP_PORT", "587"))
        smtp_user = get_env("SMTP_USER")
        smtp_password = get_env("SMTP_PASSWORD")

        if not all([smtp_host, smtp_user, smtp_password]):
            logger.warning("SMTP not configured, cannot send email")
            return False

        email_msg = MIMEText(body)
        email_msg["Subject"] = subject
        email_msg["From"] = get_env("SMTP_FROM", smtp_user)
        email_msg["To"] = ", ".join(to_addresses)

        with smtplib.SMTP(smtp_host, smtp_port) as server:
            server.starttls()
            server.login(smtp_user, smtp_password)
            server.send_message(email_msg)
        logger.info("Email sent to %s", email_msg["To"])
        return True

    async def _send_sms(
        self,
        channel: NotificationChannel,
        recipients: list[NotificationRecipient],
        subject: str,
        body: str,
        payload: dict[str, Any],
    ) -> bool:
        if not recipients:
            logger.warning("No SMS recipients configured")
            return False
        message = f"{subject}: {body}"
        results = [
            await asyncio.to_thread(self._send_sms_sync, channel, r.contact, message)
            for r in recipients
        ]
        return all(results)

    def _send_sms_sync(self, channel: NotificationChannel, to_number: str, message: str) -> bool:
        """Send SMS via Twilio."""
        creds = channel.config.credentials
        account_sid = creds.get("account_sid") or get_env("TWILIO_ACCOUNT_SID")
        auth_token = creds.get("auth_token") or get_env("TWILIO_AUTH_TOKEN")
        from_number = creds.get("from_number") or get_env("TWILIO_FROM_NUMBER")

        if not all([account_sid, auth_token, from_number]):
            logger.warning("Twilio not configured, SMS not sent")
            return False

        if self._twilio_client is None:
            from twilio.rest import Client

            self._twilio_client = Client(account_sid, auth_token)

        self._twilio_client.messages.create(
            body=message,
            from_=from_number,
            to=to_number,
        )
        logger.info("SMS sent to %s", to_number)
        return True

    async def _send_slack(
        self,
        channel: NotificationChannel,
        recipients: list[NotificationRecipient],
        subject: str,
        body: str,
        payload: dict[str, Any],
    ) -> bool:
        endpoint = channel.config.endpoint
        if not endpoint:
            logger.warning("Slack channel has no webhook endpoint")
            return False
        resp = await self._http.post(endpoint, json={"text": f"*{subject}*\n{body}"})
        resp.raise_for_status()
        return True

    async def _send_webhook(
        self,
        channel: NotificationChannel,
        recipients: list[NotificationRecipient],
        subject: str,
        body: str,
        payload: dict[str, Any],
    ) -> bool:
        endpoint = channel.config.endpoint
        if not endpoint:
            logger.warning("Webhook channel has no endpoint")
            return False
        headers = {}
        token = channel.config.credentials.get("token")
        if token:
            headers["Authorization"] = f"Bearer {token}"
        resp = await self._http.post(endpoint, json=payload, headers=headers)
        resp.raise_for_status()
        return True

    async def _send_dashboard(
        self,
        channel: NotificationChannel,
        recipients: list[NotificationRecipient],
        subject: str,
        body: str,
        payload: dict[str, Any],
    ) -> bool:
        self._event_bus.publish(Event(event_type=EventType.DASHBOARD_NOTIFICATION, data=payload))
        return True
