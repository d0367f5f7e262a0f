"""
Notification Service - email, SMS and WebSocket push

Every attempt is written to the notifications table. A failing channel is
logged and recorded; it never fails the request that triggered it.
"""
import asyncio
import logging
import smtplib
import uuid
from datetime import datetime
from email.message import EmailMessage
from string import Template
from typing import Optional, Protocol

import httpx

import config
from db import get_cursor
from services.connections import ConnectionManager

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    channel: str

    async def send(self, recipient: str, subject: str, message: str) -> None: ...


class LogSender:
    """Stand-in used when a channel has no credentials configured."""

    def __init__(self, channel: str):
        self.channel = channel

    async def send(self, recipient: str, subject: str, message: str) -> None:
        logger.info(f"[{self.channel.upper()}] to {recipient}: {subject} - {message}")


class SmtpEmailSender:
    channel = "email"

    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: str = config.EMAIL_USER,
        password: str = config.EMAIL_PASS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password

    def _send_blocking(self, recipient: str, subject: str, message: str):
        email = EmailMessage()
        email["From"] = self.username
        email["To"] = recipient
        email["Subject"] = subject
        email.set_content(message)

        with smtplib.SMTP(self.host, self.port, timeout=config.HTTP_TIMEOUT_SECONDS) as smtp:
            smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(email)

    async def send(self, recipient: str, subject: str, message: str) -> None:
        await asyncio.to_thread(self._send_blocking, recipient, subject, message)


class TwilioSmsSender:
    channel = "sms"

    def __init__(
        self,
        account_sid: str = config.TWILIO_ACCOUNT_SID,
        auth_token: str = config.TWILIO_AUTH_TOKEN,
        from_number: str = config.TWILIO_PHONE_NUMBER,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.transport = transport

    async def send(self, recipient: str, subject: str, message: str) -> None:
        url = f"{config.TWILIO_API_URL}/Accounts/{self.account_sid}/Messages.json"
        async with httpx.AsyncClient(
            timeout=config.HTTP_TIMEOUT_SECONDS, transport=self.transport
        ) as client:
            response = await client.post(
                url,
                data={"To": recipient, "From": self.from_number, "Body": message},
                auth=(self.account_sid, self.auth_token),
            )
            response.raise_for_status()


def default_email_sender() -> NotificationSender:
    if config.EMAIL_USER and config.EMAIL_PASS:
        return SmtpEmailSender()
    logger.warning("Email credentials not set, emails will only be logged")
    return LogSender("email")


def default_sms_sender() -> NotificationSender:
    if config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN:
        return TwilioSmsSender()
    logger.warning("Twilio credentials not set, SMS will only be logged")
    return LogSender("sms")


def render_template(template: str, variables: dict) -> str:
    """Fill ${name} placeholders; unknown placeholders are left as-is."""
    return Template(template).safe_substitute(variables)


class Notifier:
    def __init__(
        self,
        email: NotificationSender,
        sms: NotificationSender,
        connections: ConnectionManager,
    ):
        self.email = email
        self.sms = sms
        self.connections = connections

    def _record(self, channel: str, recipient: str, subject: Optional[str],
                message: str, status: str, error: Optional[str] = None):
        with get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO notifications
                (notification_id, channel, recipient, subject, message, status, error, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (str(uuid.uuid4()), channel, recipient, subject, message, status, error,
                 datetime.now().isoformat()),
            )

    async def _deliver(self, sender: NotificationSender, recipient: str,
                       subject: str, message: str, recorded: Optional[str] = None) -> bool:
        # recorded replaces the body in the notifications log
        recorded = recorded or message
        try:
            await sender.send(recipient, subject, message)
        except Exception as e:
            logger.error(f"Failed to send {sender.channel} to {recipient}: {e}")
            self._record(sender.channel, recipient, subject, recorded, "failed", str(e))
            return False
        self._record(sender.channel, recipient, subject, recorded, "sent")
        return True

    async def send_email(self, recipient: str, subject: str, message: str,
                         recorded: Optional[str] = None) -> bool:
        return await self._deliver(self.email, recipient, subject, message, recorded)

    async def send_sms(self, recipient: str, message: str) -> bool:
        return await self._deliver(self.sms, recipient, "", message)

    async def push(self, user_id: str, payload: dict) -> bool:
        delivered = await self.connections.send(user_id, payload)
        self._record(
            "websocket", user_id, payload.get("type"), str(payload),
            "sent" if delivered else "offline",
        )
        return delivered

    async def notify(
        self,
        subject: str,
        message: str,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        payload: Optional[dict] = None,
    ) -> dict:
        """Send one message on every channel we have an address for."""
        results = {}
        if user_id:
            results["websocket"] = await self.push(
                user_id, payload or {"type": "notification", "subject": subject, "message": message}
            )
        if email:
            results["email"] = await self.send_email(email, subject, message)
        if phone:
            results["sms"] = await self.send_sms(phone, message)
        return results

    async def broadcast(
        self,
        recipients: list[dict],
        subject: str,
        template: str,
        shared: Optional[dict] = None,
    ) -> dict:
        """
        Email a templated message to many recipients.

        Args:
            recipients: dicts with an "email" key and optional per-recipient
                "variables" merged over the shared ones
            subject: subject template
            template: body template using ${placeholders}
            shared: variables common to every recipient

        Returns:
            Counts of sent and failed emails plus the failed addresses
        """
        sent, failed = 0, []
        for recipient in recipients:
            variables = {**(shared or {}), **recipient.get("variables", {}), "email": recipient["email"]}
            ok = await self.send_email(
                recipient["email"],
                render_template(subject, variables),
                render_template(template, variables),
            )
            if ok:
                sent += 1
            else:
                failed.append(recipient["email"])
        logger.info(f"Broadcast '{subject}' sent to {sent}/{len(recipients)} recipients")
        return {"sent": sent, "failed": len(failed), "failed_recipients": failed}
