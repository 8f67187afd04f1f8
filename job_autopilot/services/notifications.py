"""
Notification dispatcher.

Delivers a notification payload over the requested channels. Channels without
configuration (no webhook URL, no SMTP host, no recipient) are skipped.
"""

from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Callable, Optional
import logging
import smtplib

import requests


CHANNELS = ("slack", "email", "log")


@dataclass
class SmtpSettings:
    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str = "notifications@job-autopilot.local"
    use_tls: bool = True


@dataclass
class NotificationPayload:
    """What to send, per channel."""
    channels: list[str] = field(default_factory=lambda: ["log"])
    subject: str = ""
    message: str = ""
    email_to: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "channels": self.channels,
            "subject": self.subject,
            "message": self.message,
            "email_to": self.email_to,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NotificationPayload":
        return cls(
            channels=list(data.get("channels") or ["log"]),
            subject=data.get("subject", ""),
            message=data.get("message", ""),
            email_to=data.get("email_to"),
            metadata=dict(data.get("metadata") or {}),
        )


class NotificationDispatcher:
    """Sends notifications over Slack, email or the log."""

    def __init__(
        self,
        slack_webhook_url: Optional[str] = None,
        smtp: Optional[SmtpSettings] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        timeout: float = 10,
    ):
        self.slack_webhook_url = slack_webhook_url
        self.smtp = smtp or SmtpSettings()
        self.session_factory = session_factory
        self.timeout = timeout
        self.logger = logging.getLogger(self.__class__.__name__)

    def dispatch(self, channels: list[str], payload: NotificationPayload) -> dict[str, str]:
        """
        Send a payload over each distinct channel.

        Returns:
            Channel -> "sent" or "skipped"

        Raises:
            requests.RequestException, smtplib.SMTPException: on delivery failure
        """
        outcome = {}
        for channel in dict.fromkeys(channels):
            if channel == "slack":
                outcome[channel] = self._send_slack(payload)
            elif channel == "email":
                outcome[channel] = self._send_email(payload)
            elif channel == "log":
                self.logger.info(f"Notification: {payload.subject} {payload.message}".strip())
                outcome[channel] = "sent"
            else:
                self.logger.warning(f"Unsupported notification channel: {channel}")
                outcome[channel] = "skipped"
        return outcome

    def _send_slack(self, payload: NotificationPayload) -> str:
        if not self.slack_webhook_url:
            return "skipped"

        text = f"*{payload.subject}*\n{payload.message}" if payload.subject else payload.message
        session = self.session_factory()
        try:
            response = session.post(self.slack_webhook_url, json={"text": text}, timeout=self.timeout)
            response.raise_for_status()
        finally:
            session.close()
        return "sent"

    def _send_email(self, payload: NotificationPayload) -> str:
        if not self.smtp.host or not payload.email_to:
            return "skipped"

        message = EmailMessage()
        message["From"] = self.smtp.sender
        message["To"] = payload.email_to
        message["Subject"] = payload.subject or "Job Autopilot notification"
        message.set_content(payload.message)

        with smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=self.timeout) as server:
            if self.smtp.use_tls:
                server.starttls()
            if self.smtp.username:
                server.login(self.smtp.username, self.smtp.password or "")
            server.send_message(message)
        return "sent"
