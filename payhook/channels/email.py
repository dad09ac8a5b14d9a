"""SMTP email channel, used for admin notifications.

Uses standard SMTP with STARTTLS. Credentials from Settings:
- SMTP_HOST, SMTP_PORT, EMAIL_USER, EMAIL_PASS

Security: Password never logged.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from payhook.channels.protocol import EmailMessage, SendResult
from payhook.channels.templates import TemplateError, render

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Email channel via SMTP."""

    def __init__(
        self,
        channel_id: str = "smtp",
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        smtp_from: str | None = None,
        timeout: float = 15.0,
    ):
        self._channel_id = channel_id
        self._host = smtp_host
        self._port = smtp_port
        self._user = smtp_user
        self._password = smtp_password
        self._from = smtp_from or smtp_user
        self._timeout = timeout

    @property
    def channel_id(self) -> str:
        return self._channel_id

    @property
    def is_configured(self) -> bool:
        return bool(self._host and self._user and self._password)

    def format_message(self, message: EmailMessage) -> MIMEMultipart:
        """Format as a multipart/alternative MIME message."""
        html_body, text_body = render(message.template, message.template_data)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self._from
        msg["To"] = ", ".join(message.to)

        msg.attach(MIMEText(message.text or text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def send(self, message: EmailMessage) -> SendResult:
        """Send via SMTP with TLS."""
        if not self.is_configured:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error="SMTP not configured (missing SMTP_HOST/EMAIL_USER/EMAIL_PASS)",
            )
        if not message.to:
            return SendResult(success=False, channel_id=self._channel_id, error="No recipients")

        try:
            formatted = self.format_message(message)
        except TemplateError as e:
            return SendResult(success=False, channel_id=self._channel_id, error=str(e))

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.starttls()
                server.login(self._user, self._password)
                server.send_message(formatted)
            logger.info("Email sent via %s: %s", self._channel_id, message.subject)
            return SendResult(success=True, channel_id=self._channel_id)
        except smtplib.SMTPException as e:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error=f"SMTP error: {e}",
            )
        except OSError as e:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error=f"Connection error: {e}",
            )
        except Exception as e:
            return SendResult(success=False, channel_id=self._channel_id, error=str(e))
