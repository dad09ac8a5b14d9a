"""Resend API email channel, used for customer confirmations."""

from __future__ import annotations

import logging
import threading

import resend

from payhook.channels.protocol import EmailMessage, SendResult
from payhook.channels.templates import TemplateError, render

logger = logging.getLogger(__name__)

# The SDK reads its key from a module global; the key and the send must pair up
_send_lock = threading.Lock()


class ResendMailer:
    """Email channel via the Resend HTTP API."""

    def __init__(
        self,
        api_key: str = "",
        from_email: str = "",
        from_name: str = "",
        channel_id: str = "resend",
    ):
        self._channel_id = channel_id
        self._api_key = api_key
        self._from_email = from_email
        self._from_name = from_name

    @property
    def channel_id(self) -> str:
        return self._channel_id

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._from_email)

    @property
    def sender(self) -> str:
        if self._from_name:
            return f"{self._from_name} <{self._from_email}>"
        return self._from_email

    def build_params(self, message: EmailMessage) -> dict:
        html_body, text_body = render(message.template, message.template_data)
        params = {
            "from": self.sender,
            "to": list(message.to),
            "subject": message.subject,
            "html": html_body,
            "text": message.text or text_body,
            "tags": [{"name": "category", "value": message.template}],
        }
        for name, value in message.tags.items():
            params["tags"].append({"name": name, "value": str(value)})
        return params

    def send(self, message: EmailMessage) -> SendResult:
        if not self.is_configured:
            return SendResult(
                success=False,
                channel_id=self._channel_id,
                error="Resend not configured (missing RESEND_API_KEY/EMAIL_FROM)",
            )
        if not message.to:
            return SendResult(success=False, channel_id=self._channel_id, error="No recipients")

        try:
            params = self.build_params(message)
        except TemplateError as e:
            return SendResult(success=False, channel_id=self._channel_id, error=str(e))

        try:
            with _send_lock:
                resend.api_key = self._api_key
                result = resend.Emails.send(params)
        except Exception as e:
            # The SDK raises its own error hierarchy plus transport errors
            return SendResult(success=False, channel_id=self._channel_id, error=str(e))

        message_id = result.get("id", "") if isinstance(result, dict) else ""
        logger.info("Email sent via %s: %s (id=%s)", self._channel_id, message.subject, message_id)
        return SendResult(success=True, channel_id=self._channel_id, response_id=message_id or "")
