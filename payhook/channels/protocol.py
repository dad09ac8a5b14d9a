"""Mailer protocol shared by the SMTP and Resend channels.

Security contract:
- Credentials come from Settings, never hardcoded and never logged
- send() reports failure through SendResult; it does not raise
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class EmailMessage:
    """An email ready for rendering and dispatch."""

    to: list[str]
    subject: str
    template: str
    template_data: dict[str, Any] = field(default_factory=dict)
    text: str = ""  # plain-text part; rendered from the template when empty
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class SendResult:
    """Result of sending an email."""

    success: bool
    channel_id: str
    error: str = ""
    response_id: str = ""  # Provider message ID


@runtime_checkable
class Mailer(Protocol):
    """Protocol for email channels."""

    @property
    def channel_id(self) -> str:
        ...

    @property
    def is_configured(self) -> bool:
        ...

    def send(self, message: EmailMessage) -> SendResult:
        ...
