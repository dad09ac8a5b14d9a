"""Webhook event dispatcher: turns a verified Paddle event into notifications.

Two side effects per event:
- transaction.completed / transaction.paid -> payment confirmation to the customer
- every event -> admin notification

Failure contract:
- Only verified events reach this module (handlers.py rejects everything else)
- CollaboratorFailure from customer lookup or email is logged and recorded,
  never re-raised; the provider acknowledgment must not depend on it
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from payhook.channels.protocol import EmailMessage, Mailer
from payhook.channels.templates import format_amount
from payhook.errors import CollaboratorFailure, EmailDispatchError
from payhook.tools.customers import CustomerLookup

logger = logging.getLogger(__name__)

PAYMENT_SUCCESS_EVENTS = {"transaction.completed", "transaction.paid"}

DEFAULT_PRODUCT_NAME = "Vehicle History Report"
DEFAULT_CUSTOMER_NAME = "Valued Customer"
DEFAULT_CURRENCY = "USD"

CUSTOMER_SUBJECT = "Payment Successful - Your Vehicle Report is Being Prepared"

# Event type -> admin subject template
_ADMIN_SUBJECTS: dict[str, str] = {
    "transaction.created": "New Transaction Created: {id}",
    "transaction.paid": "Transaction Paid: {id}",
    "transaction.completed": "Transaction Completed: {id}",
    "subscription.activated": "Subscription Activated: {id}",
    "subscription.canceled": "Subscription Canceled: {id}",
}


@dataclass
class TransactionEvent:
    """Normalized Paddle notification."""

    event_type: str
    event_id: str | None
    occurred_at: str | None
    transaction_id: str | None
    customer_id: str | None
    status: str | None
    product_name: str | None
    amount_minor: int
    currency: str | None
    cardholder_name: str | None
    custom_data: dict[str, Any] = field(default_factory=dict)
    has_items: bool = False
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def amount(self) -> str:
        return format_amount(self.amount_minor)


@dataclass
class DispatchReport:
    """What dispatch() did, for logging and tests."""

    event_type: str
    customer_email_sent: bool = False
    admin_email_sent: bool = False
    failures: list[str] = field(default_factory=list)


def _first(value: Any) -> dict[str, Any]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return {}


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_event(payload: dict[str, Any]) -> TransactionEvent:
    """Normalize a verified payload. Missing fields become None or defaults."""
    data = _dict(payload.get("data"))
    items = data.get("items")
    price = _dict(_first(items).get("price"))
    unit_price = _dict(price.get("unit_price"))
    card = _dict(_dict(_first(data.get("payments")).get("method_details")).get("card"))

    return TransactionEvent(
        event_type=payload.get("event_type") or payload.get("eventType") or "unknown",
        event_id=payload.get("event_id") or payload.get("eventId"),
        occurred_at=payload.get("occurred_at") or payload.get("occurredAt"),
        transaction_id=data.get("id"),
        customer_id=data.get("customer_id"),
        status=data.get("status"),
        product_name=price.get("name"),
        amount_minor=_to_int(unit_price.get("amount")),
        currency=unit_price.get("currency_code"),
        cardholder_name=card.get("cardholder_name"),
        custom_data=_dict(data.get("custom_data")),
        has_items=isinstance(items, list) and len(items) > 0,
        raw=data,
    )


def admin_subject(event: TransactionEvent) -> str:
    template = _ADMIN_SUBJECTS.get(event.event_type)
    if template:
        return template.format(id=event.transaction_id)
    return f"Paddle Event: {event.event_type}"


class WebhookDispatcher:
    """Sends the customer confirmation and the admin notification."""

    def __init__(
        self,
        customer_mailer: Mailer,
        admin_mailer: Mailer,
        customers: CustomerLookup | None = None,
        admin_recipients: list[str] | None = None,
        customer_cc: list[str] | None = None,
    ):
        self.customer_mailer = customer_mailer
        self.admin_mailer = admin_mailer
        self.customers = customers
        self.admin_recipients = list(admin_recipients or [])
        self.customer_cc = list(customer_cc or [])

    def dispatch(self, event: TransactionEvent) -> DispatchReport:
        report = DispatchReport(event_type=event.event_type)

        if event.event_type in PAYMENT_SUCCESS_EVENTS:
            try:
                report.customer_email_sent = self._notify_customer(event)
            except CollaboratorFailure as e:
                logger.warning("Customer notification failed for %s: %s", event.transaction_id, e)
                report.failures.append(f"{e.collaborator}: {e}")
        else:
            logger.info("Event type does not match payment completion: %s", event.event_type)

        try:
            report.admin_email_sent = self._notify_admin(event)
        except CollaboratorFailure as e:
            logger.warning("Admin notification failed for %s: %s", event.event_type, e)
            report.failures.append(f"{e.collaborator}: {e}")

        return report

    def _resolve_customer(self, event: TransactionEvent) -> tuple[str | None, str | None]:
        """Email and name, from custom_data first, then the customer API."""
        custom = event.custom_data
        email = custom.get("email") or custom.get("customer_email")
        name = custom.get("name") or custom.get("customer_name")
        if email:
            return email, name

        if not event.customer_id:
            logger.error("No customer ID found in webhook data for %s", event.transaction_id)
            return None, None
        if self.customers is None:
            logger.warning("No customer lookup configured; skipping %s", event.customer_id)
            return None, None

        customer = self.customers.get(event.customer_id)
        return customer.email, name or customer.name

    def _notify_customer(self, event: TransactionEvent) -> bool:
        email, name = self._resolve_customer(event)
        if not email:
            logger.error("No customer email found for transaction %s", event.transaction_id)
            return False

        custom = event.custom_data
        message = EmailMessage(
            to=[email, *[cc for cc in self.customer_cc if cc != email]],
            subject=CUSTOMER_SUBJECT,
            template="payment_success",
            template_data={
                "customer_email": email,
                "customer_name": name or DEFAULT_CUSTOMER_NAME,
                "transaction_id": event.transaction_id,
                "product_name": event.product_name or DEFAULT_PRODUCT_NAME,
                "amount": event.amount,
                "currency": event.currency or DEFAULT_CURRENCY,
                "name": event.cardholder_name or DEFAULT_CUSTOMER_NAME,
                "vin": custom.get("vin"),
                "plan": custom.get("plan"),
            },
            tags={"event_type": event.event_type.replace(".", "_")},
        )
        logger.info("Sending payment success email for transaction %s", event.transaction_id)
        self._send(self.customer_mailer, message)
        return True

    def _notify_admin(self, event: TransactionEvent) -> bool:
        if not self.admin_recipients:
            raise EmailDispatchError(self.admin_mailer.channel_id, "no admin recipients configured")

        message = EmailMessage(
            to=self.admin_recipients,
            subject=admin_subject(event),
            template="admin_event",
            template_data={
                "event_type": event.event_type,
                "event_id": event.event_id,
                "occurred_at": event.occurred_at,
                "has_items": event.has_items,
                "product_name": event.product_name,
                "amount": event.amount,
                "currency": event.currency,
                "customer_id": event.customer_id,
                "transaction_id": event.transaction_id,
                "status": event.status,
                "cardholder_name": event.cardholder_name,
            },
            text=f"Event: {event.event_type}\nData: {json.dumps(event.raw, indent=2, default=str)}",
        )
        self._send(self.admin_mailer, message)
        return True

    @staticmethod
    def _send(mailer: Mailer, message: EmailMessage) -> None:
        try:
            result = mailer.send(message)
        except Exception as e:
            logger.exception("Mailer %s raised", mailer.channel_id)
            raise EmailDispatchError(mailer.channel_id, str(e), cause=e) from e
        if not result.success:
            raise EmailDispatchError(result.channel_id, result.error or "send failed")
