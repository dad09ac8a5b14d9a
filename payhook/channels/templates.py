"""HTML and plain-text rendering for outbound emails."""

from __future__ import annotations

import html
from typing import Any

TEMPLATES = {
    "payment_success": {
        "required_vars": ["customer_name", "transaction_id", "product_name", "amount", "currency"],
    },
    "admin_event": {
        "required_vars": ["event_type"],
    },
}


class TemplateError(ValueError):
    """Unknown template or missing variables."""


def _e(value: Any, default: str = "N/A") -> str:
    if value is None or value == "":
        return default
    return html.escape(str(value))


def format_amount(amount_minor: int | str | None) -> str:
    """Render minor units (cents) as a two-decimal string."""
    try:
        return f"{int(amount_minor or 0) / 100:.2f}"
    except (TypeError, ValueError):
        return "0.00"


def _payment_success(data: dict[str, Any]) -> tuple[str, str]:
    extra_rows = ""
    if data.get("vin"):
        extra_rows += f"<p><strong>VIN:</strong> {_e(data['vin'])}</p>"
    if data.get("plan"):
        extra_rows += f"<p><strong>Plan:</strong> {_e(data['plan'])}</p>"

    body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Payment Successful</h2>
        <p>Hello {_e(data.get('customer_name'), 'Valued Customer')},</p>
        <p>Thank you for your purchase. Your vehicle report is being prepared and will be sent to you shortly.</p>
        <p><strong>Product:</strong> {_e(data.get('product_name'))}</p>
        <p><strong>Amount:</strong> {_e(data.get('amount'))} {_e(data.get('currency'))}</p>
        <p><strong>Transaction ID:</strong> {_e(data.get('transaction_id'))}</p>
        <p><strong>Cardholder:</strong> {_e(data.get('name'), 'Valued Customer')}</p>
        {extra_rows}
    </div>
    """
    text = (
        f"Payment Successful\n\n"
        f"Hello {data.get('customer_name') or 'Valued Customer'},\n"
        f"Your vehicle report is being prepared.\n\n"
        f"Product: {data.get('product_name')}\n"
        f"Amount: {data.get('amount')} {data.get('currency')}\n"
        f"Transaction ID: {data.get('transaction_id')}\n"
    )
    return body, text


def _admin_event(data: dict[str, Any]) -> tuple[str, str]:
    if data.get("has_items"):
        details = f"""
        <p><b>Product:</b> {_e(data.get('product_name'), 'Unknown Product')}</p>
        <p><b>Amount:</b> ${_e(data.get('amount'), '0.00')} {_e(data.get('currency'), 'USD')}</p>
        <p><b>Customer ID:</b> {_e(data.get('customer_id'))}</p>
        <p><b>Transaction ID:</b> {_e(data.get('transaction_id'))}</p>
        <p><b>Status:</b> {_e(data.get('status'))}</p>
        <p><b>Name:</b> {_e(data.get('cardholder_name'))}</p>
        """
    else:
        details = "<p><b>No items found in transaction</b></p>"

    body = f"""
    <h3>Transaction Event</h3>
    <p><b>Event Type:</b> {_e(data.get('event_type'))}</p>
    <p><b>Event ID:</b> {_e(data.get('event_id'))}</p>
    <p><b>Occurred At:</b> {_e(data.get('occurred_at'))}</p>
    {details}
    """
    text = f"Event: {data.get('event_type')}\nData: {data.get('data_json', '{}')}"
    return body, text


_RENDERERS = {
    "payment_success": _payment_success,
    "admin_event": _admin_event,
}


def render(template: str, data: dict[str, Any]) -> tuple[str, str]:
    """Render a template to ``(html, text)``.

    Raises:
        TemplateError: unknown template or a required variable is missing.
    """
    if template not in TEMPLATES:
        raise TemplateError(f"unknown template: {template}")
    missing = [v for v in TEMPLATES[template]["required_vars"] if v not in data]
    if missing:
        raise TemplateError(f"{template}: missing variables {missing}")
    return _RENDERERS[template](data)
