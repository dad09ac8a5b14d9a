"""Security test fixtures.

Builds the FastAPI app through create_app() with an injected WebhookContext,
so no real mailer, SMTP server or Paddle API is touched.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from payhook.config import Settings
from payhook.serve import create_app
from payhook.webhooks.dispatcher import WebhookDispatcher
from payhook.webhooks.handlers import WebhookContext
from payhook.webhooks.verification import HmacSignatureVerifier
from tests.fakes import SECRET, FakeMailer


@pytest.fixture
def mailers() -> dict[str, FakeMailer]:
    return {"customer": FakeMailer("customer"), "admin": FakeMailer("admin")}


@pytest.fixture
def make_context(mailers, customers):
    """Factory for a WebhookContext with fake collaborators."""

    def _make(secret: bytes = SECRET, max_age_seconds: int | None = None) -> WebhookContext:
        dispatcher = WebhookDispatcher(
            customer_mailer=mailers["customer"],
            admin_mailer=mailers["admin"],
            customers=customers,
            admin_recipients=["admin@example.com"],
        )
        return WebhookContext(
            verifier=HmacSignatureVerifier(max_age_seconds=max_age_seconds),
            secret=secret,
            dispatcher=dispatcher,
        )

    return _make


@pytest.fixture
def context(make_context) -> WebhookContext:
    return make_context()


@pytest.fixture
def app(context):
    return create_app(Settings(_env_file=None), context=context)


@pytest.fixture
def client(app):
    """TestClient (provider perspective)."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
