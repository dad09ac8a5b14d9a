"""Shared fixtures: fake collaborators and signed request builders."""

from __future__ import annotations

import json

import pytest

from payhook.tools.customers import Customer
from payhook.webhooks.verification import sign
from tests.fakes import SECRET, TIMESTAMP, FakeCustomers


@pytest.fixture
def signed_request():
    """Factory: payload -> (body bytes, Paddle-Signature header)."""

    def _make(payload: dict | bytes, secret: bytes = SECRET, timestamp: str = TIMESTAMP) -> tuple[bytes, str]:
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        return body, sign(body, secret, timestamp)

    return _make


@pytest.fixture
def customers() -> FakeCustomers:
    return FakeCustomers(
        {"ctm_01": Customer(id="ctm_01", email="buyer@example.com", name="Buyer One")}
    )
