"""Paddle customer lookup over the Paddle Billing REST API.

GET {base_url}/customers/{customer_id} with a Bearer API key. Only the
email and name are read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from payhook.errors import CustomerLookupError
from payhook.tools.retry import retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Customer:
    id: str
    email: str | None
    name: str | None


@runtime_checkable
class CustomerLookup(Protocol):
    """Resolves a customer id to contact details, raising CustomerLookupError."""

    def get(self, customer_id: str) -> Customer:
        ...


class PaddleCustomerClient:
    """Customer lookup backed by the Paddle API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.paddle.com",
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @retry_with_backoff(max_retries=2)
    def _fetch(self, customer_id: str) -> dict:
        response = self._client.get(
            f"{self._base_url}/customers/{customer_id}",
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Accept": "application/json",
            },
        )
        response.raise_for_status()
        return response.json()

    def get(self, customer_id: str) -> Customer:
        if not self.is_configured:
            raise CustomerLookupError(customer_id, "PADDLE_API_KEY not configured")
        try:
            body = self._fetch(customer_id)
        except httpx.HTTPStatusError as e:
            raise CustomerLookupError(
                customer_id, f"HTTP {e.response.status_code}", cause=e
            ) from e
        except httpx.HTTPError as e:
            raise CustomerLookupError(customer_id, type(e).__name__, cause=e) from e
        except ValueError as e:
            raise CustomerLookupError(customer_id, "invalid JSON response", cause=e) from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise CustomerLookupError(customer_id, "response missing data object")

        logger.debug("Customer %s fetched", customer_id)
        return Customer(id=customer_id, email=data.get("email"), name=data.get("name"))

    def close(self) -> None:
        self._client.close()
