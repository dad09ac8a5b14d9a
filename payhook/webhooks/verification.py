"""Paddle webhook signature verification, constant-time HMAC-SHA256.

Paddle sends: Paddle-Signature header with format:
ts=<unix seconds>;h1=<hex hmac-sha256 of "ts:body">

Security contract:
- Verification runs over the raw body bytes, never a re-serialized payload
- Comparison uses hmac.compare_digest() on the decoded digests
- Any failure returns Invalid; callers reject the request, no payload processing
- Missing secret -> SERVER_MISCONFIGURED, kept apart from forgery outcomes
- No I/O and no logging here; secrets leave this module only via redact_secret()
"""

from __future__ import annotations

import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable


class VerificationFailure(str, Enum):
    """Why a webhook was rejected."""

    MISSING_INPUT = "missing_input"
    SERVER_MISCONFIGURED = "server_misconfigured"
    MALFORMED_SIGNATURE = "malformed_signature"
    SIGNATURE_MISMATCH = "signature_mismatch"
    INVALID_PAYLOAD = "invalid_payload"
    # Only produced when a freshness window is configured
    STALE_TIMESTAMP = "stale_timestamp"


# Client-facing messages. Never include header values or digests.
FAILURE_MESSAGES: dict[VerificationFailure, str] = {
    VerificationFailure.MISSING_INPUT: "Signature or body missing",
    VerificationFailure.SERVER_MISCONFIGURED: "Server configuration error",
    VerificationFailure.MALFORMED_SIGNATURE: "Malformed signature header",
    VerificationFailure.SIGNATURE_MISMATCH: "Invalid signature",
    VerificationFailure.INVALID_PAYLOAD: "Invalid JSON body",
    VerificationFailure.STALE_TIMESTAMP: "Signature timestamp outside allowed window",
}


@dataclass(frozen=True)
class Valid:
    """Signature matched; carries the parsed event."""

    event: dict[str, Any]

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Invalid:
    """Signature could not be verified."""

    reason: VerificationFailure
    message: str = field(default="")

    def __post_init__(self) -> None:
        if not self.message:
            object.__setattr__(self, "message", FAILURE_MESSAGES[self.reason])

    @property
    def ok(self) -> bool:
        return False


VerificationResult = Union[Valid, Invalid]


@runtime_checkable
class SignatureVerifier(Protocol):
    """Strategy for authenticating an inbound webhook."""

    def verify(self, raw_body: bytes, signature_header: str, secret: bytes) -> VerificationResult:
        ...


def parse_signature_header(signature_header: str) -> dict[str, str]:
    """Split ``ts=...;h1=...`` into a dict.

    Parts without ``=`` are skipped. Values may themselves contain ``=``.
    A repeated key keeps its last value.
    """
    parts: dict[str, str] = {}
    for item in signature_header.split(";"):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        parts[key.strip()] = value.strip()
    return parts


def compute_signature(raw_body: bytes, secret: bytes, timestamp: str) -> str:
    """Lowercase hex HMAC-SHA256 over ``timestamp:raw_body``."""
    signed_payload = timestamp.encode("utf-8") + b":" + raw_body
    return hmac.new(secret, signed_payload, hashlib.sha256).hexdigest()


def sign(raw_body: bytes, secret: bytes, timestamp: int | str | None = None) -> str:
    """Build a Paddle-Signature header value for ``raw_body``."""
    ts = str(int(time.time())) if timestamp is None else str(timestamp)
    return f"ts={ts};h1={compute_signature(raw_body, secret, ts)}"


_H1_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


def _digests_match(expected_hex: str, received_hex: str) -> bool:
    # fromhex() skips embedded whitespace, so the shape is checked first
    if not _H1_PATTERN.fullmatch(received_hex):
        return False
    received = bytes.fromhex(received_hex.lower())
    return hmac.compare_digest(bytes.fromhex(expected_hex), received)


class HmacSignatureVerifier:
    """Canonical verifier for the ts/h1 HMAC-SHA256 scheme.

    Args:
        max_age_seconds: Optional replay window. None disables the check;
            otherwise a matched signature whose ``ts`` is further than this
            from the current time is rejected as STALE_TIMESTAMP.
    """

    def __init__(self, max_age_seconds: int | None = None):
        if max_age_seconds is not None and max_age_seconds < 0:
            raise ValueError("max_age_seconds must be >= 0")
        self.max_age_seconds = max_age_seconds

    def verify(self, raw_body: bytes, signature_header: str, secret: bytes) -> VerificationResult:
        if isinstance(raw_body, str):
            raw_body = raw_body.encode("utf-8")
        if isinstance(secret, str):
            secret = secret.encode("utf-8")

        if not signature_header or not raw_body:
            return Invalid(VerificationFailure.MISSING_INPUT)
        if not secret:
            return Invalid(VerificationFailure.SERVER_MISCONFIGURED)

        parts = parse_signature_header(signature_header)
        timestamp = parts.get("ts")
        received = parts.get("h1")
        if not timestamp or not received:
            return Invalid(VerificationFailure.MALFORMED_SIGNATURE)

        expected = compute_signature(raw_body, secret, timestamp)
        if not _digests_match(expected, received):
            return Invalid(VerificationFailure.SIGNATURE_MISMATCH)

        if self.max_age_seconds is not None:
            failure = self._check_freshness(timestamp)
            if failure is not None:
                return Invalid(failure)

        try:
            event = json.loads(raw_body)
        except (ValueError, RecursionError):
            return Invalid(VerificationFailure.INVALID_PAYLOAD)
        if not isinstance(event, dict):
            return Invalid(VerificationFailure.INVALID_PAYLOAD, "JSON body must be an object")

        return Valid(event)

    def _check_freshness(self, timestamp: str) -> VerificationFailure | None:
        try:
            ts = int(timestamp)
        except ValueError:
            return VerificationFailure.MALFORMED_SIGNATURE
        if abs(int(time.time()) - ts) > self.max_age_seconds:
            return VerificationFailure.STALE_TIMESTAMP
        return None


_default_verifier = HmacSignatureVerifier()


def verify(raw_body: bytes, signature_header: str, secret: bytes) -> VerificationResult:
    """Verify with the default verifier (no freshness window)."""
    return _default_verifier.verify(raw_body, signature_header, secret)


def redact_secret(secret: str | bytes | None, keep: int = 6) -> str:
    """Short, log-safe prefix of a secret."""
    if not secret:
        return "<unset>"
    if isinstance(secret, bytes):
        secret = secret.decode("utf-8", errors="replace")
    if len(secret) <= keep:
        return "***"
    return secret[:keep] + "..."
