"""Webhook HTTP handlers: FastAPI routes for inbound Paddle notifications.

Each request:
1. Reads the raw body (needed byte-exact for HMAC verification)
2. Verifies the Paddle-Signature header against the configured secret
3. Rejects on any verification failure, before any event processing
4. Parses and dispatches the event (customer + admin emails)
5. Returns 200 {"ok": true, "event": ..., "id": ...}

Security contract:
- The verifier is never bypassed; no unverified payload is processed
- 400 for verification failures, 500 for a missing secret
- Error bodies carry a fixed message, never secrets, header values or digests
- Notification failures are logged and never change the 200 acknowledgment
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from payhook.webhooks.dispatcher import WebhookDispatcher, parse_event
from payhook.webhooks.verification import (
    Invalid,
    SignatureVerifier,
    VerificationFailure,
    parse_signature_header,
    redact_secret,
)

logger = logging.getLogger(__name__)

PROVIDER = "paddle"
WEBHOOK_PATH = "/webhooks/paddle"

_STATUS_BY_FAILURE: dict[VerificationFailure, int] = {
    VerificationFailure.MISSING_INPUT: 400,
    VerificationFailure.SERVER_MISCONFIGURED: 500,
    VerificationFailure.MALFORMED_SIGNATURE: 400,
    VerificationFailure.SIGNATURE_MISMATCH: 400,
    VerificationFailure.STALE_TIMESTAMP: 400,
    VerificationFailure.INVALID_PAYLOAD: 400,
}


@dataclass
class WebhookContext:
    """Per-app collaborators, built once at startup and read-only afterwards."""

    verifier: SignatureVerifier
    secret: bytes
    dispatcher: WebhookDispatcher
    signature_header: str = "paddle-signature"
    counts: Counter = field(default_factory=Counter)


def _log_webhook(ctx: WebhookContext, event_type: str, event_id: str, status: str) -> None:
    """Audit log for webhook activity."""
    ctx.counts[status] += 1
    logger.info(
        "WEBHOOK_AUDIT provider=%s event=%s id=%s status=%s count=%d",
        PROVIDER,
        event_type,
        event_id,
        status,
        ctx.counts[status],
    )


def cors_preflight_headers(signature_header: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": f"Content-Type, {signature_header}",
    }


async def handle_paddle_webhook(request: Request) -> JSONResponse:
    """Verify, then dispatch, one Paddle notification."""
    start = time.time()
    ctx: WebhookContext = request.app.state.webhook_context

    body = await request.body()
    signature = request.headers.get(ctx.signature_header, "")

    logger.info(
        "Webhook received: body_length=%d has_signature=%s signature_keys=%s "
        "has_secret=%s secret=%s",
        len(body),
        bool(signature),
        sorted(parse_signature_header(signature)) if signature else [],
        bool(ctx.secret),
        redact_secret(ctx.secret),
    )

    result = ctx.verifier.verify(body, signature, ctx.secret)
    if isinstance(result, Invalid):
        status_code = _STATUS_BY_FAILURE.get(result.reason, 400)
        if result.reason is VerificationFailure.SERVER_MISCONFIGURED:
            logger.error("Webhook secret not configured (PADDLE_SECRET_KEY)")
        else:
            logger.warning("Webhook rejected: %s", result.reason.value)
        _log_webhook(ctx, "unknown", "unknown", result.reason.value)
        return JSONResponse({"message": result.message}, status_code=status_code)

    event = parse_event(result.event)

    # Blocking collaborators (httpx, SMTP, Resend) run off the event loop
    try:
        report = await run_in_threadpool(ctx.dispatcher.dispatch, event)
    except Exception:
        logger.exception("Failed to dispatch webhook event: %s", event.event_type)
        _log_webhook(ctx, event.event_type, event.event_id or "", "dispatch_failed")
    else:
        status = "processed" if not report.failures else "processed_with_failures"
        _log_webhook(ctx, event.event_type, event.event_id or "", status)

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Webhook processed in %.1fms: %s", elapsed_ms, event.event_type)

    return JSONResponse(
        {"ok": True, "event": event.event_type, "id": event.event_id},
        status_code=200,
    )


def register_webhook_routes(app: FastAPI) -> None:
    """Register the Paddle webhook routes on the app.

    Expects app.state.webhook_context to be set before the first request.
    """

    @app.post(WEBHOOK_PATH)
    async def paddle_webhook(request: Request):
        """Receive Paddle webhooks (signature-verified)."""
        return await handle_paddle_webhook(request)

    @app.options(WEBHOOK_PATH)
    async def paddle_webhook_preflight(request: Request):
        """Permissive CORS preflight."""
        ctx: WebhookContext = request.app.state.webhook_context
        return Response(status_code=200, headers=cors_preflight_headers(ctx.signature_header))

    @app.get("/webhooks/status")
    async def webhook_status(request: Request):
        """Webhook outcome counts."""
        ctx: WebhookContext = request.app.state.webhook_context
        return {"counts": dict(ctx.counts), "secret_configured": bool(ctx.secret)}

    logger.info("Webhook routes registered: %s", WEBHOOK_PATH)
