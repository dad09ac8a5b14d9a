"""FastAPI application factory for the webhook receiver.

Collaborators (verifier, customer lookup, mailers) are built once from
Settings and attached to app.state; nothing is held in module globals.
Run with: python -m payhook.serve  (or uvicorn --factory payhook.serve:create_app)
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from payhook import __version__
from payhook.channels.email import SmtpMailer
from payhook.channels.protocol import Mailer
from payhook.channels.resend_mailer import ResendMailer
from payhook.config import Settings
from payhook.tools.customers import PaddleCustomerClient
from payhook.webhooks.dispatcher import WebhookDispatcher
from payhook.webhooks.handlers import WebhookContext, register_webhook_routes
from payhook.webhooks.verification import HmacSignatureVerifier, redact_secret

logger = logging.getLogger(__name__)


def build_mailer(kind: str, settings: Settings) -> Mailer:
    """Mailer for ``kind`` ("smtp" or "resend")."""
    if kind == "resend":
        return ResendMailer(
            api_key=settings.resend_api_key,
            from_email=settings.email_from,
            from_name=settings.email_from_name,
        )
    if kind == "smtp":
        return SmtpMailer(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.email_user,
            smtp_password=settings.email_pass,
            smtp_from=settings.email_from or settings.email_user,
            timeout=settings.http_timeout_seconds,
        )
    raise ValueError(f"Unknown mailer: {kind!r} (expected 'smtp' or 'resend')")


def build_context(settings: Settings) -> WebhookContext:
    customers = None
    if settings.paddle_api_key:
        customers = PaddleCustomerClient(
            api_key=settings.paddle_api_key,
            base_url=settings.paddle_api_url,
            timeout=settings.http_timeout_seconds,
        )
    else:
        logger.warning("PADDLE_API_KEY not set; customer lookup disabled")

    customer_mailer = build_mailer(settings.customer_mailer, settings)
    admin_mailer = build_mailer(settings.admin_mailer, settings)
    for mailer in (customer_mailer, admin_mailer):
        if not mailer.is_configured:
            logger.warning("Mailer %s not configured; sends will fail", mailer.channel_id)

    dispatcher = WebhookDispatcher(
        customer_mailer=customer_mailer,
        admin_mailer=admin_mailer,
        customers=customers,
        admin_recipients=settings.admin_recipients,
        customer_cc=settings.customer_cc_recipients,
    )
    return WebhookContext(
        verifier=HmacSignatureVerifier(max_age_seconds=settings.max_signature_age_seconds),
        secret=settings.secret_bytes,
        dispatcher=dispatcher,
        signature_header=settings.signature_header,
    )


def create_app(settings: Settings | None = None, context: WebhookContext | None = None) -> FastAPI:
    """Build the app. Tests pass a ready ``context`` with fake collaborators."""
    settings = settings or Settings()
    app = FastAPI(title="payhook", version=__version__)
    app.state.settings = settings
    app.state.webhook_context = context or build_context(settings)

    if not app.state.webhook_context.secret:
        logger.error("PADDLE_SECRET_KEY not set; every webhook will be rejected with 500")
    else:
        logger.info("Webhook secret loaded: %s", redact_secret(app.state.webhook_context.secret))

    register_webhook_routes(app)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


def main() -> None:
    import uvicorn

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(create_app(settings), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
