"""payhook configuration."""

from __future__ import annotations

from pydantic_settings import BaseSettings

_PADDLE_API_URLS = {
    "production": "https://api.paddle.com",
    "sandbox": "https://sandbox-api.paddle.com",
}


def _split_addresses(raw: str) -> list[str]:
    return [a.strip() for a in raw.split(",") if a.strip()]


class Settings(BaseSettings):
    """Environment-driven settings for the webhook receiver."""

    # Paddle
    paddle_secret_key: str = ""
    paddle_api_key: str = ""
    paddle_environment: str = "production"
    signature_header: str = "paddle-signature"
    # None keeps timestamp freshness unchecked
    max_signature_age_seconds: int | None = None

    # Resend
    resend_api_key: str = ""
    email_from: str = ""
    email_from_name: str = "HistoriVIN"

    # SMTP
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    email_user: str = ""
    email_pass: str = ""

    # Recipients, comma separated
    admin_emails: str = ""
    customer_cc: str = ""

    # Which channel serves which audience: "smtp" or "resend"
    customer_mailer: str = "resend"
    admin_mailer: str = "smtp"

    http_timeout_seconds: float = 15.0
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def secret_bytes(self) -> bytes:
        return self.paddle_secret_key.encode("utf-8")

    @property
    def paddle_api_url(self) -> str:
        return _PADDLE_API_URLS.get(self.paddle_environment.lower(), _PADDLE_API_URLS["production"])

    @property
    def admin_recipients(self) -> list[str]:
        return _split_addresses(self.admin_emails)

    @property
    def customer_cc_recipients(self) -> list[str]:
        return _split_addresses(self.customer_cc)
