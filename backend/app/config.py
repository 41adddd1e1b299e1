"""
Application settings.

All environment lookups happen here, once, and the resulting Settings object
is passed explicitly to whatever needs it (the webhook router gets it through
``Depends(get_settings)``; tests build their own). Nothing in the email
pipeline reads the environment directly.

Environment variables
---------------------
EMAIL_DOMAIN              Domain this service receives and sends mail as
                          (default: dev.whotookmy.money).
POSTMARK_WEBHOOK_SECRET   Shared secret expected in X-Webhook-Secret or
                          X-Postmark-Secret. When unset the webhook is open.
GMAIL_AUTO_CONFIRM        "false" disables the POST to Gmail's confirmation
                          URL (default: true).
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

load_dotenv()

DEFAULT_EMAIL_DOMAIN = "dev.whotookmy.money"


class Settings(BaseModel):
    """Immutable runtime configuration."""

    model_config = {"frozen": True}

    email_domain: str = DEFAULT_EMAIL_DOMAIN
    webhook_secret: Optional[str] = None
    gmail_auto_confirm: bool = True

    @field_validator("email_domain")
    @classmethod
    def _strip_leading_at(cls, v: str) -> str:
        # Older deployments configured the domain as "@example.com"
        v = v.strip().lstrip("@")
        if not v:
            raise ValueError("email_domain must not be empty")
        return v.lower()

    @property
    def bank_alert_address(self) -> str:
        """Address users register with their bank for purchase alerts."""
        return f"alerts@{self.email_domain}"

    @property
    def outbound_sender(self) -> str:
        """From address for every email we queue."""
        return f"alerts@{self.email_domain}"


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    auto_confirm = os.getenv("GMAIL_AUTO_CONFIRM", "true").strip().lower()
    return Settings(
        email_domain=os.getenv("EMAIL_DOMAIN", DEFAULT_EMAIL_DOMAIN),
        webhook_secret=os.getenv("POSTMARK_WEBHOOK_SECRET") or None,
        gmail_auto_confirm=auto_confirm not in ("0", "false", "no", "off"),
    )


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide Settings."""
    return load_settings()
