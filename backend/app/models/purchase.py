"""
Pydantic models for data extracted from inbound emails.
"""

from typing import Optional

from pydantic import BaseModel, Field


class Purchase(BaseModel):
    """A single card purchase, extracted from a bank alert or loaded from the DB."""

    model_config = {"frozen": True, "from_attributes": True}

    user_email: str
    amount_in_cents: int = Field(ge=0)
    merchant: str = Field(min_length=1)
    timestamp: int          # seconds since epoch, from the alert's Date header


class GmailForwardingConfirmation(BaseModel):
    """The actionable parts of Gmail's "confirm forwarding" email."""

    model_config = {"frozen": True}

    confirmation_code: str = Field(min_length=1)
    confirmation_url: str = Field(min_length=1)
    # Address of the Gmail user asking to forward mail to us
    user_email: Optional[str] = None
