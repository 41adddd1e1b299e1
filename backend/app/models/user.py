"""
Pydantic models for users and queued outbound email.
"""

from typing import Optional

from pydantic import BaseModel


class User(BaseModel):
    """Full users record from the database."""

    model_config = {"from_attributes": True}

    id: int
    email: str
    tz_offset: int = 0
    created_at: Optional[str] = None


class OutboundEmail(BaseModel):
    """An email waiting in the outbound_emails table to be sent."""

    sender: str
    destination: str
    subject: Optional[str] = None
    body: Optional[str] = None
    body_html: Optional[str] = None
