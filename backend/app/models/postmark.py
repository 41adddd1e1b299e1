"""
Postmark inbound webhook payload.

Postmark posts a large JSON document (From, To, TextBody, HtmlBody,
Attachments, ...). We only need the untouched MIME source in RawEmail and
parse everything else ourselves, so all other keys are ignored.
"""

from typing import Optional

from pydantic import BaseModel


class PostmarkInboundPayload(BaseModel):
    """Subset of Postmark's inbound webhook JSON that we read."""

    model_config = {"extra": "ignore"}

    RawEmail: str
    MessageID: Optional[str] = None
