"""
Normalized inbound email.

An Email is built once per inbound message by app.services.email_parser and
handed, unchanged, to every downstream classifier and extractor.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel


class Email(BaseModel):
    """
    Canonical representation of an inbound message.

    recipient / sender are single lower-cased addresses; when a header lists
    several, the last one wins. rfc2822_date is the Date header with any
    obsolete "(EST)"-style comment removed and is guaranteed to parse.
    body is the stripped HTML part when present, otherwise the plain text
    part, otherwise None.
    """

    model_config = {"frozen": True}

    recipient: str
    sender: str
    rfc2822_date: str
    timestamp: int          # seconds since epoch
    tz_offset: int          # seconds east of UTC, e.g. -14400 for EDT
    body: Optional[str] = None
    message_id: Optional[str] = None

    @property
    def date(self) -> datetime:
        """The validated date as an aware datetime in the sender's offset."""
        tz = timezone(timedelta(seconds=self.tz_offset))
        return datetime.fromtimestamp(self.timestamp, tz)
