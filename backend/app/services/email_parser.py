"""
Build the normalized Email model from raw MIME text.

Steps:
  1. Split headers and subparts (mime.parse_mime).
  2. Resolve To / From to their last listed address, lower-cased.
  3. Validate the Date header, dropping a trailing "(TZ)" comment.
  4. Resolve the body: the stripped text/html part if it has both body
     tags, otherwise the text/plain part, otherwise nothing.

Failures raise ParsingError / InvalidDateError; nothing is logged here.
"""

from typing import Optional, Union

from app.models.email import Email
from app.services.email_errors import BadlyFormattedError, ParsingError
from app.services.html_stripper import strip_html
from app.services.mime import (
    MimeMessage,
    find_subpart,
    last_address,
    parse_mime,
    rfc2822_timestamp,
    validate_rfc2822_date,
)


def _resolve_body(message: MimeMessage) -> Optional[str]:
    html_part = find_subpart(message, "text/html")
    if html_part is not None:
        try:
            return strip_html(html_part.body())
        except BadlyFormattedError:
            pass  # fall through to the plain text part

    text_part = find_subpart(message, "text/plain")
    if text_part is not None:
        return text_part.body()

    return None


def parse_email(raw: Union[str, bytes]) -> Email:
    """
    Convert a raw RFC 2822 email into an Email.

    Raises:
        ParsingError: missing or unparseable To/From/Date header, or input
            that is not an email at all.
        InvalidDateError: Date header present but not RFC 2822.
    """
    message = parse_mime(raw)

    recipient = last_address(message, "To")
    sender = last_address(message, "From")

    date_header = message.header("Date")
    if date_header is None:
        raise ParsingError("Date", "missing Date: header")
    rfc2822_date = validate_rfc2822_date(date_header)
    timestamp, tz_offset = rfc2822_timestamp(rfc2822_date)

    return Email(
        recipient=recipient,
        sender=sender,
        rfc2822_date=rfc2822_date,
        timestamp=timestamp,
        tz_offset=tz_offset,
        body=_resolve_body(message),
        message_id=message.header("Message-ID"),
    )


def build_email(
    to: str,
    sender: str,
    date: str,
    body: Optional[str] = None,
    message_id: Optional[str] = None,
) -> Email:
    """
    Build an Email from already-separated parts. ``body`` is taken as plain
    text. The date is validated exactly as in parse_email.
    """
    rfc2822_date = validate_rfc2822_date(date)
    timestamp, tz_offset = rfc2822_timestamp(rfc2822_date)
    return Email(
        recipient=to.lower(),
        sender=sender.lower(),
        rfc2822_date=rfc2822_date,
        timestamp=timestamp,
        tz_offset=tz_offset,
        body=body,
        message_id=message_id,
    )
