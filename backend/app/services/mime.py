"""
MIME normalizer and content selector.

Wraps the standard library ``email`` parser with the small surface the
inbound pipeline needs:

  parse_mime(raw)            -> MimeMessage (headers + shallow subpart list)
  extract_addresses(value)   -> ordered, lower-cased addresses from a header
  validate_rfc2822_date(v)   -> normalized date string, or InvalidDateError
  find_subpart(msg, target)  -> first part whose Content-Type contains target

Subparts are deliberately shallow: index 0 is the message itself, then its
direct children in declaration order. Grandchildren (e.g. the parts of a
multipart/alternative nested inside multipart/mixed) are never visited.
"""

import email
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.message import Message
from email.utils import getaddresses
from typing import Iterator, Optional, Union

from app.services.email_errors import InvalidDateError, ParsingError

_FOLDING_RE = re.compile(r"\r?\n[ \t]+")

_WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

# Obsolete zone names (RFC 2822 section 4.3), in hours east of UTC
_OBSOLETE_ZONES = {
    "UT": 0, "GMT": 0,
    "EST": -5, "EDT": -4,
    "CST": -6, "CDT": -5,
    "MST": -7, "MDT": -6,
    "PST": -8, "PDT": -7,
}

_RFC2822_RE = re.compile(
    r"\s*(?:(?P<weekday>" + "|".join(_WEEKDAYS) + r")\s*,\s*)?"
    r"(?P<day>\d{1,2})\s+"
    r"(?P<month>" + "|".join(_MONTHS) + r")\s+"
    r"(?P<year>\d{4})\s+"
    r"(?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?\s+"
    r"(?P<zone>[+-]\d{4}|" + "|".join(_OBSOLETE_ZONES) + r")\s*",
    re.IGNORECASE | re.ASCII,
)


def _unfold(value: str) -> str:
    """Undo RFC 2822 header folding."""
    return _FOLDING_RE.sub(" ", value).strip()


@dataclass(frozen=True)
class MimePart:
    """One node of a parsed message: its headers and its decoded body."""

    message: Message

    def header(self, name: str) -> Optional[str]:
        """
        First value of the named header (case-insensitive), unfolded. Raw
        8bit header bytes are read as UTF-8.
        """
        wanted = name.lower()
        for key, value in self.message.raw_items():
            if key.lower() == wanted:
                raw = value.encode("utf-8", "surrogateescape")
                return _unfold(raw.decode("utf-8", errors="replace"))
        return None

    @property
    def content_type(self) -> Optional[str]:
        return self.header("Content-Type")

    def body(self) -> str:
        """
        Body text with transfer encoding (base64, quoted-printable) removed
        and the declared charset applied. Multipart containers have no body
        of their own and return an empty string.
        """
        if self.message.is_multipart():
            return ""
        payload = self.message.get_payload(decode=True)
        if payload is None:
            return ""
        charset = self.message.get_content_charset() or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except LookupError:
            # Unknown charset name in the header
            return payload.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class MimeMessage(MimePart):
    """The top-level part of a parsed email."""

    def subparts(self) -> Iterator[MimePart]:
        """Yield the message itself, then each direct child part."""
        yield self
        if self.message.is_multipart():
            for child in self.message.get_payload():
                yield MimePart(child)


def parse_mime(raw: Union[str, bytes]) -> MimeMessage:
    """
    Split a raw RFC 2822 message into headers and subparts.

    Raises ParsingError("Content") when the input has no header block at all.
    Text input is parsed as its UTF-8 bytes so that 8bit bodies decode with
    their declared charset.
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8", "surrogateescape")
    message = email.message_from_bytes(raw)

    if not raw or not message.keys():
        raise ParsingError("Content", "could not split email into headers and body")

    return MimeMessage(message)


def find_subpart(message: MimeMessage, target: str) -> Optional[MimePart]:
    """
    Return the first subpart whose Content-Type header contains ``target``.

    This is a case-sensitive substring test, not a MIME type comparison, so
    "text/html" matches "text/html; charset=UTF-8".
    """
    for part in message.subparts():
        content_type = part.content_type
        if content_type is not None and target in content_type:
            return part
    return None


def extract_addresses(header_value: str) -> list[str]:
    """
    Parse an address-list header into lower-cased bare addresses.

    Group syntax ("team: a@x.org, b@x.org;") is flattened. Raises
    ParsingError when nothing in the header parses as an address.
    """
    addresses = [
        addr.strip().lower()
        for _, addr in getaddresses([header_value])
        if addr and addr.strip()
    ]
    if not addresses:
        raise ParsingError("Address", f"no address found in {header_value!r}")
    return addresses


def last_address(message: MimeMessage, header: str) -> str:
    """
    The canonical address for a To/From header: the last one listed.

    Raises ParsingError(header) if the header is missing or unparseable.
    """
    value = message.header(header)
    if value is None:
        raise ParsingError(header, f"missing {header}: header")
    try:
        return extract_addresses(value)[-1]
    except ParsingError as exc:
        raise ParsingError(header, f"could not parse {header}: header") from exc


def _zone_offset(zone: str) -> Optional[int]:
    """Seconds east of UTC for a +HHMM/-HHMM or obsolete named zone."""
    named = _OBSOLETE_ZONES.get(zone.upper())
    if named is not None:
        return named * 3600
    hours, minutes = int(zone[1:3]), int(zone[3:5])
    if hours > 23 or minutes > 59:
        return None
    offset = hours * 3600 + minutes * 60
    return -offset if zone[0] == "-" else offset


def _parse_rfc2822(value: str) -> Optional[tuple[int, int]]:
    """
    Parse a date-time into (unix timestamp, offset seconds east of UTC).

    Returns None unless the whole value follows the RFC 2822 grammar, names
    a real calendar date, carries a weekday (if any) that agrees with that
    date, and has a valid zone. "-0000" means "offset unknown" and reads
    as UTC.
    """
    match = _RFC2822_RE.fullmatch(value)
    if match is None:
        return None

    offset = _zone_offset(match.group("zone"))
    if offset is None:
        return None

    try:
        local = datetime(
            int(match.group("year")),
            _MONTHS.index(match.group("month").title()) + 1,
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second") or 0),
            tzinfo=timezone(timedelta(seconds=offset)),
        )
    except ValueError:
        return None

    weekday = match.group("weekday")
    if weekday is not None and _WEEKDAYS.index(weekday.title()) != local.weekday():
        return None
    return int(local.timestamp()), offset


def validate_rfc2822_date(value: str) -> str:
    """
    Validate a Date header value and return the normalized string.

    A trailing parenthesized comment such as "(EST)" is obsolete syntax;
    it is cut off together with the character before it, and the rest must
    parse as RFC 2822 with an explicit zone.
    """
    candidate = value
    idx = candidate.find("(")
    if idx != -1:
        candidate = candidate[: max(idx - 1, 0)]

    if _parse_rfc2822(candidate) is None:
        raise InvalidDateError(value)
    return candidate


def rfc2822_timestamp(value: str) -> tuple[int, int]:
    """
    Return (unix timestamp, utc offset in seconds) for a date string that
    already passed validate_rfc2822_date.
    """
    parsed = _parse_rfc2822(value)
    if parsed is None:
        raise InvalidDateError(value)
    return parsed
