"""
Inbound email classification and routing.

Routes are checked in a fixed order and the first match wins:

  1. From is Gmail's forwarding sender     -> Gmail confirmation extractor
  2. Raw text mentions our bank alert addr -> purchase extractor
  3. Anything else                         -> RoutingError

Step 2 searches the raw MIME text, not a header, because forwarded alerts
carry our address in Received/Reply-To lines or the body rather than To.

Extraction failures inside a matched route are wrapped in ProcessingError
so callers can tell "not for us" apart from "for us but broken".
"""

from enum import Enum
from typing import Union

from app.config import Settings
from app.models.email import Email
from app.models.outcome import BankPurchase, ClassificationOutcome, GmailConfirmation
from app.services.email_errors import InboundEmailError, ProcessingError, RoutingError
from app.services.gmail_confirmation import (
    GMAIL_FORWARDING_SENDER,
    extract_gmail_confirmation,
)
from app.services.purchase_extractor import extract_purchase


class Route(str, Enum):
    GMAIL_CONFIRMATION = "gmail_confirmation"
    BANK_PURCHASE = "bank_purchase"
    UNRECOGNIZED = "unrecognized"


def _as_text(raw: Union[str, bytes]) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def classify_email(email: Email, raw: Union[str, bytes], settings: Settings) -> Route:
    """Decide which route an email takes. Pure; never raises."""
    if email.sender == GMAIL_FORWARDING_SENDER:
        return Route.GMAIL_CONFIRMATION
    if settings.bank_alert_address in _as_text(raw):
        return Route.BANK_PURCHASE
    return Route.UNRECOGNIZED


def route_email(
    email: Email, raw: Union[str, bytes], settings: Settings
) -> ClassificationOutcome:
    """
    Classify ``email`` and run the matching extractor.

    Raises:
        RoutingError: no route matched.
        ProcessingError: the matched extractor failed; the original error
            is available as ``.cause`` and ``__cause__``.
    """
    route = classify_email(email, raw, settings)

    if route is Route.GMAIL_CONFIRMATION:
        try:
            return GmailConfirmation(confirmation=extract_gmail_confirmation(email))
        except InboundEmailError as exc:
            raise ProcessingError(exc) from exc

    if route is Route.BANK_PURCHASE:
        try:
            return BankPurchase(purchase=extract_purchase(email))
        except InboundEmailError as exc:
            raise ProcessingError(exc) from exc

    raise RoutingError(f"no route for email from {email.sender!r} to {email.recipient!r}")
