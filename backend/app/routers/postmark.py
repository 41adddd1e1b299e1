"""
Postmark inbound webhook.

Postmark posts every email sent to our domain here. The raw MIME source is
parsed and routed by the email pipeline; this module does the side effects
that follow a successful classification:

  bank purchase      -> save purchase, create user, record their tz offset
  gmail confirmation -> POST the confirmation link, mail the code to the user

Environment variables
---------------------
POSTMARK_WEBHOOK_SECRET   Optional shared secret checked in X-Webhook-Secret
                          (or X-Postmark-Secret). Unset means no check.

Endpoints:
  POST /inbound   Postmark webhook

Every structurally valid payload gets a 200, whatever happens to the email,
so Postmark never redelivers. Failures are logged and reported in the
response body's "reason" field.
"""

import hmac
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.models.email import Email
from app.models.outcome import BankPurchase
from app.models.postmark import PostmarkInboundPayload
from app.models.purchase import GmailForwardingConfirmation, Purchase
from app.models.user import OutboundEmail
from app.services import store
from app.services.currency import cents_to_dollar_string
from app.services.email_errors import InboundEmailError, ProcessingError, RoutingError
from app.services.email_parser import parse_email
from app.services.email_router import route_email
from app.services.store import StoreError, TooManyEmailsError

logger = logging.getLogger(__name__)

router = APIRouter()

GMAIL_CONFIRMATION_SUBJECT = "Gmail Email Forwarding Confirmation Code"

# Seconds to wait for Gmail when auto-confirming a forwarding request
_CONFIRM_TIMEOUT = 10


# ---------------------------------------------------------------------------
# Webhook authentication dependency
# ---------------------------------------------------------------------------

def _verify_webhook_secret(
    x_webhook_secret: Optional[str] = Header(None),
    x_postmark_secret: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Check the shared secret when one is configured.

    Accepts the secret in either X-Webhook-Secret or X-Postmark-Secret.
    Raises 401 if a secret is configured and the request does not carry it.
    """
    expected = settings.webhook_secret
    if not expected:
        return

    provided = x_webhook_secret or x_postmark_secret
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

def _auto_confirm_forwarding(url: str) -> bool:
    """
    POST to Gmail's confirmation link, which approves the forwarding request.
    Best effort: returns False on any HTTP failure.
    """
    try:
        response = httpx.post(
            url, headers={"Host": "mail.google.com"}, timeout=_CONFIRM_TIMEOUT
        )
    except httpx.HTTPError as e:
        logger.warning(f"Gmail forwarding auto-confirmation failed: {e}")
        return False

    if response.is_error:
        logger.warning(
            f"Gmail forwarding auto-confirmation returned HTTP {response.status_code}"
        )
        return False
    return True


def _handle_purchase(email: Email, purchase: Purchase, msgid: str) -> dict:
    try:
        purchase_id = store.save_purchase(purchase)
        user_id, _ = store.get_or_create_user(email.recipient)
    except StoreError as e:
        logger.error(f"Error saving purchase from {msgid}: {e.message}")
        return {"received": True, "processed": False, "reason": "db_error"}

    store.set_user_tz_offset(user_id, email.tz_offset)

    amount = cents_to_dollar_string(purchase.amount_in_cents)
    logger.info(
        f"Saved purchase {purchase_id} for {purchase.user_email}: "
        f"{purchase.merchant} {amount} ({msgid})"
    )
    return {
        "received": True,
        "processed": True,
        "kind": "bank_purchase",
        "purchase_id": purchase_id,
        "merchant": purchase.merchant,
        "amount": amount,
    }


def _handle_gmail_confirmation(
    confirmation: GmailForwardingConfirmation, settings: Settings, msgid: str
) -> dict:
    confirmed = False
    if settings.gmail_auto_confirm:
        confirmed = _auto_confirm_forwarding(confirmation.confirmation_url)

    queued = False
    if confirmation.user_email is None:
        logger.warning(f"No user address in gmail confirmation {msgid}; code not sent")
    else:
        # Send the code too, in case auto-confirmation did not go through
        outbound = OutboundEmail(
            sender=settings.outbound_sender,
            destination=confirmation.user_email,
            subject=GMAIL_CONFIRMATION_SUBJECT,
            body=confirmation.confirmation_code,
        )
        try:
            store.queue_email(outbound)
            queued = True
        except TooManyEmailsError as e:
            logger.warning(f"Not sending confirmation code for {msgid}: {e.message}")
        except StoreError as e:
            logger.error(f"Error queueing confirmation code for {msgid}: {e.message}")

    return {
        "received": True,
        "processed": True,
        "kind": "gmail_confirmation",
        "auto_confirmed": confirmed,
        "code_queued": queued,
    }


def _process_inbound_email(raw_email: str, settings: Settings) -> dict:
    """
    Parse, route and act on one raw email.

    Returns a dict suitable for the HTTP response.
    """
    try:
        email = parse_email(raw_email)
    except InboundEmailError as e:
        logger.error(f"Could not parse inbound email: {e.message}")
        return {
            "received": True,
            "processed": False,
            "reason": "parse_error",
            "error_code": e.error_code,
        }

    msgid = email.message_id or "[no-message-id]"
    logger.info(f"New inbound email {msgid} from {email.sender} to {email.recipient}")

    try:
        outcome = route_email(email, raw_email, settings)
    except RoutingError:
        logger.warning(f"Failed to route email {msgid}")
        return {"received": True, "processed": False, "reason": "unrouted"}
    except ProcessingError as e:
        logger.error(f"Error processing email {msgid}: {e.cause}")
        return {
            "received": True,
            "processed": False,
            "reason": "processing_error",
            "error_code": getattr(e.cause, "error_code", e.error_code),
        }

    if isinstance(outcome, BankPurchase):
        return _handle_purchase(email, outcome.purchase, msgid)
    return _handle_gmail_confirmation(outcome.confirmation, settings, msgid)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/inbound")
def receive_inbound_email(
    payload: dict,
    settings: Settings = Depends(get_settings),
    _: None = Depends(_verify_webhook_secret),
) -> dict:
    """
    Postmark inbound webhook receiver.

    400 if the JSON has no RawEmail string; 200 for everything else.
    """
    try:
        inbound = PostmarkInboundPayload(**payload)
    except ValidationError:
        logger.warning("Postmark payload is missing RawEmail")
        raise HTTPException(status_code=400, detail="RawEmail is required")

    return _process_inbound_email(inbound.RawEmail, settings)
