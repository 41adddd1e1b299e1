"""
Result of routing an inbound email.

Exactly one outcome is produced per email. Emails that match no route do
not get an outcome; email_router raises RoutingError instead.
"""

from typing import Literal, Union

from pydantic import BaseModel

from app.models.purchase import GmailForwardingConfirmation, Purchase


class BankPurchase(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["bank_purchase"] = "bank_purchase"
    purchase: Purchase


class GmailConfirmation(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["gmail_confirmation"] = "gmail_confirmation"
    confirmation: GmailForwardingConfirmation


ClassificationOutcome = Union[BankPurchase, GmailConfirmation]
