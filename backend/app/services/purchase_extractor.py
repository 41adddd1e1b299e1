"""
Purchase extraction from bank alert emails.

Each supported bank is a BankFormat keyed by its alert sender address, with
one line-position rule per format registered in _EXTRACTORS.

Adding a bank:
  1. Add a BankFormat member whose value is the bank's alert sender.
  2. Write a _locate_<bank>(lines) -> (merchant, amount_str) function.
  3. Register it in _EXTRACTORS.

All rules operate on the same preprocessed input: the resolved body split on
newlines, each line trimmed, blank lines dropped.
"""

from enum import Enum
from typing import Callable, Optional

from app.models.email import Email
from app.models.purchase import Purchase
from app.services.currency import InvalidAmountError, dollar_string_to_cents
from app.services.email_errors import (
    InvalidPurchaseAmountError,
    ParsingError,
    UnknownSenderError,
)


class BankFormat(str, Enum):
    CHASE = "no.reply.alerts@chase.com"
    SCHWAB = "donotreply-comm@schwab.com"

    @classmethod
    def for_sender(cls, sender: str) -> "BankFormat":
        """Return the format for a sender address, or raise UnknownSenderError."""
        try:
            return cls(sender)
        except ValueError:
            raise UnknownSenderError(sender) from None


def body_lines(body: Optional[str]) -> list[str]:
    """Split a body into trimmed, non-empty lines."""
    if not body:
        return []
    return [line.strip() for line in body.split("\n") if line.strip()]


def _line_after(lines: list[str], label: str, offset: int = 1) -> Optional[str]:
    """The line ``offset`` positions after the first line equal to ``label``."""
    try:
        idx = lines.index(label)
    except ValueError:
        return None
    target = idx + offset
    if target >= len(lines):
        return None
    return lines[target]


def _locate_chase(lines: list[str]) -> tuple[str, str]:
    """
    Chase labels each value on the line before it:

        Merchant            (debit card alerts say "Description")
        AIRBNB
        Amount
        $120.00
    """
    merchant = _line_after(lines, "Merchant")
    if merchant is None:
        merchant = _line_after(lines, "Description")
    if merchant is None:
        raise ParsingError("Merchant")

    amount = _line_after(lines, "Amount")
    if amount is None:
        raise InvalidPurchaseAmountError()
    return merchant, amount


def _locate_schwab(lines: list[str]) -> tuple[str, str]:
    """
    Schwab prints both labels first, then both values:

        Merchant
        Amount
        AIRBNB      <- "Amount" + 1
        $120.00     <- "Amount" + 2
    """
    merchant = _line_after(lines, "Amount", 1)
    if merchant is None:
        raise ParsingError("Merchant")

    amount = _line_after(lines, "Amount", 2)
    if amount is None:
        raise InvalidPurchaseAmountError()
    return merchant, amount


_EXTRACTORS: dict[BankFormat, Callable[[list[str]], tuple[str, str]]] = {
    BankFormat.CHASE: _locate_chase,
    BankFormat.SCHWAB: _locate_schwab,
}


def parse_amount(amount: str) -> int:
    """Convert a "$D.CC" amount line to cents or raise InvalidPurchaseAmountError."""
    try:
        return dollar_string_to_cents(amount)
    except InvalidAmountError:
        raise InvalidPurchaseAmountError(amount) from None


def extract_purchase(email: Email) -> Purchase:
    """
    Extract the purchase described by a bank alert.

    The purchase belongs to the email's recipient and is timestamped with
    the email's Date header.

    Raises:
        UnknownSenderError: sender is not a supported bank.
        ParsingError: no body, or the merchant line is missing.
        InvalidPurchaseAmountError: amount line missing or malformed.
    """
    bank = BankFormat.for_sender(email.sender)

    if email.body is None:
        raise ParsingError("Content", "alert email has no body")

    merchant, amount = _EXTRACTORS[bank](body_lines(email.body))

    return Purchase(
        user_email=email.recipient,
        amount_in_cents=parse_amount(amount),
        merchant=merchant,
        timestamp=email.timestamp,
    )
