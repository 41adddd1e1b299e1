"""
Conversion between integer cent counts and "$D.CC" dollar strings.

The two directions are deliberately not symmetric: the decoder reads the
digits after the point as a plain integer, so "$1.5" is 105 cents rather
than 150. Only strings produced by cents_to_dollar_string round-trip.
"""

import re

_DOLLAR_RE = re.compile(r"\$([0-9]+)\.([0-9]+)")


class InvalidAmountError(ValueError):
    """Raised when a string is not shaped like $<digits>.<digits>."""

    def __init__(self, amount: str):
        super().__init__(f"Problem parsing currency amount {amount}")
        self.amount = amount


def cents_to_dollar_string(cents: int) -> str:
    """
    Format a non-negative cent count as a dollar string.

        0     -> "$0.00"
        5     -> "$0.05"
        10    -> "$0.10"
        10000 -> "$100.00"
    """
    if cents < 0:
        raise ValueError(f"cents must be non-negative, got {cents}")

    digits = str(cents)
    # Single cents get a leading zero so there are always two after the point
    if len(digits) == 1:
        digits = "0" + digits
    digits = digits[:-2] + "." + digits[-2:]
    if digits.startswith("."):
        digits = "0" + digits
    return "$" + digits


def dollar_string_to_cents(amount: str) -> int:
    """
    Parse a string like "$1234.54" into cents.

    Requires a leading "$" and exactly one "." between two runs of digits.
    Raises InvalidAmountError otherwise.
    """
    match = _DOLLAR_RE.fullmatch(amount)
    if not match:
        raise InvalidAmountError(amount)

    dollars = int(match.group(1))
    cents = int(match.group(2))
    return dollars * 100 + cents
