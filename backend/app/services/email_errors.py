"""
Errors raised by the inbound email pipeline.

Every error carries a human readable ``message`` and a stable ``error_code``
so the webhook can report the failure kind without string matching.
Nothing in the pipeline logs; callers decide what to do with these.
"""


class InboundEmailError(Exception):
    """Base class for all inbound email pipeline failures."""

    error_code = "inbound_email_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ParsingError(InboundEmailError):
    """
    A required header or body part could not be located or decoded.

    ``context`` names what was missing: To, From, Date, Content or Merchant.
    """

    error_code = "parsing_error"

    def __init__(self, context: str, message: str | None = None):
        super().__init__(message or f"could not parse {context}")
        self.context = context


class InvalidDateError(InboundEmailError):
    """The Date header is not valid RFC 2822, even after comment stripping."""

    error_code = "invalid_date"

    def __init__(self, value: str):
        super().__init__(f"invalid rfc2822 date: {value!r}")
        self.value = value


class BadlyFormattedError(InboundEmailError):
    """An HTML body is missing its opening or closing body tag."""

    error_code = "badly_formatted"

    def __init__(self, message: str = "text/html body was badly formatted"):
        super().__init__(message)


class UnknownSenderError(InboundEmailError):
    """The sender is not one of the supported bank alert addresses."""

    error_code = "unknown_sender"

    def __init__(self, sender: str):
        super().__init__(f"unknown sender {sender!r}")
        self.sender = sender


class InvalidPurchaseAmountError(InboundEmailError):
    """The amount line was missing or not shaped like $D.CC."""

    error_code = "invalid_purchase_amount"

    def __init__(self, amount: str | None = None):
        if amount is None:
            message = "purchase amount not found"
        else:
            message = f"invalid purchase amount {amount!r}"
        super().__init__(message)
        self.amount = amount


class GmailConfirmationError(InboundEmailError):
    """The Gmail forwarding confirmation could not be parsed."""

    error_code = "gmail_confirmation_error"

    def __init__(self):
        super().__init__("could not parse gmail forwarding confirmation")


class RoutingError(InboundEmailError):
    """No processing branch matched the email."""

    error_code = "routing_error"

    def __init__(self, message: str = "could not route email"):
        super().__init__(message)


class ProcessingError(InboundEmailError):
    """A matched branch failed. The underlying error is kept in ``cause``."""

    error_code = "processing_error"

    def __init__(self, cause: Exception):
        super().__init__(f"error handling email: {cause}")
        self.cause = cause
