"""
Parsing of Gmail's forwarding confirmation email.

When a user adds our address as a Gmail forwarding target, Gmail mails us a
confirmation code and a link that approves the request. Both are pulled out
of the resolved body here; acting on them is the caller's job.
"""

from app.models.email import Email
from app.models.purchase import GmailForwardingConfirmation
from app.services.email_errors import GmailConfirmationError
from app.services.purchase_extractor import body_lines

GMAIL_FORWARDING_SENDER = "forwarding-noreply@google.com"
GMAIL_CONFIRMATION_URL_PREFIX = "https://mail-settings.google.com/"
_CODE_PREFIX = "Confirmation code:"


def extract_gmail_confirmation(email: Email) -> GmailForwardingConfirmation:
    """
    Find the confirmation code and URL in a Gmail forwarding email.

    The code is the last word on the "Confirmation code:" line; the URL is
    the whole line starting with Gmail's settings URL. The requesting user's
    address is the first word of the first line.

    Raises GmailConfirmationError if either the code or URL line is missing.
    """
    lines = body_lines(email.body)

    code_line = next((s for s in lines if s.startswith(_CODE_PREFIX)), None)
    url_line = next(
        (s for s in lines if s.startswith(GMAIL_CONFIRMATION_URL_PREFIX)), None
    )
    if code_line is None or url_line is None:
        raise GmailConfirmationError()

    code = code_line.split()[-1]
    if code == _CODE_PREFIX.split()[-1]:
        # "Confirmation code:" with nothing after it
        raise GmailConfirmationError()

    user_email = lines[0].split()[0]
    if "@" not in user_email:
        user_email = None

    return GmailForwardingConfirmation(
        confirmation_code=code,
        confirmation_url=url_line,
        user_email=user_email.lower() if user_email else None,
    )
