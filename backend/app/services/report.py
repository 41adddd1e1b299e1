"""
Purchase digest report.

Renders a plain-text summary of a user's purchases over a period and queues
it as an email. Each user has a PURCHASE_DIGEST report definition (created
with the user); running it covers the purchases since the report last went
out, or since the definition was created. Deciding when to run reports is
left to whatever invokes the reporter (cron, a job runner).

Public API:
  PurchaseDigest(purchases, start, end).render_text() -> str
  queue_purchase_digest(user_email, start, end, settings) -> int
  run_report(definition, settings, now=None) -> int
  run_all_reports(settings, now=None) -> int
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.config import Settings
from app.models.purchase import Purchase
from app.models.report import ReportDefinition
from app.models.user import OutboundEmail
from app.services import store
from app.services.currency import cents_to_dollar_string
from app.services.store import StoreError, TooManyEmailsError

logger = logging.getLogger(__name__)

DIGEST_SUBJECT = "Your Purchase Digest Report is here"

# Number of purchases listed individually in the digest
_TOP_PURCHASES = 3


def format_report_date(timestamp: int) -> str:
    """Format a timestamp as e.g. "Tue, 07 Jun 2022" (UTC)."""
    return datetime.fromtimestamp(timestamp, timezone.utc).strftime("%a, %d %b %Y")


@dataclass
class PurchaseDigest:
    """
    Purchases for one period. ``purchases`` must already be sorted by
    amount, most expensive first (store.purchases_between does this).
    """
    purchases: list[Purchase]
    start: int
    end: int

    @property
    def subject(self) -> str:
        return DIGEST_SUBJECT

    @property
    def total_in_cents(self) -> int:
        return sum(p.amount_in_cents for p in self.purchases)

    def render_text(self) -> str:
        start = format_report_date(self.start)
        end = format_report_date(self.end)

        if not self.purchases:
            return f"No transactions from {start} to {end}.\n"

        count = len(self.purchases)
        noun = "transaction" if count == 1 else "transactions"
        lines = [
            f"You spent {cents_to_dollar_string(self.total_in_cents)} "
            f"across {count} {noun} from {start} to {end}.",
            "",
            "Your top purchases:",
        ]
        for purchase in self.purchases[:_TOP_PURCHASES]:
            lines.append(
                f"  {purchase.merchant}: {cents_to_dollar_string(purchase.amount_in_cents)}"
            )
        return "\n".join(lines) + "\n"


def queue_purchase_digest(
    user_email: str, start: int, end: int, settings: Settings
) -> int:
    """
    Build the digest for ``user_email`` over (start, end] and queue it.

    Returns the outbound email row id. Store errors, including
    TooManyEmailsError, propagate to the caller.
    """
    digest = PurchaseDigest(store.purchases_between(user_email, start, end), start, end)
    outbound = OutboundEmail(
        sender=settings.outbound_sender,
        destination=user_email,
        subject=digest.subject,
        body=digest.render_text(),
    )
    return store.queue_email(outbound)


def run_report(
    definition: ReportDefinition, settings: Settings, now: Optional[int] = None
) -> int:
    """
    Queue one digest covering (last send, now] and link it to its report.

    The period starts at the definition's created_at when the report has
    never been sent. Returns the outbound email row id; store errors
    propagate.
    """
    start = store.last_report_date(definition.id)
    if start is None:
        start = definition.created_at
    end = now if now is not None else int(time.time())

    email_id = queue_purchase_digest(definition.user_email, start, end, settings)
    store.mark_report_sent(definition.id, email_id)
    logger.info(
        f"Queued {definition.report_type} report {definition.id} for "
        f"{definition.user_email} as email {email_id}"
    )
    return email_id


def run_all_reports(settings: Settings, now: Optional[int] = None) -> int:
    """
    Run every purchase digest definition. A failing report is logged and
    skipped. Returns how many digests were queued.
    """
    end = now if now is not None else int(time.time())
    queued = 0
    for definition in store.report_definitions(store.PURCHASE_DIGEST):
        try:
            run_report(definition, settings, end)
        except TooManyEmailsError as e:
            logger.warning(f"Skipping report {definition.id}: {e.message}")
            continue
        except StoreError as e:
            logger.error(f"Error running report {definition.id}: {e.message}")
            continue
        queued += 1
    return queued
