"""
Persistence for users, purchases, report definitions and the outbound
email queue.

All access goes through the Supabase admin client. Tables:

  users            id, email (unique), tz_offset, created_at
  purchases        id, user_id, amount_in_cents, merchant, timestamp
  outbound_emails  id, user_id, sender, subject, body, body_html,
                   sent_at (epoch seconds, null until sent), created_at
  user_reports     id, user_id, report_type, schedule, created_at (epoch
                   seconds); unique on (user_id, report_type)
  user_report_outbound_emails
                   user_report_id, outbound_email_id (unique pair)

Saving the same purchase twice creates two rows; duplicate webhook
deliveries are not detected here.
"""

import logging
import time
from typing import Optional

from app.db import supabase_admin
from app.models.purchase import Purchase
from app.models.report import ReportDefinition
from app.models.user import OutboundEmail, User

logger = logging.getLogger(__name__)

# A user gets at most one email per window
EMAIL_RATE_LIMIT_SECONDS = 300

# Every user gets a purchase digest, daily at noon (Quartz cron syntax)
PURCHASE_DIGEST = "PURCHASE_DIGEST"
DEFAULT_DIGEST_SCHEDULE = "0 0 12 * * ?"

_USER_COLUMNS = "id, email, tz_offset, created_at"
_REPORT_COLUMNS = "id, report_type, schedule, created_at, users(email)"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Raised when a database operation fails."""
    def __init__(self, message: str, error_code: str = "database_error"):
        super().__init__(message)
        self.error_code = error_code
        self.message = message


class TooManyEmailsError(StoreError):
    """Raised when a user already has an email pending or just sent."""
    def __init__(self, destination: str):
        super().__init__(
            f"too many emails queued for {destination}", error_code="too_many_emails"
        )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def _find_user(email: str) -> Optional[User]:
    result = (
        supabase_admin.table("users")
        .select(_USER_COLUMNS)
        .eq("email", email)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return User(**result.data[0])


def get_or_create_user(email: str) -> tuple[int, User]:
    """
    Return (user_id, user) for an address, creating the user if needed.

    New users are also given the default purchase digest report. Idempotent:
    both inserts are upserts that ignore an existing row.
    """
    try:
        supabase_admin.table("users").upsert(
            {"email": email}, on_conflict="email", ignore_duplicates=True
        ).execute()
        user = _find_user(email)
        if user is not None:
            supabase_admin.table("user_reports").upsert(
                {
                    "user_id": user.id,
                    "report_type": PURCHASE_DIGEST,
                    "schedule": DEFAULT_DIGEST_SCHEDULE,
                    "created_at": int(time.time()),
                },
                on_conflict="user_id,report_type",
                ignore_duplicates=True,
            ).execute()
    except Exception as e:
        raise StoreError(f"inserting user {email!r}: {e}") from e

    if user is None:
        raise StoreError(f"user {email!r} missing after insert")
    return user.id, user


def set_user_tz_offset(user_id: int, tz_offset: int) -> None:
    """Best-effort update of a user's UTC offset (seconds). Never raises."""
    try:
        supabase_admin.table("users").update({"tz_offset": tz_offset}).eq(
            "id", user_id
        ).execute()
    except Exception as e:
        logger.warning(f"Failed to set tz_offset for user {user_id}: {e}")


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------

def save_purchase(purchase: Purchase) -> int:
    """Insert a purchase for its user (created on demand). Returns the row id."""
    user_id, _ = get_or_create_user(purchase.user_email)

    try:
        result = (
            supabase_admin.table("purchases")
            .insert(
                {
                    "user_id": user_id,
                    "amount_in_cents": purchase.amount_in_cents,
                    "merchant": purchase.merchant,
                    "timestamp": purchase.timestamp,
                }
            )
            .execute()
        )
    except Exception as e:
        raise StoreError(f"inserting purchase: {e}") from e

    if not result.data:
        raise StoreError("purchase insert returned no data")
    return result.data[0]["id"]


def purchases_between(user_email: str, start: int, end: int) -> list[Purchase]:
    """
    Purchases made by a user with start < timestamp <= end, most expensive
    first. Unknown users have no purchases.
    """
    try:
        user = _find_user(user_email)
        if user is None:
            return []
        result = (
            supabase_admin.table("purchases")
            .select("amount_in_cents, merchant, timestamp")
            .eq("user_id", user.id)
            .gt("timestamp", start)
            .lte("timestamp", end)
            .order("amount_in_cents", desc=True)
            .execute()
        )
    except Exception as e:
        raise StoreError(f"loading purchases for {user_email!r}: {e}") from e

    return [Purchase(user_email=user.email, **row) for row in result.data or []]


# ---------------------------------------------------------------------------
# Outbound email queue
# ---------------------------------------------------------------------------

def queue_email(outbound: OutboundEmail) -> int:
    """
    Queue an email for the courier. Returns the row id.

    Raises TooManyEmailsError if the destination already has an unsent email
    or was sent one in the last EMAIL_RATE_LIMIT_SECONDS.
    """
    user_id, _ = get_or_create_user(outbound.destination)
    cutoff = int(time.time()) - EMAIL_RATE_LIMIT_SECONDS

    try:
        pending = (
            supabase_admin.table("outbound_emails")
            .select("id")
            .eq("user_id", user_id)
            .or_(f"sent_at.is.null,sent_at.gt.{cutoff}")
            .execute()
        )
    except Exception as e:
        raise StoreError(f"checking for sent emails: {e}") from e

    if pending.data:
        raise TooManyEmailsError(outbound.destination)

    try:
        result = (
            supabase_admin.table("outbound_emails")
            .insert(
                {
                    "user_id": user_id,
                    "sender": outbound.sender,
                    "subject": outbound.subject,
                    "body": outbound.body,
                    "body_html": outbound.body_html,
                }
            )
            .execute()
        )
    except Exception as e:
        raise StoreError(f"inserting outbound email: {e}") from e

    if not result.data:
        raise StoreError("outbound email insert returned no data")
    return result.data[0]["id"]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def _report_definition(row: dict) -> ReportDefinition:
    return ReportDefinition(
        id=row["id"],
        user_email=row["users"]["email"],
        report_type=row["report_type"],
        schedule=row["schedule"],
        created_at=row["created_at"],
    )


def report_definitions(report_type: str = PURCHASE_DIGEST) -> list[ReportDefinition]:
    """Every user's definition of the given report type, oldest first."""
    try:
        result = (
            supabase_admin.table("user_reports")
            .select(_REPORT_COLUMNS)
            .eq("report_type", report_type)
            .order("id")
            .execute()
        )
    except Exception as e:
        raise StoreError(f"loading {report_type} report definitions: {e}") from e

    return [_report_definition(row) for row in result.data or []]


def get_report_definition(report_id: int) -> Optional[ReportDefinition]:
    try:
        result = (
            supabase_admin.table("user_reports")
            .select(_REPORT_COLUMNS)
            .eq("id", report_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise StoreError(f"loading report definition {report_id}: {e}") from e

    if not result.data:
        return None
    return _report_definition(result.data[0])


def last_report_date(report_id: int) -> Optional[int]:
    """
    When this report was last sent (epoch seconds): the latest sent_at of
    the emails it queued. None if it never went out or the lookup fails.
    """
    try:
        result = (
            supabase_admin.table("user_report_outbound_emails")
            .select("outbound_emails(sent_at)")
            .eq("user_report_id", report_id)
            .execute()
        )
    except Exception as e:
        logger.warning(f"Failed to load last send date for report {report_id}: {e}")
        return None

    sent = [
        row["outbound_emails"]["sent_at"]
        for row in result.data or []
        if row.get("outbound_emails") and row["outbound_emails"].get("sent_at") is not None
    ]
    return max(sent) if sent else None


def mark_report_sent(report_id: int, outbound_email_id: int) -> None:
    """Link a queued email to the report it carries. Best effort; never raises."""
    try:
        supabase_admin.table("user_report_outbound_emails").upsert(
            {"user_report_id": report_id, "outbound_email_id": outbound_email_id},
            on_conflict="user_report_id,outbound_email_id",
            ignore_duplicates=True,
        ).execute()
    except Exception as e:
        logger.warning(
            f"Failed to link email {outbound_email_id} to report {report_id}: {e}"
        )
