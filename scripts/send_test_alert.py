#!/usr/bin/env python3
"""
Dev helper: send a test bank alert to the local WTMM backend.

Builds a Postmark inbound webhook payload around a raw MIME email (a
generated Chase or Schwab alert, or any .eml file) and POST-s it to the
/api/postmark/inbound endpoint.

Usage
-----
# Basic: generated Chase alert, targeting localhost:8000
python scripts/send_test_alert.py

# Schwab layout with a custom purchase
python scripts/send_test_alert.py --bank schwab --merchant "Spotify USA" --amount '$9.99'

# Send a saved email verbatim
python scripts/send_test_alert.py --file backend/tests/fixtures/gmail_confirmation.eml

# Target a different backend URL
python scripts/send_test_alert.py --url http://staging.example.com

Environment / .env
------------------
POSTMARK_WEBHOOK_SECRET   Shared webhook secret. Optional; only sent when set.
EMAIL_DOMAIN              Domain of the bank alert address
                          (default: dev.whotookmy.money).
"""

import argparse
import json
import os
import sys
import textwrap
from email.utils import formatdate, make_msgid
from pathlib import Path

import httpx
from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Alert builders
# ---------------------------------------------------------------------------

_BANK_SENDERS = {
    "chase": "Chase <no.reply.alerts@chase.com>",
    "schwab": "Charles Schwab <donotreply-comm@schwab.com>",
}


def _chase_rows(merchant: str, amount: str) -> str:
    return (
        f"<tr><td>Merchant</td><td>{merchant}</td></tr>\n"
        f"<tr><td>Amount</td><td>{amount}</td></tr>\n"
    )


def _schwab_rows(merchant: str, amount: str) -> str:
    return (
        "<tr><th>Merchant</th><th>Amount</th></tr>\n"
        f"<tr><td>{merchant}</td><td>{amount}</td></tr>\n"
    )


_ROW_BUILDERS = {
    "chase": _chase_rows,
    "schwab": _schwab_rows,
}


def build_alert(bank: str, user: str, alert_address: str, merchant: str, amount: str) -> str:
    """
    Return a raw MIME alert as Gmail would forward it: addressed to the user,
    with our alert address in the forwarding headers.
    """
    rows = _ROW_BUILDERS[bank](merchant, amount)
    return (
        f"X-Forwarded-To: {alert_address}\n"
        f"X-Forwarded-For: {user} {alert_address}\n"
        "MIME-Version: 1.0\n"
        f"Date: {formatdate(localtime=True)}\n"
        f"From: {_BANK_SENDERS[bank]}\n"
        f"To: {user}\n"
        f"Message-ID: {make_msgid(domain='example.com')}\n"
        "Subject: Test transaction alert\n"
        "Content-Type: text/html; charset=UTF-8\n"
        "\n"
        "<html><head><title>Alert</title></head><body>\n"
        "<table>\n"
        f"{rows}"
        "</table>\n"
        "</body></html>\n"
    )


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    # Locate project root (scripts/ lives one level below the root)
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    domain = os.getenv("EMAIL_DOMAIN", "dev.whotookmy.money").lstrip("@")

    parser = argparse.ArgumentParser(
        prog="send_test_alert.py",
        description=textwrap.dedent("""\
            Send a test bank alert to the WTMM Postmark webhook.

            Reads POSTMARK_WEBHOOK_SECRET and EMAIL_DOMAIN from the
            environment or a .env file in the project root.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--bank",
        default="chase",
        choices=list(_ROW_BUILDERS),
        help="Alert layout to generate (default: chase)",
    )
    parser.add_argument(
        "--user",
        default="jane.doe@gmail.com",
        help="Address the alert was originally sent to (default: jane.doe@gmail.com)",
    )
    parser.add_argument("--merchant", default="AIRBNB", help="Merchant name (default: AIRBNB)")
    parser.add_argument("--amount", default="$120.00", help="Amount line (default: $120.00)")
    parser.add_argument(
        "--file",
        default=None,
        metavar="PATH",
        help="Send this raw .eml file instead of a generated alert.",
    )
    parser.add_argument(
        "--secret",
        default=None,
        metavar="SECRET",
        help="Override the webhook secret (default: POSTMARK_WEBHOOK_SECRET env var).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the raw email without sending it.",
    )

    args = parser.parse_args()

    if args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1
        raw_email = file_path.read_text()
        print(f"Sending file: {file_path} ({len(raw_email):,} chars)")
    else:
        raw_email = build_alert(
            args.bank, args.user, f"alerts@{domain}", args.merchant, args.amount
        )

    endpoint = f"{args.url.rstrip('/')}/api/postmark/inbound"
    print(f"Endpoint  : {endpoint}")

    if args.dry_run:
        print("\n[DRY RUN] Raw email:")
        print(raw_email)
        return 0

    headers = {}
    secret = args.secret or os.getenv("POSTMARK_WEBHOOK_SECRET")
    if secret:
        headers["X-Postmark-Secret"] = secret

    try:
        response = httpx.post(
            endpoint, json={"RawEmail": raw_email}, headers=headers, timeout=30
        )
    except httpx.HTTPError as e:
        print(f"ERROR: Request failed: {e}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
