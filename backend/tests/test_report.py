"""
Tests for the purchase digest report.
"""

import os
import pytest
from unittest.mock import patch

# Ensure env vars are set before importing anything that triggers app imports
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

from app.config import Settings
from app.models.purchase import Purchase
from app.models.report import ReportDefinition
from app.services.report import (
    DIGEST_SUBJECT,
    PurchaseDigest,
    format_report_date,
    queue_purchase_digest,
    run_all_reports,
    run_report,
)
from app.services.store import StoreError, TooManyEmailsError

# Tue, 07 Jun 2022 00:00:00 UTC and one week later
START = 1654560000
END = START + 7 * 24 * 3600


def _purchase(merchant, cents, ts=START + 60):
    return Purchase(
        user_email="jane@example.com", amount_in_cents=cents, merchant=merchant, timestamp=ts
    )


class TestFormatReportDate:
    def test_format(self):
        assert format_report_date(START) == "Tue, 07 Jun 2022"


class TestPurchaseDigest:
    def test_empty_period(self):
        digest = PurchaseDigest([], START, END)
        assert digest.render_text() == (
            "No transactions from Tue, 07 Jun 2022 to Tue, 14 Jun 2022.\n"
        )

    def test_single_purchase(self):
        digest = PurchaseDigest([_purchase("AIRBNB", 12000)], START, END)
        assert digest.render_text() == (
            "You spent $120.00 across 1 transaction "
            "from Tue, 07 Jun 2022 to Tue, 14 Jun 2022.\n"
            "\n"
            "Your top purchases:\n"
            "  AIRBNB: $120.00\n"
        )

    def test_only_top_three_are_listed(self):
        purchases = [
            _purchase("AIRBNB", 12000),
            _purchase("ANMOL INDIAN RESTAUR", 6383),
            _purchase("Spotify USA", 999),
            _purchase("COFFEE SHOP", 450),
        ]
        text = PurchaseDigest(purchases, START, END).render_text()

        assert "You spent $198.32 across 4 transactions" in text
        assert "Spotify USA: $9.99" in text
        assert "COFFEE SHOP" not in text

    def test_subject_and_total(self):
        digest = PurchaseDigest([_purchase("A", 100), _purchase("B", 5)], START, END)
        assert digest.subject == DIGEST_SUBJECT
        assert digest.total_in_cents == 105


class TestQueuePurchaseDigest:
    def test_queues_rendered_report(self):
        purchases = [_purchase("AIRBNB", 12000)]

        with patch("app.services.report.store.purchases_between", return_value=purchases) as mock_between, \
             patch("app.services.report.store.queue_email", return_value=11) as mock_queue:
            email_id = queue_purchase_digest("jane@example.com", START, END, Settings())

        assert email_id == 11
        mock_between.assert_called_once_with("jane@example.com", START, END)
        outbound = mock_queue.call_args.args[0]
        assert outbound.destination == "jane@example.com"
        assert outbound.sender == "alerts@dev.whotookmy.money"
        assert outbound.subject == "Your Purchase Digest Report is here"
        assert "AIRBNB: $120.00" in outbound.body


def _definition(report_id=5, email="jane@example.com", created_at=START - 86400):
    return ReportDefinition(
        id=report_id,
        user_email=email,
        report_type="PURCHASE_DIGEST",
        schedule="0 0 12 * * ?",
        created_at=created_at,
    )


class TestRunReport:
    def test_period_starts_at_last_send(self):
        with patch("app.services.report.store.last_report_date", return_value=START), \
             patch("app.services.report.store.purchases_between", return_value=[]) as mock_between, \
             patch("app.services.report.store.queue_email", return_value=11), \
             patch("app.services.report.store.mark_report_sent") as mock_mark:
            email_id = run_report(_definition(), Settings(), now=END)

        assert email_id == 11
        mock_between.assert_called_once_with("jane@example.com", START, END)
        mock_mark.assert_called_once_with(5, 11)

    def test_first_report_starts_at_definition_creation(self):
        with patch("app.services.report.store.last_report_date", return_value=None), \
             patch("app.services.report.store.purchases_between", return_value=[]) as mock_between, \
             patch("app.services.report.store.queue_email", return_value=11), \
             patch("app.services.report.store.mark_report_sent"):
            run_report(_definition(), Settings(), now=END)

        mock_between.assert_called_once_with("jane@example.com", START - 86400, END)

    def test_period_ends_now_by_default(self):
        with patch("app.services.report.store.last_report_date", return_value=START), \
             patch("app.services.report.store.purchases_between", return_value=[]) as mock_between, \
             patch("app.services.report.store.queue_email", return_value=11), \
             patch("app.services.report.store.mark_report_sent"), \
             patch("app.services.report.time.time", return_value=END + 0.5):
            run_report(_definition(), Settings())

        mock_between.assert_called_once_with("jane@example.com", START, END)

    def test_rate_limited_report_is_not_marked_sent(self):
        with patch("app.services.report.store.last_report_date", return_value=START), \
             patch("app.services.report.store.purchases_between", return_value=[]), \
             patch("app.services.report.store.queue_email",
                   side_effect=TooManyEmailsError("jane@example.com")), \
             patch("app.services.report.store.mark_report_sent") as mock_mark:
            with pytest.raises(TooManyEmailsError):
                run_report(_definition(), Settings(), now=END)

        mock_mark.assert_not_called()


class TestRunAllReports:
    def test_failing_reports_are_skipped(self):
        definitions = [_definition(1), _definition(2, "bob@example.com"), _definition(3)]

        with patch("app.services.report.store.report_definitions", return_value=definitions), \
             patch("app.services.report.run_report",
                   side_effect=[11, TooManyEmailsError("bob@example.com"), StoreError("boom")]) as mock_run:
            queued = run_all_reports(Settings(), now=END)

        assert queued == 1
        assert mock_run.call_count == 3
        assert mock_run.call_args_list[0].args[2] == END

    def test_loading_definitions_failure_propagates(self):
        with patch("app.services.report.store.report_definitions",
                   side_effect=StoreError("boom")):
            with pytest.raises(StoreError):
                run_all_reports(Settings(), now=END)
