"""Tests for settlement_sync.parsing."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from settlement_sync.parsing import event_date, parse_amount


class TestParseAmount:
    def test_thousands_separators_stripped(self):
        assert parse_amount("Your payout of INR 12,345.67 is on its way") == Decimal("12345.67")

    def test_indian_grouping(self):
        assert parse_amount("INR 1,23,45,678.90 credited") == Decimal("12345678.90")

    def test_plain_number(self):
        assert parse_amount("INR 500.00") == Decimal("500.00")

    def test_first_match_wins(self):
        assert parse_amount("INR 10.00 then INR 20.00") == Decimal("10.00")

    def test_whitespace_may_be_newline(self):
        assert parse_amount("Amount: INR\n  99.50") == Decimal("99.50")

    @pytest.mark.parametrize(
        "text",
        [
            "No amount here",
            "INR 12,345",  # no fraction digits
            "INR 12.5",  # one fraction digit
            "INR12.50",  # no whitespace
            "USD 12.50",  # other currency
            "XINR 12.50",  # not a standalone code
            "",
            None,
        ],
    )
    def test_no_match(self, text):
        assert parse_amount(text) is None

    def test_three_fraction_digits_rejected(self):
        assert parse_amount("INR 1.234") is None

    def test_other_home_currency(self):
        assert parse_amount("Paid USD 1,000.00", currency="USD") == Decimal("1000.00")

    def test_invalid_currency_code(self):
        with pytest.raises(ValueError):
            parse_amount("INR 1.00", currency="rupees")


class TestEventDate:
    def test_near_midnight_lands_on_ledger_day(self):
        # 19:00 UTC is 00:30 the next day in Kolkata.
        delivered = datetime(2025, 6, 1, 19, 0, tzinfo=UTC)
        assert event_date(delivered, "Asia/Kolkata") == date(2025, 6, 2)
        assert event_date(delivered, "UTC") == date(2025, 6, 1)

    def test_missing_timestamp(self):
        assert event_date(None, "Asia/Kolkata") is None
