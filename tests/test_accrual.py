"""Tests for the simple-interest accrual helpers."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ledger.engine.accrual import (
    Accrual,
    accrual_statement,
    calculate_accrual,
    calculate_gain,
    days_held,
    format_money,
    format_rate,
    percent_to_rate,
)


UTC = timezone.utc


class TestDaysHeld:
    """Tests for days_held."""

    def test_same_instant_is_zero(self):
        start = datetime(2025, 5, 10, tzinfo=UTC)
        assert days_held(start, start) == 0

    def test_one_day(self):
        start = datetime(2025, 5, 10, tzinfo=UTC)
        assert days_held(start, start + timedelta(days=1)) == 1

    def test_fractional_days(self):
        """36 hours is a day and a half."""
        start = datetime(2025, 5, 10, tzinfo=UTC)
        assert days_held(start, start + timedelta(hours=36)) == Decimal("1.5")

    def test_end_before_start_is_negative(self):
        start = datetime(2025, 5, 10, tzinfo=UTC)
        assert days_held(start, start - timedelta(days=2)) == -2


class TestCalculateGain:
    """Tests for calculate_gain."""

    def test_zero_principal(self):
        assert calculate_gain(0, Decimal("0.1"), 10) == 0

    def test_one_year(self):
        """principal * rate * (days / 365)"""
        assert calculate_gain(1000, Decimal("0.20"), 365) == Decimal("200")

    def test_custom_day_count(self):
        assert calculate_gain(1000, Decimal("0.36"), 36, days_per_year=360) == Decimal("36")

    def test_percent_to_rate(self):
        assert percent_to_rate(10) == Decimal("0.1")
        assert percent_to_rate("12.5") == Decimal("0.125")


class TestCalculateAccrual:
    """Tests for calculate_accrual."""

    def test_january(self):
        """500 at 12% for the 31 days of January."""
        start = datetime(2025, 1, 1, tzinfo=UTC)
        end = datetime(2025, 2, 1, tzinfo=UTC)

        accrual = calculate_accrual(500, Decimal("0.12"), start, end)

        assert accrual.days == 31
        assert abs(accrual.gain - Decimal("5.0958904")) < Decimal("0.0000001")

    def test_leap_year_uses_365_day_divisor(self):
        """A full leap year earns slightly more than the nominal rate."""
        start = datetime(2024, 1, 1, tzinfo=UTC)
        end = datetime(2025, 1, 1, tzinfo=UTC)

        accrual = calculate_accrual(1000, Decimal("0.10"), start, end)

        assert accrual.days == 366
        assert abs(accrual.gain - Decimal("100.2739726027")) < Decimal("0.0000000001")
        assert accrual.gain > Decimal("100")


class TestFormatting:
    """Tests for presentation helpers."""

    def test_accrual_statement(self):
        accrual = Accrual(days=Decimal("10"), gain=Decimal("123.456"))
        assert accrual_statement(accrual) == "Accrued ROI: $123.46"

    def test_accrual_statement_currency_symbol(self):
        accrual = Accrual(days=Decimal("1"), gain=Decimal("0"))
        assert accrual_statement(accrual, currency_symbol="€") == "Accrued ROI: €0.00"

    @pytest.mark.parametrize("amount, expected", [
        (Decimal("50"), "50.00"),
        (Decimal("0.005"), "0.01"),
        (Decimal("74.994"), "74.99"),
        (100, "100.00"),
    ])
    def test_format_money(self, amount, expected):
        assert format_money(amount) == expected

    @pytest.mark.parametrize("rate, expected", [
        (Decimal("10"), "10"),
        (Decimal("12.50"), "12.5"),
        (Decimal("0.75"), "0.75"),
    ])
    def test_format_rate(self, rate, expected):
        assert format_rate(rate) == expected

    @pytest.mark.parametrize("amount, expected", [
        (Decimal("1e26"), "100000000000000000000000000.00"),
        (Decimal("1e40"), "1" + "0" * 40 + ".00"),
        (Decimal("-5e27"), "-5" + "0" * 27 + ".00"),
    ])
    def test_format_money_beyond_default_precision(self, amount, expected):
        assert format_money(amount) == expected
