"""
Accrual Calculations

Simple (non-compounding) interest, prorated by elapsed time:

    gain = principal * annual_rate * (days_held / days_per_year)

days_held is fractional: an investment held for 36 hours has
days_held == 1.5. The year is a flat 365 days, leap years included.

Everything here is Decimal in, Decimal out. No I/O, no clock reads.

Money arithmetic runs under money_context(), whose precision is far
beyond the default 28 digits, so cent-level sums stay exact for any
amount parse_amount accepts (anything below MAX_AMOUNT).
"""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Context, Decimal, localcontext
from typing import NamedTuple, Union


SECONDS_PER_DAY = Decimal(86400)
DAYS_PER_YEAR = 365
CENT = Decimal("0.01")

MONEY_PRECISION = 120
# Largest magnitude accepted as a single amount
MAX_AMOUNT = Decimal("1e30")

Number = Union[Decimal, int, str]


def money_context():
    """Decimal context for ledger arithmetic; use as `with money_context():`."""
    return localcontext(Context(prec=MONEY_PRECISION, rounding=ROUND_HALF_EVEN))


class Accrual(NamedTuple):
    """Days held and the gain earned over them."""
    days: Decimal
    gain: Decimal


def _elapsed_seconds(delta: timedelta) -> Decimal:
    # Built from the integer parts so microseconds don't pass through a float.
    return (
        Decimal(delta.days) * SECONDS_PER_DAY
        + Decimal(delta.seconds)
        + Decimal(delta.microseconds) / Decimal(1_000_000)
    )


def days_held(start: datetime, end: datetime) -> Decimal:
    """
    Fractional days between two instants.

    Negative when end is before start; callers decide what that means.
    """
    return _elapsed_seconds(end - start) / SECONDS_PER_DAY


def percent_to_rate(roi_rate: Number) -> Decimal:
    """Convert a percentage number (10) to a fraction (0.10)."""
    with money_context():
        return Decimal(roi_rate) / Decimal(100)


def calculate_gain(
    principal: Number,
    annual_rate: Number,
    days: Number,
    days_per_year: int = DAYS_PER_YEAR,
) -> Decimal:
    """
    Simple interest earned over `days`.

    Args:
        principal: Amount invested
        annual_rate: Rate as a fraction (0.20 for 20%)
        days: Days held, may be fractional
        days_per_year: Day-count divisor

    Returns:
        The gain, at full Decimal precision
    """
    with money_context():
        return (
            Decimal(principal)
            * Decimal(annual_rate)
            * (Decimal(days) / Decimal(days_per_year))
        )


def calculate_accrual(
    principal: Number,
    annual_rate: Number,
    start: datetime,
    end: datetime,
    days_per_year: int = DAYS_PER_YEAR,
) -> Accrual:
    """Days held between start and end, and the gain for that period."""
    days = days_held(start, end)
    return Accrual(
        days=days,
        gain=calculate_gain(principal, annual_rate, days, days_per_year),
    )


def format_money(amount: Number) -> str:
    """Two decimals, rounded half-up: 123.456 -> '123.46'. Any magnitude."""
    amount = Decimal(amount)
    # quantize needs room for every integer digit plus the cents
    context = Context(
        prec=max(MONEY_PRECISION, amount.adjusted() + 3),
        rounding=ROUND_HALF_UP,
    )
    return str(amount.quantize(CENT, context=context))


def format_rate(roi_rate: Number) -> str:
    """A percentage number without trailing zeros: 12.50 -> '12.5'."""
    rate = Decimal(roi_rate).normalize()
    return f"{rate:f}"


def accrual_statement(accrual: Accrual, currency_symbol: str = "$") -> str:
    """One-line description of an accrual, e.g. 'Accrued ROI: $123.46'."""
    return f"Accrued ROI: {currency_symbol}{format_money(accrual.gain)}"
