"""Ledger engine package."""

from ledger.engine.accrual import (
    DAYS_PER_YEAR,
    Accrual,
    accrual_statement,
    calculate_accrual,
    calculate_gain,
    days_held,
    format_money,
    format_rate,
    percent_to_rate,
)
from ledger.engine.ledger import (
    InvestmentNotFoundError,
    LedgerEngine,
    LedgerError,
    parse_amount,
)

__all__ = [
    # Accrual math
    "DAYS_PER_YEAR",
    "Accrual",
    "accrual_statement",
    "calculate_accrual",
    "calculate_gain",
    "days_held",
    "format_money",
    "format_rate",
    "percent_to_rate",
    # Engine
    "InvestmentNotFoundError",
    "LedgerEngine",
    "LedgerError",
    "parse_amount",
]
