"""
Ledger Engine

DESIGN DECISION: All money movement rules live here and nowhere else.
The engine is pure business logic:
- No I/O (the caller loads and saves the account)
- Time comes from an explicit `now` or the injected clock
- No mutation of the account it is given

Each operation deep-copies the account, applies the change to the copy and
returns it inside a LedgerResult. A rejected operation returns the original
account untouched, and if the caller's save fails the copy is simply dropped,
so a half-applied operation can never be observed.

REJECTION vs NOT FOUND:
- Bad input (unparseable, non-positive, more than the balance) is an
  ordinary outcome: LedgerResult(accepted=False). Nothing is raised.
- An investment ID that does not exist is a lookup error and raises
  InvestmentNotFoundError, so callers can tell the two apart.

INVESTMENT STATE MACHINE:
    open --close--> closed
closed is terminal. Closing twice is rejected, so a retried close request
cannot credit the same principal again.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Union
from uuid import UUID

from ledger.engine.accrual import (
    DAYS_PER_YEAR,
    MAX_AMOUNT,
    Accrual,
    calculate_accrual,
    format_money,
    format_rate,
    money_context,
    percent_to_rate,
)
from ledger.models.account import (
    Account,
    AccountSummary,
    Investment,
    InvestmentStatus,
    InvestmentView,
    LedgerOperation,
    LedgerResult,
    RejectionReason,
    as_utc,
    utc_now,
)


class LedgerError(Exception):
    """Base exception for ledger engine errors."""
    pass


class InvestmentNotFoundError(LedgerError):
    """The referenced investment does not exist in the account."""

    def __init__(self, investment_id: Union[UUID, str], message: Optional[str] = None):
        self.investment_id = str(investment_id)
        super().__init__(message or f"Investment not found: {investment_id}")


REJECTION_MESSAGES = {
    RejectionReason.INVALID_AMOUNT: "Please enter a valid amount.",
    RejectionReason.INVALID_RATE: "Please enter a valid rate of return.",
    RejectionReason.NON_POSITIVE_AMOUNT: "The amount must be greater than zero.",
    RejectionReason.INSUFFICIENT_BALANCE: "Your balance is too low for this investment.",
    RejectionReason.INVESTMENT_CLOSED: "A closed investment can no longer be changed.",
    RejectionReason.ALREADY_CLOSED: "This investment is already closed.",
}


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse freeform input into a finite Decimal.

    Accepts Decimal, int, float and numeric strings (surrounding
    whitespace allowed). Returns None for anything else, including
    booleans, empty strings, NaN, infinities and anything whose
    magnitude reaches MAX_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        # str() gives the shortest repr, so 0.1 becomes Decimal("0.1")
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not amount.is_finite() or abs(amount) >= MAX_AMOUNT:
        return None
    return amount


class LedgerEngine:
    """
    Executes deposit / open / update / close against a loaded Account.

    Stateless apart from configuration; one instance can serve every
    request in the process.
    """

    def __init__(
        self,
        days_per_year: int = DAYS_PER_YEAR,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the engine.

        Args:
            days_per_year: Day-count divisor for accrual
            clock: Source of "now" when an operation is not given one
        """
        self._days_per_year = days_per_year
        self._clock = clock

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def deposit(self, account: Account, amount: Any) -> LedgerResult:
        """Add cash to the balance. No upper limit."""
        value = parse_amount(amount)
        if value is None:
            return self._reject(account, LedgerOperation.DEPOSIT, RejectionReason.INVALID_AMOUNT)
        if value <= 0:
            return self._reject(account, LedgerOperation.DEPOSIT, RejectionReason.NON_POSITIVE_AMOUNT)

        updated = account.model_copy(deep=True)
        with money_context():
            updated.balance = updated.balance + value
        updated.updated_at = self._now()

        return LedgerResult(
            operation=LedgerOperation.DEPOSIT,
            accepted=True,
            account=updated,
            amount=value,
            message=f"Deposited {format_money(value)}.",
        )

    def open_investment(
        self,
        account: Account,
        amount: Any,
        roi_rate: Any,
        now: Optional[datetime] = None,
    ) -> LedgerResult:
        """
        Move `amount` from the balance into a new open investment.

        Checks, in order: both inputs parse, amount > 0, amount <= balance.
        """
        operation = LedgerOperation.OPEN_INVESTMENT
        value = parse_amount(amount)
        rate = parse_amount(roi_rate)

        if value is None:
            return self._reject(account, operation, RejectionReason.INVALID_AMOUNT)
        if rate is None:
            return self._reject(account, operation, RejectionReason.INVALID_RATE)
        if value <= 0:
            return self._reject(account, operation, RejectionReason.NON_POSITIVE_AMOUNT)
        if value > account.balance:
            return self._reject(account, operation, RejectionReason.INSUFFICIENT_BALANCE)

        now = self._now(now)
        investment = Investment(amount=value, roi_rate=rate, created_at=now)

        updated = account.model_copy(deep=True)
        with money_context():
            updated.balance = updated.balance - value
        updated.investments.append(investment)
        updated.updated_at = now

        return LedgerResult(
            operation=operation,
            accepted=True,
            account=updated,
            investment_id=investment.id,
            amount=value,
            message=f"Invested {format_money(value)} at {format_rate(rate)}%.",
        )

    def update_investment(
        self,
        account: Account,
        investment_id: Union[UUID, str],
        amount: Any,
        roi_rate: Any,
    ) -> LedgerResult:
        """
        Change the terms of an open investment.

        The balance is neither debited nor credited: this edits the terms
        of a position that already exists. Status and created_at stay as
        they are.

        Raises:
            InvestmentNotFoundError: If no such investment exists
        """
        operation = LedgerOperation.UPDATE_INVESTMENT
        existing = self._require_investment(account, investment_id)

        if not existing.is_open:
            return self._reject(account, operation, RejectionReason.INVESTMENT_CLOSED, existing.id)

        value = parse_amount(amount)
        rate = parse_amount(roi_rate)
        if value is None:
            return self._reject(account, operation, RejectionReason.INVALID_AMOUNT, existing.id)
        if rate is None:
            return self._reject(account, operation, RejectionReason.INVALID_RATE, existing.id)
        if value <= 0:
            return self._reject(account, operation, RejectionReason.NON_POSITIVE_AMOUNT, existing.id)

        updated = account.model_copy(deep=True)
        investment = updated.find_investment(existing.id)
        investment.amount = value
        investment.roi_rate = rate
        updated.updated_at = self._now()

        return LedgerResult(
            operation=operation,
            accepted=True,
            account=updated,
            investment_id=investment.id,
            amount=value,
            message=f"Investment updated to {format_money(value)} at {format_rate(rate)}%.",
        )

    def close_investment(
        self,
        account: Account,
        investment_id: Union[UUID, str],
        now: Optional[datetime] = None,
    ) -> LedgerResult:
        """
        Close an open investment and credit principal + prorated gain.

        Raises:
            InvestmentNotFoundError: If no such investment exists
        """
        operation = LedgerOperation.CLOSE_INVESTMENT
        existing = self._require_investment(account, investment_id)

        if not existing.is_open:
            return self._reject(account, operation, RejectionReason.ALREADY_CLOSED, existing.id)

        now = self._now(now)
        accrual = self.accrued_gain(existing, now)

        updated = account.model_copy(deep=True)
        investment = updated.find_investment(existing.id)
        with money_context():
            # A negative rate can lose at most the principal
            if existing.amount + accrual.gain < 0:
                accrual = Accrual(days=accrual.days, gain=-existing.amount)
            credited = existing.amount + accrual.gain
            updated.balance = updated.balance + credited
        investment.status = InvestmentStatus.CLOSED
        investment.closed_at = now
        investment.settled_gain = accrual.gain
        updated.updated_at = now

        return LedgerResult(
            operation=operation,
            accepted=True,
            account=updated,
            investment_id=investment.id,
            gain=accrual.gain,
            credited=credited,
            message=(
                f"Investment closed. {format_money(credited)} credited "
                f"({format_money(accrual.gain)} gain)."
            ),
        )

    # -------------------------------------------------------------------------
    # Read-only helpers
    # -------------------------------------------------------------------------

    def accrued_gain(self, investment: Investment, now: datetime) -> Accrual:
        """
        Gain earned by an investment from its creation up to `now`.

        A clock that is behind created_at yields zero days, never a
        negative gain. A naive `now` is taken as UTC.
        """
        accrual = calculate_accrual(
            investment.amount,
            percent_to_rate(investment.roi_rate),
            investment.created_at,
            as_utc(now),
            self._days_per_year,
        )
        if accrual.days < 0:
            return Accrual(days=Decimal(0), gain=Decimal(0))
        return accrual

    def summarize(self, account: Account, now: Optional[datetime] = None) -> AccountSummary:
        """Build the home page view of an account."""
        now = self._now(now)
        views = []
        for investment in account.investments:
            view = InvestmentView(
                id=investment.id,
                amount=format_money(investment.amount),
                roi_rate=format_rate(investment.roi_rate),
                status=investment.status,
                status_label=investment.status.value.capitalize(),
                created_at=investment.created_at,
            )
            if investment.is_open:
                accrual = self.accrued_gain(investment, now)
                view.days_held = str(accrual.days.quantize(Decimal("0.1")))
                view.accrued_gain = format_money(accrual.gain)
            elif investment.settled_gain is not None:
                view.settled_gain = format_money(investment.settled_gain)
            views.append(view)

        open_investments = account.open_investments
        with money_context():
            invested_total = sum((inv.amount for inv in open_investments), Decimal(0))
        return AccountSummary(
            account_id=account.id,
            display_name=account.display_name,
            email=account.email,
            balance=format_money(account.balance),
            invested_total=format_money(invested_total),
            open_count=len(open_investments),
            investments=views,
            as_of=now,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _now(self, now: Optional[datetime] = None) -> datetime:
        """The given instant, or the clock's, as an aware UTC datetime."""
        return as_utc(now if now is not None else self._clock())

    def _require_investment(
        self,
        account: Account,
        investment_id: Union[UUID, str],
    ) -> Investment:
        investment = account.find_investment(investment_id)
        if investment is None:
            raise InvestmentNotFoundError(investment_id)
        return investment

    def _reject(
        self,
        account: Account,
        operation: LedgerOperation,
        reason: RejectionReason,
        investment_id: Optional[UUID] = None,
    ) -> LedgerResult:
        return LedgerResult(
            operation=operation,
            accepted=False,
            account=account,
            rejection=reason,
            investment_id=investment_id,
            message=REJECTION_MESSAGES[reason],
        )
