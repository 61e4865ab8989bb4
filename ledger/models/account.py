"""
Core Data Models for Personal Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce the balance and investment invariants at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Amounts are Decimal everywhere. Floats never touch a balance.
The record shape is versioned (schema_version) and validated whenever a
storage backend hands an Account back to the application.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


SCHEMA_VERSION = 1


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat a naive datetime as UTC; aware values pass through."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class InvestmentStatus(str, Enum):
    """
    Investment lifecycle state.

    CRITICAL: The only transition is OPEN -> CLOSED.
    A closed investment is never re-opened.
    """
    OPEN = "open"
    CLOSED = "closed"


class LedgerOperation(str, Enum):
    """Operations the ledger engine performs on an account."""
    DEPOSIT = "deposit"
    OPEN_INVESTMENT = "open_investment"
    UPDATE_INVESTMENT = "update_investment"
    CLOSE_INVESTMENT = "close_investment"


class RejectionReason(str, Enum):
    """
    Why an operation was rejected.

    Callers only need LedgerResult.accepted; the reason is kept
    for the audit trail and for friendlier messages.
    """
    INVALID_AMOUNT = "invalid_amount"
    INVALID_RATE = "invalid_rate"
    NON_POSITIVE_AMOUNT = "non_positive_amount"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVESTMENT_CLOSED = "investment_closed"
    ALREADY_CLOSED = "already_closed"


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Investment(BaseModel):
    """
    One placed sum of capital earning simple interest.

    roi_rate is an annual percentage: 10 means 10% per year.
    created_at is the accrual start instant and never changes.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Investment ID, unique within the owning account"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Principal"
    )
    roi_rate: Decimal = Field(
        ...,
        description="Annual rate as a percentage number"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the investment was opened (UTC)"
    )
    status: InvestmentStatus = Field(
        default=InvestmentStatus.OPEN,
        description="Lifecycle state"
    )
    closed_at: Optional[datetime] = Field(
        default=None,
        description="When the investment was closed (UTC)"
    )
    settled_gain: Optional[Decimal] = Field(
        default=None,
        description="Gain credited to the balance on close"
    )

    @field_validator('created_at', 'closed_at')
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are taken to be UTC."""
        return as_utc(v)

    @property
    def is_open(self) -> bool:
        return self.status == InvestmentStatus.OPEN


class Account(BaseModel):
    """
    One user's financial state.

    CRITICAL: balance >= 0 after every committed operation.
    The model re-checks this on every assignment, so an engine bug
    surfaces as a ValidationError instead of a negative balance.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )

    # Profile
    email: str = Field(
        ...,
        min_length=3,
        max_length=254,
        description="Login email, unique across accounts"
    )
    first_name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    last_name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )

    # Money
    balance: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Cash balance available to invest"
    )
    investments: list[Investment] = Field(
        default_factory=list,
        description="Investments in creation order"
    )

    # Persistence bookkeeping
    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic concurrency counter, bumped on every save"
    )
    schema_version: int = Field(
        default=SCHEMA_VERSION,
        description="Version of this record shape"
    )
    created_at: datetime = Field(
        default_factory=utc_now
    )
    updated_at: datetime = Field(
        default_factory=utc_now
    )

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError(f"Invalid email address: {v}")
        return v

    @field_validator('schema_version')
    @classmethod
    def check_schema_version(cls, v: int) -> int:
        if v != SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported account schema version {v} (expected {SCHEMA_VERSION})"
            )
        return v

    @field_validator('created_at', 'updated_at')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode='after')
    def validate_investment_ids(self) -> 'Account':
        """Investment IDs must be unique within the account."""
        seen = set()
        for investment in self.investments:
            if investment.id in seen:
                raise ValueError(f"Duplicate investment id: {investment.id}")
            seen.add(investment.id)
        return self

    def find_investment(
        self,
        investment_id: Union[UUID, str],
    ) -> Optional[Investment]:
        """
        Look up an investment by ID.

        Accepts the string form too, since IDs usually arrive from a form
        or URL. A malformed ID simply finds nothing.
        """
        if not isinstance(investment_id, UUID):
            try:
                investment_id = UUID(str(investment_id))
            except ValueError:
                return None

        for investment in self.investments:
            if investment.id == investment_id:
                return investment
        return None

    @property
    def open_investments(self) -> list[Investment]:
        return [inv for inv in self.investments if inv.is_open]

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class LedgerResult(BaseModel):
    """
    Outcome of one ledger engine operation.

    Rejections are ordinary results, not exceptions:
    accepted=False means the input was bad and nothing changed.

    When accepted, `account` is a modified copy that the caller must
    persist. When rejected, it is the untouched input account.
    """

    operation: LedgerOperation
    accepted: bool
    account: Account

    rejection: Optional[RejectionReason] = None
    message: str = Field(
        default="",
        description="Human-readable outcome"
    )

    # Operation-specific details
    investment_id: Optional[UUID] = None
    amount: Optional[Decimal] = Field(
        default=None,
        description="Parsed amount that was deposited, invested or set"
    )
    gain: Optional[Decimal] = Field(
        default=None,
        description="Gain credited on close"
    )
    credited: Optional[Decimal] = Field(
        default=None,
        description="Total credited to the balance on close (principal + gain)"
    )


# =============================================================================
# PRESENTATION MODELS
# =============================================================================

class InvestmentView(BaseModel):
    """An investment as the home page shows it."""

    id: UUID
    amount: str
    roi_rate: str
    status: InvestmentStatus
    status_label: str
    created_at: datetime
    days_held: Optional[str] = None

    # Open investments show what they have earned so far,
    # closed ones what was actually credited.
    accrued_gain: Optional[str] = None
    settled_gain: Optional[str] = None


class AccountSummary(BaseModel):
    """Everything the home page needs for one account."""

    account_id: UUID
    display_name: str
    email: str
    balance: str = Field(
        ...,
        description="Balance with exactly two decimals"
    )
    invested_total: str = Field(
        ...,
        description="Sum of open principal with exactly two decimals"
    )
    open_count: int = Field(ge=0)
    investments: list[InvestmentView] = Field(default_factory=list)
    as_of: datetime
