"""
Data Models Package

This package contains all Pydantic models used in the Personal Ledger system.
All data flowing through the system must conform to these schemas.
"""

from ledger.models.account import (
    SCHEMA_VERSION,
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
from ledger.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "SCHEMA_VERSION",
    "Account",
    "AccountSummary",
    "Investment",
    "InvestmentStatus",
    "InvestmentView",
    "LedgerOperation",
    "LedgerResult",
    "RejectionReason",
    "as_utc",
    "utc_now",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
