"""
Audit Models for Personal Ledger

Every operation that touches an account is logged for audit purposes.
This provides:
1. Complete traceability of all money movements
2. Debugging information when things go wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger.models.account import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Account lifecycle
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_NOT_FOUND = "account_not_found"

    # Ledger operations
    DEPOSIT_ACCEPTED = "deposit_accepted"
    INVESTMENT_OPENED = "investment_opened"
    INVESTMENT_UPDATED = "investment_updated"
    INVESTMENT_CLOSED = "investment_closed"
    OPERATION_REJECTED = "operation_rejected"
    INVESTMENT_NOT_FOUND = "investment_not_found"

    # Persistence
    SAVE_FAILED = "save_failed"
    CONCURRENT_MODIFICATION = "concurrent_modification"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "account_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every operation on an account creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('account' or 'investment')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    account_id: Optional[UUID] = Field(
        default=None,
        description="Account the event belongs to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one request)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "account_id": str(self.account_id) if self.account_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Columns follow AUDIT_COLUMNS.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.account_id) if self.account_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]

    @classmethod
    def from_sheets_row(cls, row: list) -> "AuditEvent":
        """Inverse of to_sheets_row."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return cls(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            account_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, email, correlation_id)
        event = AuditEventBuilder.deposit_accepted(account_id, amount, balance, correlation_id)
    """

    @staticmethod
    def account_created(
        account_id: UUID,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Account created for {email}",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def account_not_found(
        account_id: UUID,
        operation: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"{operation} attempted on a missing account",
            details={"operation": operation},
        )

    @staticmethod
    def deposit_accepted(
        account_id: UUID,
        amount: Decimal,
        balance: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_ACCEPTED,
            entity_type="account",
            entity_id=account_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Deposited {amount}",
            details={
                "amount": str(amount),
                "balance_after": str(balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def investment_opened(
        account_id: UUID,
        investment_id: UUID,
        amount: Decimal,
        roi_rate: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_OPENED,
            entity_type="investment",
            entity_id=investment_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Investment opened: {amount} at {roi_rate}%",
            details={
                "amount": str(amount),
                "roi_rate": str(roi_rate),
            },
            is_user_action=True,
        )

    @staticmethod
    def investment_updated(
        account_id: UUID,
        investment_id: UUID,
        amount: Decimal,
        roi_rate: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_UPDATED,
            entity_type="investment",
            entity_id=investment_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Investment terms changed to {amount} at {roi_rate}%",
            details={
                "amount": str(amount),
                "roi_rate": str(roi_rate),
            },
            is_user_action=True,
        )

    @staticmethod
    def investment_closed(
        account_id: UUID,
        investment_id: UUID,
        gain: Decimal,
        credited: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_CLOSED,
            entity_type="investment",
            entity_id=investment_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Investment closed, credited {credited}",
            details={
                "gain": str(gain),
                "credited": str(credited),
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        account_id: UUID,
        operation: str,
        reason: Optional[str],
        inputs: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected: {reason}",
            details={
                "operation": operation,
                "reason": reason,
                "inputs": {k: str(v) for k, v in inputs.items()},
            },
            is_user_action=True,
        )

    @staticmethod
    def investment_not_found(
        account_id: UUID,
        investment_id: str,
        operation: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTMENT_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"{operation} referenced an unknown investment",
            details={
                "operation": operation,
                "investment_id": investment_id,
            },
        )

    @staticmethod
    def save_failed(
        account_id: UUID,
        operation: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=account_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Could not persist {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def concurrent_modification(
        account_id: UUID,
        operation: str,
        attempt: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONCURRENT_MODIFICATION,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Account changed underneath {operation}, retrying",
            details={
                "operation": operation,
                "attempt": attempt,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
