"""
Audit Logger

DESIGN DECISION: Every operation on an account is logged.
This provides:
1. Complete traceability of money movements
2. Debugging capability
3. User can see history of their account

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.account import LedgerOperation, LedgerResult
from ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_created(
        self,
        account_id: UUID,
        email: str,
        correlation_id: UUID,
    ) -> None:
        """Log account creation."""
        await self.log(AuditEventBuilder.account_created(
            account_id=account_id,
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_account_not_found(
        self,
        account_id: UUID,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        """Log an operation against a missing account."""
        await self.log(AuditEventBuilder.account_not_found(
            account_id=account_id,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_ledger_result(
        self,
        result: LedgerResult,
        inputs: dict,
        correlation_id: UUID,
    ) -> None:
        """
        Log the outcome of one ledger operation.

        Picks the event type from the operation and whether it was accepted.
        """
        account = result.account
        operation = result.operation.value

        if not result.accepted:
            event = AuditEventBuilder.operation_rejected(
                account_id=account.id,
                operation=operation,
                reason=result.rejection.value if result.rejection else None,
                inputs=inputs,
                correlation_id=correlation_id,
            )
        elif result.operation == LedgerOperation.DEPOSIT:
            event = AuditEventBuilder.deposit_accepted(
                account_id=account.id,
                amount=result.amount,
                balance=account.balance,
                correlation_id=correlation_id,
            )
        elif result.operation == LedgerOperation.CLOSE_INVESTMENT:
            event = AuditEventBuilder.investment_closed(
                account_id=account.id,
                investment_id=result.investment_id,
                gain=result.gain,
                credited=result.credited,
                correlation_id=correlation_id,
            )
        else:
            investment = account.find_investment(result.investment_id)
            builder = (
                AuditEventBuilder.investment_opened
                if result.operation == LedgerOperation.OPEN_INVESTMENT
                else AuditEventBuilder.investment_updated
            )
            event = builder(
                account_id=account.id,
                investment_id=investment.id,
                amount=investment.amount,
                roi_rate=investment.roi_rate,
                correlation_id=correlation_id,
            )

        await self.log(event)

    async def log_investment_not_found(
        self,
        account_id: UUID,
        investment_id: str,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        """Log a lookup of an unknown investment."""
        await self.log(AuditEventBuilder.investment_not_found(
            account_id=account_id,
            investment_id=investment_id,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        account_id: UUID,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a storage failure during save."""
        await self.log(AuditEventBuilder.save_failed(
            account_id=account_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_concurrent_modification(
        self,
        account_id: UUID,
        operation: str,
        attempt: int,
        correlation_id: UUID,
    ) -> None:
        """Log a lost optimistic-concurrency race."""
        await self.log(AuditEventBuilder.concurrent_modification(
            account_id=account_id,
            operation=operation,
            attempt=attempt,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a deposit).
    Pass it through all subsequent operations.
    """
    return uuid4()
