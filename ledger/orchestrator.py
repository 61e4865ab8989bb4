"""
Main Orchestrator for Personal Ledger

This module ties together all the components and defines the
request flow for every account operation:

    resolve identity -> load account -> ledger engine -> save account

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine decides, the orchestrator only loads and saves
- Nothing is saved unless the engine accepted the operation
- A failed save leaves the stored account exactly as it was
- Every outcome is audited

LOST UPDATES are prevented at two levels:
1. Within this process, operations on one account are serialized by a
   per-account asyncio lock owned by the LedgerFlow instance.
2. Across processes, the store rejects a save whose version is stale;
   the whole load -> engine -> save cycle is then retried from a fresh load.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional, Union
from uuid import UUID

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from ledger.audit import AuditLogger, create_correlation_id
from ledger.config import get_settings
from ledger.engine import InvestmentNotFoundError, LedgerEngine
from ledger.models.account import (
    Account,
    AccountSummary,
    LedgerOperation,
    LedgerResult,
)
from ledger.services.storage import (
    AccountNotFoundError,
    AccountStorageInterface,
    ConcurrentModificationError,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    StorageError,
)


logger = structlog.get_logger(__name__)


class AccountLocks:
    """
    One asyncio.Lock per account ID, held for one load -> engine -> save.

    Scoped to the owning LedgerFlow; two flows over the same store
    rely on the store's version check instead.

    asyncio locks belong to one event loop, so every call into the owning
    LedgerFlow must be driven from the same loop (see ledger.runner).
    A lock is dropped as soon as nobody holds or waits for it.
    """

    def __init__(self):
        # account_id -> (lock, holders + waiters)
        self._locks: dict[UUID, tuple[asyncio.Lock, int]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, account_id: UUID) -> AsyncIterator[None]:
        loop = asyncio.get_running_loop()
        if self._locks and loop is not self._loop:
            raise RuntimeError(
                "AccountLocks is in use on another event loop; "
                "drive the LedgerFlow from a single loop"
            )
        self._loop = loop

        lock, users = self._locks.get(account_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[account_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[account_id]
            if users == 1:
                del self._locks[account_id]
            else:
                self._locks[account_id] = (lock, users - 1)


class LedgerFlow:
    """
    Orchestrates every account operation.

    Flow per operation:
    1. Lock the account (in-process)
    2. Load the account from storage
    3. Run exactly one ledger engine operation
    4. Save the result if it was accepted
    5. Audit the outcome

    Rejections come back as LedgerResult(accepted=False).
    Missing accounts and investments raise AccountNotFoundError and
    InvestmentNotFoundError. Storage failures raise StorageError.
    """

    def __init__(
        self,
        account_storage: AccountStorageInterface,
        engine: Optional[LedgerEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_save_attempts: int = 3,
    ):
        self._account_storage = account_storage
        self._engine = engine or LedgerEngine()
        self._audit_logger = audit_logger or AuditLogger()
        self._max_save_attempts = max_save_attempts
        self._locks = AccountLocks()

    @property
    def engine(self) -> LedgerEngine:
        return self._engine

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def open_account(
        self,
        first_name: str,
        last_name: str,
        email: str,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """
        Create an account with a zero balance and no investments.

        Credential handling belongs to the auth layer; this only
        establishes the ledger record.

        Raises:
            DuplicateError: If the email is already registered
        """
        correlation_id = correlation_id or create_correlation_id()
        account = await self._account_storage.create_account(
            first_name=first_name,
            last_name=last_name,
            email=email,
        )
        await self._audit_logger.log_account_created(
            account_id=account.id,
            email=account.email,
            correlation_id=correlation_id,
        )
        return account

    async def get_account(self, account_id: UUID) -> Account:
        """
        Load an account.

        Raises:
            AccountNotFoundError: If it does not exist
        """
        account = await self._account_storage.load_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def find_account(self, email: str) -> Optional[Account]:
        """Look an account up by email."""
        return await self._account_storage.find_account_by_email(email)

    async def get_summary(
        self,
        account_id: UUID,
        now: Optional[datetime] = None,
    ) -> AccountSummary:
        """Home page view: formatted balance and investments with accrued gain."""
        account = await self.get_account(account_id)
        return self._engine.summarize(account, now)

    # -------------------------------------------------------------------------
    # Ledger operations
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        account_id: UUID,
        amount: Any,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerResult:
        """Add cash to the balance."""
        return await self._execute(
            account_id,
            LedgerOperation.DEPOSIT,
            lambda account: self._engine.deposit(account, amount),
            inputs={"amount": amount},
            correlation_id=correlation_id,
        )

    async def open_investment(
        self,
        account_id: UUID,
        amount: Any,
        roi_rate: Any,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerResult:
        """Move cash from the balance into a new investment."""
        return await self._execute(
            account_id,
            LedgerOperation.OPEN_INVESTMENT,
            lambda account: self._engine.open_investment(account, amount, roi_rate),
            inputs={"amount": amount, "roi_rate": roi_rate},
            correlation_id=correlation_id,
        )

    async def update_investment(
        self,
        account_id: UUID,
        investment_id: Union[UUID, str],
        amount: Any,
        roi_rate: Any,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerResult:
        """
        Change the terms of an open investment.

        Raises:
            InvestmentNotFoundError: If the investment does not exist
        """
        return await self._execute(
            account_id,
            LedgerOperation.UPDATE_INVESTMENT,
            lambda account: self._engine.update_investment(
                account, investment_id, amount, roi_rate
            ),
            inputs={"investment_id": investment_id, "amount": amount, "roi_rate": roi_rate},
            correlation_id=correlation_id,
        )

    async def close_investment(
        self,
        account_id: UUID,
        investment_id: Union[UUID, str],
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerResult:
        """
        Close an investment and credit principal + prorated gain.

        Raises:
            InvestmentNotFoundError: If the investment does not exist
        """
        return await self._execute(
            account_id,
            LedgerOperation.CLOSE_INVESTMENT,
            lambda account: self._engine.close_investment(account, investment_id, now),
            inputs={"investment_id": investment_id},
            correlation_id=correlation_id,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _execute(
        self,
        account_id: UUID,
        operation: LedgerOperation,
        apply: Callable[[Account], LedgerResult],
        inputs: dict,
        correlation_id: Optional[UUID],
    ) -> LedgerResult:
        correlation_id = correlation_id or create_correlation_id()

        async with self._locks.hold(account_id):
            retrying = AsyncRetrying(
                retry=retry_if_exception_type(ConcurrentModificationError),
                stop=stop_after_attempt(self._max_save_attempts),
                reraise=True,
            )
            async for attempt in retrying:
                with attempt:
                    result = await self._apply_once(
                        account_id,
                        operation,
                        apply,
                        inputs,
                        correlation_id,
                        attempt.retry_state.attempt_number,
                    )
        return result

    async def _apply_once(
        self,
        account_id: UUID,
        operation: LedgerOperation,
        apply: Callable[[Account], LedgerResult],
        inputs: dict,
        correlation_id: UUID,
        attempt_number: int,
    ) -> LedgerResult:
        """One load -> engine -> save cycle."""
        account = await self._account_storage.load_account(account_id)
        if account is None:
            await self._audit_logger.log_account_not_found(
                account_id=account_id,
                operation=operation.value,
                correlation_id=correlation_id,
            )
            raise AccountNotFoundError(account_id)

        try:
            result = apply(account)
        except InvestmentNotFoundError as e:
            await self._audit_logger.log_investment_not_found(
                account_id=account_id,
                investment_id=e.investment_id,
                operation=operation.value,
                correlation_id=correlation_id,
            )
            raise

        if not result.accepted:
            await self._audit_logger.log_ledger_result(result, inputs, correlation_id)
            return result

        try:
            committed = await self._account_storage.save_account(result.account)
        except ConcurrentModificationError:
            await self._audit_logger.log_concurrent_modification(
                account_id=account_id,
                operation=operation.value,
                attempt=attempt_number,
                correlation_id=correlation_id,
            )
            raise
        except AccountNotFoundError:
            # Deleted between load and save
            await self._audit_logger.log_account_not_found(
                account_id=account_id,
                operation=operation.value,
                correlation_id=correlation_id,
            )
            raise
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                account_id=account_id,
                operation=operation.value,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        result = result.model_copy(update={"account": committed})
        await self._audit_logger.log_ledger_result(result, inputs, correlation_id)
        return result


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured storage backend.
                    Set to False to run purely in memory.

    Returns:
        (ledger_flow, sheets_client)
    """
    ledger_settings = get_settings().ledger
    sheets_client = None
    account_storage = None
    audit_logger = None

    if use_storage and ledger_settings.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            account_storage = GoogleSheetsAccountStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            account_storage = None

    if account_storage is None:
        account_storage = InMemoryAccountStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    engine = LedgerEngine(days_per_year=ledger_settings.days_per_year)

    ledger_flow = LedgerFlow(
        account_storage=account_storage,
        engine=engine,
        audit_logger=audit_logger,
        max_save_attempts=ledger_settings.max_save_attempts,
    )

    return ledger_flow, sheets_client
