"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The unit of storage is a whole Account: balance and investments are read
and written together, never separately. That is what makes a save
all-or-nothing per account.

CONCURRENCY: Every Account carries a version. save_account() only succeeds
if the stored version still equals the version the caller loaded; otherwise
another writer got there first and ConcurrentModificationError is raised.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from ledger.models.account import Account
from ledger.models.audit import AuditEvent


class AccountStorageInterface(ABC):
    """
    Abstract interface for account storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load_account(self, account_id: UUID) -> Optional[Account]:
        """
        Retrieve an account by its ID.

        Args:
            account_id: The account's unique identifier

        Returns:
            The account if found, None otherwise

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def find_account_by_email(self, email: str) -> Optional[Account]:
        """
        Retrieve an account by its (case-insensitive) email.

        Returns:
            The account if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_account(
        self,
        first_name: str,
        last_name: str,
        email: str,
    ) -> Account:
        """
        Create a new account with a zero balance and no investments.

        Returns:
            The stored account

        Raises:
            DuplicateError: If an account with this email exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> Account:
        """
        Persist the full account (balance + investments) as one unit.

        Args:
            account: The account as modified by the ledger engine.
                     Its version must match the stored version.

        Returns:
            The committed account, with version incremented

        Raises:
            AccountNotFoundError: If the account no longer exists
            ConcurrentModificationError: If the stored version moved on
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_account(self, account_id: UUID) -> bool:
        """
        Delete an account by ID.

        Returns:
            True if deleted, False if there was nothing to delete
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_account(
        self,
        account_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for one account.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class AccountNotFoundError(NotFoundError):
    """The account does not exist (or was deleted after the caller captured its ID)."""

    def __init__(self, account_id: UUID, message: Optional[str] = None):
        self.account_id = account_id
        super().__init__(message or f"Account not found: {account_id}")


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConcurrentModificationError(StorageError):
    """The stored account changed between load and save."""

    def __init__(self, account_id: UUID, expected_version: int, actual_version: int):
        self.account_id = account_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Account {account_id} was modified concurrently "
            f"(loaded version {expected_version}, stored version {actual_version})"
        )
