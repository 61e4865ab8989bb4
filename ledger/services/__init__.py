"""Services package."""

from ledger.services.storage import (
    AccountNotFoundError,
    AccountStorageInterface,
    AuditStorageInterface,
    ConcurrentModificationError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    "AccountNotFoundError",
    "AccountStorageInterface",
    "AuditStorageInterface",
    "ConcurrentModificationError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "InMemoryAccountStorage",
    "InMemoryAuditStorage",
    "NotFoundError",
    "StorageError",
]
