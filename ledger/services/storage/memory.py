"""
In-Memory Storage Implementation

Used by the tests and as the default backend for local runs.

Records are kept as serialized JSON, not as live objects, so every load
returns a fresh Account and nothing the caller does to it leaks into the
store without an explicit save. Every record goes back through the
pydantic models on the way out.

Each instance owns its own data. There is no module-level store.
The lock is a threading.Lock: the critical sections never await, and
the store may be shared by callers on different threads and loops.
"""

import threading
from typing import Optional
from uuid import UUID

from ledger.models.account import Account, utc_now
from ledger.models.audit import AuditEvent
from ledger.services.storage.interface import (
    AccountNotFoundError,
    AccountStorageInterface,
    AuditStorageInterface,
    ConcurrentModificationError,
    DuplicateError,
)


class InMemoryAccountStorage(AccountStorageInterface):
    """Account storage backed by a dict of JSON documents."""

    def __init__(self):
        self._records: dict[UUID, str] = {}
        self._lock = threading.Lock()

    def _decode(self, raw: str) -> Account:
        return Account.model_validate_json(raw)

    async def load_account(self, account_id: UUID) -> Optional[Account]:
        raw = self._records.get(account_id)
        return self._decode(raw) if raw is not None else None

    def _find_by_email(self, email: str) -> Optional[Account]:
        email = email.strip().lower()
        for raw in list(self._records.values()):
            account = self._decode(raw)
            if account.email == email:
                return account
        return None

    async def find_account_by_email(self, email: str) -> Optional[Account]:
        return self._find_by_email(email)

    async def create_account(
        self,
        first_name: str,
        last_name: str,
        email: str,
    ) -> Account:
        account = Account(first_name=first_name, last_name=last_name, email=email)
        with self._lock:
            if self._find_by_email(account.email):
                raise DuplicateError(f"An account already exists for {account.email}")
            self._records[account.id] = account.model_dump_json()
        return account

    async def save_account(self, account: Account) -> Account:
        with self._lock:
            raw = self._records.get(account.id)
            if raw is None:
                raise AccountNotFoundError(account.id)

            stored = self._decode(raw)
            if stored.version != account.version:
                raise ConcurrentModificationError(
                    account.id, account.version, stored.version
                )

            committed = account.model_copy(
                update={"version": account.version + 1, "updated_at": utc_now()},
                deep=True,
            )
            # Round-trip through validation so a bad record never gets stored
            payload = committed.model_dump_json()
            self._decode(payload)
            self._records[account.id] = payload
        return committed

    async def delete_account(self, account_id: UUID) -> bool:
        with self._lock:
            return self._records.pop(account_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_account(self, account_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.account_id == account_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
