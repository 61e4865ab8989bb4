"""
Tests for the storage backends.

Each test builds its own storage and runs all of its async work inside
a single asyncio.run() call.
"""

import asyncio
import json
import threading
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger.models.account import Investment
from ledger.models.audit import AUDIT_COLUMNS, AuditEventBuilder
from ledger.services.storage import (
    AccountNotFoundError,
    ConcurrentModificationError,
    DuplicateError,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
    StorageError,
)
from ledger.services.storage.google_sheets import ACCOUNT_COLUMNS, _column_letter


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(value) for value in row])

    def update(self, range_name=None, values=None, value_input_option=None):
        # "A2:J2" -> row 2
        row_number = int(range_name.split(":")[0][1:])
        self.rows[row_number - 1] = [str(value) for value in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.accounts = FakeWorksheet(ACCOUNT_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_accounts_sheet(self):
        return self.accounts

    def get_audit_sheet(self):
        return self.audit


class TestInMemoryAccountStorage:
    """Tests for InMemoryAccountStorage."""

    def test_create_and_load(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            created = await storage.create_account("Ada", "Lovelace", "Ada@Example.com")
            loaded = await storage.load_account(created.id)
            return created, loaded

        created, loaded = asyncio.run(scenario())

        assert created.balance == Decimal("0")
        assert created.version == 0
        assert loaded == created
        assert loaded is not created

    def test_find_by_email_ignores_case(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            created = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            found = await storage.find_account_by_email(" ADA@example.com ")
            missing = await storage.find_account_by_email("bob@example.com")
            return created, found, missing

        created, found, missing = asyncio.run(scenario())

        assert found.id == created.id
        assert missing is None

    def test_duplicate_email_rejected(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            await storage.create_account("Ada", "Lovelace", "ada@example.com")
            await storage.create_account("Other", "Ada", "ADA@example.com")

        with pytest.raises(DuplicateError):
            asyncio.run(scenario())

    def test_load_missing_returns_none(self):
        storage = InMemoryAccountStorage()
        assert asyncio.run(storage.load_account(uuid4())) is None

    def test_save_increments_version(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            account.balance = Decimal("25")
            committed = await storage.save_account(account)
            loaded = await storage.load_account(account.id)
            return account, committed, loaded

        account, committed, loaded = asyncio.run(scenario())

        assert committed.version == 1
        assert account.version == 0
        assert loaded.version == 1
        assert loaded.balance == Decimal("25")

    def test_stale_save_rejected(self):
        """Test that a save based on an old version is refused."""
        async def scenario():
            storage = InMemoryAccountStorage()
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            first = await storage.load_account(account.id)
            second = await storage.load_account(account.id)

            first.balance = Decimal("10")
            await storage.save_account(first)

            second.balance = Decimal("99")
            await storage.save_account(second)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            asyncio.run(scenario())

        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1

    def test_stale_save_keeps_winner(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            first = await storage.load_account(account.id)
            second = await storage.load_account(account.id)

            first.balance = Decimal("10")
            await storage.save_account(first)

            second.balance = Decimal("99")
            with pytest.raises(ConcurrentModificationError):
                await storage.save_account(second)
            return await storage.load_account(account.id)

        stored = asyncio.run(scenario())
        assert stored.balance == Decimal("10")

    def test_save_missing_account_raises(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            await storage.delete_account(account.id)
            await storage.save_account(account)

        with pytest.raises(AccountNotFoundError):
            asyncio.run(scenario())

    def test_unsaved_changes_are_not_visible(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            account.balance = Decimal("500")
            account.investments.append(Investment(amount=Decimal("1"), roi_rate=Decimal("1")))
            return await storage.load_account(account.id)

        loaded = asyncio.run(scenario())
        assert loaded.balance == Decimal("0")
        assert loaded.investments == []

    def test_delete_account(self):
        async def scenario():
            storage = InMemoryAccountStorage()
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            first = await storage.delete_account(account.id)
            second = await storage.delete_account(account.id)
            loaded = await storage.load_account(account.id)
            return first, second, loaded

        first, second, loaded = asyncio.run(scenario())
        assert first is True
        assert second is False
        assert loaded is None

    def test_shared_across_threads(self):
        """Each thread runs its own event loop against one store."""
        storage = InMemoryAccountStorage()
        start = threading.Barrier(2)
        outcomes = []

        def register():
            start.wait(timeout=5)
            try:
                asyncio.run(storage.create_account("Ada", "Lovelace", "ada@example.com"))
                outcomes.append("created")
            except DuplicateError:
                outcomes.append("duplicate")

        threads = [threading.Thread(target=register) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert not any(thread.is_alive() for thread in threads)
        assert sorted(outcomes) == ["created", "duplicate"]

    def test_stale_saves_from_two_threads(self):
        storage = InMemoryAccountStorage()
        account = asyncio.run(storage.create_account("Ada", "Lovelace", "ada@example.com"))
        start = threading.Barrier(2)
        outcomes = []

        def save(amount):
            copy = account.model_copy(deep=True)
            copy.balance = Decimal(amount)
            start.wait(timeout=5)
            try:
                asyncio.run(storage.save_account(copy))
                outcomes.append("saved")
            except ConcurrentModificationError:
                outcomes.append("conflict")

        threads = [threading.Thread(target=save, args=(amount,)) for amount in ("1", "2")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        stored = asyncio.run(storage.load_account(account.id))
        assert sorted(outcomes) == ["conflict", "saved"]
        assert stored.version == 1


class TestInMemoryAuditStorage:
    """Tests for InMemoryAuditStorage."""

    def test_events_by_account_and_correlation(self):
        account_id = uuid4()
        correlation_id = uuid4()

        async def scenario():
            storage = InMemoryAuditStorage()
            await storage.append_event(AuditEventBuilder.deposit_accepted(
                account_id, Decimal("10"), Decimal("10"), correlation_id
            ))
            await storage.append_event(AuditEventBuilder.deposit_accepted(
                uuid4(), Decimal("5"), Decimal("5"), uuid4()
            ))
            return (
                await storage.get_events_by_account(account_id),
                await storage.get_events_by_correlation_id(correlation_id),
                await storage.get_recent_events(limit=1),
            )

        by_account, by_correlation, recent = asyncio.run(scenario())
        assert len(by_account) == 1
        assert by_account == by_correlation
        assert len(recent) == 1


class TestGoogleSheetsAccountStorage:
    """Tests for GoogleSheetsAccountStorage against a fake worksheet."""

    def test_column_letter(self):
        assert _column_letter(1) == "A"
        assert _column_letter(len(ACCOUNT_COLUMNS)) == "J"
        assert _column_letter(27) == "AA"

    def test_create_writes_one_row(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAccountStorage(client)

        account = asyncio.run(storage.create_account("Ada", "Lovelace", "ada@example.com"))

        assert len(client.accounts.rows) == 2
        row = client.accounts.rows[1]
        assert row[0] == str(account.id)
        assert row[1] == "0"
        assert row[5] == "ada@example.com"
        assert json.loads(row[9]) == []

    def test_save_and_load_round_trip(self):
        """Investments and decimals come back exactly as saved."""
        client = FakeSheetsClient()
        storage = GoogleSheetsAccountStorage(client)

        async def scenario():
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            account.balance = Decimal("49.95")
            account.investments.append(
                Investment(amount=Decimal("50.05"), roi_rate=Decimal("12.5"))
            )
            committed = await storage.save_account(account)
            loaded = await storage.load_account(account.id)
            return committed, loaded

        committed, loaded = asyncio.run(scenario())

        assert committed.version == 1
        assert loaded == committed
        assert loaded.investments[0].amount == Decimal("50.05")
        assert len(client.accounts.rows) == 2
        assert client.accounts.rows[1][1] == "1"

    def test_duplicate_email_rejected(self):
        storage = GoogleSheetsAccountStorage(FakeSheetsClient())

        async def scenario():
            await storage.create_account("Ada", "Lovelace", "ada@example.com")
            await storage.create_account("Ada", "Again", "ada@example.com")

        with pytest.raises(DuplicateError):
            asyncio.run(scenario())

    def test_stale_save_rejected(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAccountStorage(client)

        async def scenario():
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            stale = await storage.load_account(account.id)
            account.balance = Decimal("10")
            await storage.save_account(account)
            stale.balance = Decimal("20")
            await storage.save_account(stale)

        with pytest.raises(ConcurrentModificationError):
            asyncio.run(scenario())
        assert client.accounts.rows[1][8] == "10"

    def test_save_missing_account_raises(self):
        storage = GoogleSheetsAccountStorage(FakeSheetsClient())

        async def scenario():
            account = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            await storage.delete_account(account.id)
            await storage.save_account(account)

        with pytest.raises(AccountNotFoundError):
            asyncio.run(scenario())

    def test_malformed_row_raises_storage_error(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAccountStorage(client)
        account = asyncio.run(storage.create_account("Ada", "Lovelace", "ada@example.com"))
        client.accounts.rows[1][9] = "{not json"

        with pytest.raises(StorageError, match="Malformed account row"):
            asyncio.run(storage.load_account(account.id))

    def test_delete_account(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAccountStorage(client)

        async def scenario():
            keep = await storage.create_account("Ada", "Lovelace", "ada@example.com")
            drop = await storage.create_account("Bob", "Builder", "bob@example.com")
            deleted = await storage.delete_account(drop.id)
            missing = await storage.delete_account(drop.id)
            return keep, deleted, missing

        keep, deleted, missing = asyncio.run(scenario())
        assert deleted is True
        assert missing is False
        assert [row[0] for row in client.accounts.rows[1:]] == [str(keep.id)]


class TestGoogleSheetsAuditStorage:
    """Tests for GoogleSheetsAuditStorage against a fake worksheet."""

    def test_append_and_read_back(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        account_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.investment_closed(
            account_id=account_id,
            investment_id=uuid4(),
            gain=Decimal("2"),
            credited=Decimal("202"),
            correlation_id=correlation_id,
        )

        async def scenario():
            appended = await storage.append_event(event)
            return appended, await storage.get_events_by_account(account_id)

        appended, events = asyncio.run(scenario())

        assert appended is True
        assert len(client.audit.rows) == 2
        assert [e.event_id for e in events] == [event.event_id]
        assert events[0].correlation_id == correlation_id

    def test_append_failure_returns_false(self):
        class BrokenClient(FakeSheetsClient):
            def get_audit_sheet(self):
                raise RuntimeError("quota exceeded")

        storage = GoogleSheetsAuditStorage(BrokenClient())
        event = AuditEventBuilder.system_error("test", "boom")

        assert asyncio.run(storage.append_event(event)) is False
