"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: we keep one account per row and write the whole row
  in a single range update, which gives all-or-nothing saves per account
- The version column is checked just before the write; this narrows the
  lost-update window to one API round trip, it does not close it

Investments are stored as a JSON array in one column so that an account
and its investments are always written together.
"""

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.config import get_settings
from ledger.models.account import Account, Investment, utc_now
from ledger.models.audit import AUDIT_COLUMNS, AuditEvent
from ledger.services.storage.interface import (
    AccountNotFoundError,
    AccountStorageInterface,
    AuditStorageInterface,
    ConcurrentModificationError,
    ConnectionError,
    DuplicateError,
    StorageError,
)


# Column mappings for Accounts sheet
ACCOUNT_COLUMNS = [
    "id",
    "version",
    "schema_version",
    "created_at",
    "updated_at",
    "email",
    "first_name",
    "last_name",
    "balance",
    "investments_json",
]

# Transient API failures are retried; everything else surfaces at once.
api_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)

logger = structlog.get_logger(__name__)


def _column_letter(index: int) -> str:
    """1-based column index to A1 letters (1 -> A, 27 -> AA)."""
    letters = ""
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create_sheet(
            self._settings.accounts_sheet_name, ACCOUNT_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsAccountStorage(AccountStorageInterface):
    """
    Google Sheets implementation of account storage.

    One account per row. The investments list is JSON-serialized
    into the last column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _account_to_row(self, account: Account) -> list:
        """Convert an Account to a spreadsheet row."""
        return [
            str(account.id),
            str(account.version),
            str(account.schema_version),
            account.created_at.isoformat(),
            account.updated_at.isoformat(),
            account.email,
            account.first_name,
            account.last_name,
            str(account.balance),
            json.dumps([inv.model_dump(mode="json") for inv in account.investments]),
        ]

    def _row_to_account(self, row: list) -> Account:
        """
        Convert a spreadsheet row to an Account.

        Raises:
            StorageError: If the row does not describe a valid account
        """
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        try:
            investments_json = safe_get(9)
            investments = [
                Investment.model_validate(item)
                for item in (json.loads(investments_json) if investments_json else [])
            ]
            return Account(
                id=UUID(safe_get(0)),
                version=int(safe_get(1, "0")),
                schema_version=int(safe_get(2, "1")),
                created_at=datetime.fromisoformat(safe_get(3)),
                updated_at=datetime.fromisoformat(safe_get(4)),
                email=safe_get(5),
                first_name=safe_get(6),
                last_name=safe_get(7),
                balance=Decimal(safe_get(8, "0")),
                investments=investments,
            )
        except (ValueError, InvalidOperation, ValidationError) as e:
            raise StorageError(f"Malformed account row {safe_get(0)!r}: {e}")

    @api_retry
    def _read_rows(self) -> list[list]:
        sheet = self._client.get_accounts_sheet()
        return sheet.get_all_values()[1:]  # Skip header

    @api_retry
    def _append_row(self, row: list) -> None:
        sheet = self._client.get_accounts_sheet()
        sheet.append_row(row, value_input_option="RAW")

    @api_retry
    def _write_row(self, row_number: int, row: list) -> None:
        sheet = self._client.get_accounts_sheet()
        last_column = _column_letter(len(ACCOUNT_COLUMNS))
        sheet.update(
            range_name=f"A{row_number}:{last_column}{row_number}",
            values=[row],
            value_input_option="RAW",
        )

    @api_retry
    def _delete_row(self, row_number: int) -> None:
        sheet = self._client.get_accounts_sheet()
        sheet.delete_rows(row_number)

    def _locate(self, account_id: UUID) -> tuple[Optional[int], Optional[list]]:
        """Find (sheet row number, row values) for an account."""
        for idx, row in enumerate(self._read_rows(), start=2):  # Row 1 is header
            if row and row[0] == str(account_id):
                return idx, row
        return None, None

    async def load_account(self, account_id: UUID) -> Optional[Account]:
        """Retrieve an account by its ID."""
        try:
            _, row = self._locate(account_id)
        except Exception as e:
            raise StorageError(f"Failed to load account: {e}")
        return self._row_to_account(row) if row else None

    async def find_account_by_email(self, email: str) -> Optional[Account]:
        """Retrieve an account by email."""
        email = email.strip().lower()
        try:
            rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to search accounts: {e}")

        for row in rows:
            if row and len(row) > 5 and row[5].strip().lower() == email:
                return self._row_to_account(row)
        return None

    async def create_account(
        self,
        first_name: str,
        last_name: str,
        email: str,
    ) -> Account:
        """Append a new account row."""
        account = Account(first_name=first_name, last_name=last_name, email=email)
        if await self.find_account_by_email(account.email):
            raise DuplicateError(f"An account already exists for {account.email}")

        try:
            self._append_row(self._account_to_row(account))
        except Exception as e:
            raise StorageError(f"Failed to create account: {e}")
        return account

    async def save_account(self, account: Account) -> Account:
        """Rewrite the account's row if its version is unchanged."""
        try:
            row_number, row = self._locate(account.id)
        except Exception as e:
            raise StorageError(f"Failed to load account for save: {e}")

        if row_number is None:
            raise AccountNotFoundError(account.id)

        stored_version = int(row[1]) if len(row) > 1 and row[1] else 0
        if stored_version != account.version:
            raise ConcurrentModificationError(account.id, account.version, stored_version)

        committed = account.model_copy(
            update={"version": account.version + 1, "updated_at": utc_now()},
            deep=True,
        )
        try:
            self._write_row(row_number, self._account_to_row(committed))
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")
        return committed

    async def delete_account(self, account_id: UUID) -> bool:
        """Delete an account row."""
        try:
            row_number, _ = self._locate(account_id)
            if row_number is None:
                return False
            self._delete_row(row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete account: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @api_retry
    def _read_rows(self) -> list[list]:
        sheet = self._client.get_audit_sheet()
        return sheet.get_all_values()[1:]

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._read_rows():
            if not row or not row[0]:
                continue
            try:
                events.append(AuditEvent.from_sheets_row(row))
            except (ValueError, ValidationError):
                logger.warning("audit_row_skipped", event_id=row[0])
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_events_by_account(self, account_id: UUID) -> list[AuditEvent]:
        """Get events for one account."""
        try:
            events = [e for e in self._read_events() if e.account_id == account_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
