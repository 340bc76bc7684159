"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is kept as a storage backend because:
1. Users can view their expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for personal use)
- No transactions: we keep a compensation journal instead. Every write
  made inside `transaction()` registers its inverse, and the inverses are
  replayed newest-first if the block fails.
- Limited query capabilities (we filter in Python)
- Ownership check and write are two API calls here; Sheets offers no
  conditional update. Transactions are serialized by an asyncio.Lock, and
  each task keeps its own undo list.
"""

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Callable, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_sync.config import GoogleSheetsSettings, get_settings
from expense_sync.models.expense import (
    Expense,
    SyncOperationKind,
    ensure_utc,
    utcnow,
)
from expense_sync.models.query import AmountAggregate, CategoryTotal
from expense_sync.models.sync_log import SyncLogEntry
from expense_sync.services.storage.interface import (
    ConnectionError,
    ExpenseStorageInterface,
    ForbiddenError,
    NotFoundError,
    StorageError,
    StorageGateway,
    SyncLogStorageInterface,
    filter_expenses,
)


logger = structlog.get_logger(__name__)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "title",
    "amount",
    "category",
    "currency",
    "date",
    "description",
    "synced_at",
    "created_at",
    "updated_at",
]

# Column mappings for SyncLog sheet
SYNC_LOG_COLUMNS = [
    "id",
    "user_id",
    "operation",
    "entity_id",
    "entity_type",
    "timestamp",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_sync_log_sheet(self) -> gspread.Worksheet:
        """Get or create the SyncLog worksheet."""
        return self._get_or_create_sheet(
            self._settings.sync_log_sheet_name, SYNC_LOG_COLUMNS, rows=5000
        )


class CompensationJournal:
    """
    Undo actions for the writes of the current transaction.

    Actions are held in a ContextVar, so each asyncio task only ever
    sees and replays its own. Outside a transaction, recording is a no-op.
    """

    def __init__(self):
        self._actions: ContextVar[Optional[list[tuple[str, Callable[[], None]]]]] = ContextVar(
            f"sheets_compensation_{id(self)}", default=None
        )

    @property
    def active(self) -> bool:
        return self._actions.get() is not None

    def begin(self) -> None:
        self._actions.set([])

    def record(self, description: str, undo: Callable[[], None]) -> None:
        actions = self._actions.get()
        if actions is not None:
            actions.append((description, undo))

    def rollback(self) -> None:
        """Run undo actions newest-first. Failures are logged; the rest still run."""
        actions = self._actions.get() or []
        self._actions.set(None)
        for description, undo in reversed(actions):
            try:
                undo()
            except Exception as e:
                logger.error(
                    "sheets_compensation_failed",
                    action=description,
                    error=str(e),
                )

    def commit(self) -> None:
        self._actions.set(None)


def _parse_dt(value: str) -> Optional[datetime]:
    return ensure_utc(datetime.fromisoformat(value)) if value else None


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    Expenses are stored as rows in a worksheet with one expense per row.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        journal: Optional[CompensationJournal] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._client = client or GoogleSheetsClient()
        self._journal = journal or CompensationJournal()
        self._clock = clock

    def _expense_to_row(self, expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            expense.id,
            expense.user_id,
            expense.title,
            str(expense.amount),
            expense.category,
            expense.currency,
            expense.date.isoformat(),
            expense.description or "",
            expense.synced_at.isoformat() if expense.synced_at else "",
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        """Convert a spreadsheet row to an Expense."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return Expense(
            id=safe_get(0),
            user_id=safe_get(1),
            title=safe_get(2),
            amount=Decimal(safe_get(3, "0")),
            category=safe_get(4),
            currency=safe_get(5, "USD"),
            date=_parse_dt(safe_get(6)),
            description=safe_get(7) or None,
            synced_at=_parse_dt(safe_get(8)),
            created_at=_parse_dt(safe_get(9)),
            updated_at=_parse_dt(safe_get(10)),
        )

    def _read_all(self) -> list[Expense]:
        sheet = self._client.get_expenses_sheet()
        expenses = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                expenses.append(self._row_to_expense(row))
            except Exception as e:
                logger.warning("sheets_malformed_expense_row", row_id=row[0], error=str(e))
        return expenses

    def _find_row(self, sheet: gspread.Worksheet, expense_id: str) -> tuple[int, Optional[list]]:
        """Sheet row number (1-based, header is row 1) and raw row for an expense."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == expense_id:
                return idx, row
        return -1, None

    def _owned_row(self, sheet: gspread.Worksheet, expense_id: str, user_id: str) -> tuple[int, list]:
        idx, row = self._find_row(sheet, expense_id)
        if row is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        if len(row) < 2 or row[1] != user_id:
            raise ForbiddenError(f"Access denied to expense: {expense_id}")
        return idx, row

    def _delete_by_id(self, expense_id: str) -> None:
        sheet = self._client.get_expenses_sheet()
        idx, row = self._find_row(sheet, expense_id)
        if row is not None:
            sheet.delete_rows(idx)

    def _rewrite_by_id(self, expense_id: str, row: list) -> None:
        sheet = self._client.get_expenses_sheet()
        idx, current = self._find_row(sheet, expense_id)
        if current is not None:
            sheet.update(range_name=f"A{idx}", values=[row])

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create_expense(self, expense: Expense) -> Expense:
        """Append a new expense row."""
        now = self._clock()
        stored = expense.model_copy(update={"created_at": now, "updated_at": now})
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._expense_to_row(stored), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

        self._journal.record(
            f"delete created expense {stored.id}",
            lambda: self._delete_by_id(stored.id),
        )
        return stored

    async def get_expense_by_id(self, expense_id: str) -> Optional[Expense]:
        """Retrieve an expense by its ID."""
        try:
            sheet = self._client.get_expenses_sheet()
            _, row = self._find_row(sheet, expense_id)
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")
        return self._row_to_expense(row) if row is not None else None

    async def update_expense(
        self,
        expense_id: str,
        user_id: str,
        changes: dict[str, Any],
    ) -> Expense:
        """Rewrite the expense row with the changes applied."""
        try:
            sheet = self._client.get_expenses_sheet()
            idx, old_row = self._owned_row(sheet, expense_id, user_id)
            existing = self._row_to_expense(old_row)
            updated = Expense.model_validate({
                **existing.model_dump(),
                **changes,
                "id": existing.id,
                "user_id": existing.user_id,
                "updated_at": self._clock(),
            })
            sheet.update(range_name=f"A{idx}", values=[self._expense_to_row(updated)])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

        self._journal.record(
            f"restore updated expense {expense_id}",
            lambda: self._rewrite_by_id(expense_id, old_row),
        )
        return updated

    async def delete_expense(self, expense_id: str, user_id: str) -> Expense:
        """Delete the expense row."""
        try:
            sheet = self._client.get_expenses_sheet()
            idx, old_row = self._owned_row(sheet, expense_id, user_id)
            existing = self._row_to_expense(old_row)
            sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

        self._journal.record(
            f"re-append deleted expense {expense_id}",
            lambda: self._client.get_expenses_sheet().append_row(
                old_row, value_input_option="RAW"
            ),
        )
        return existing

    async def list_expenses(
        self,
        user_id: str,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Expense]:
        """List expenses with optional filters."""
        try:
            expenses = filter_expenses(self._read_all(), user_id, category, date_from, date_to)
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

        # Sort by date descending (newest first)
        expenses.sort(key=lambda e: e.date, reverse=True)

        # Apply pagination
        end = None if limit is None else offset + limit
        return expenses[offset:end]

    async def count_expenses(
        self,
        user_id: str,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        unsynced_only: bool = False,
    ) -> int:
        expenses = await self.list_expenses(user_id, category, date_from, date_to)
        if unsynced_only:
            expenses = [e for e in expenses if e.synced_at is None]
        return len(expenses)

    async def list_updated_since(self, user_id: str, since: datetime) -> list[Expense]:
        since = ensure_utc(since)
        try:
            expenses = [
                e for e in self._read_all()
                if e.user_id == user_id and e.updated_at > since
            ]
        except Exception as e:
            raise StorageError(f"Failed to list updated expenses: {e}")
        expenses.sort(key=lambda e: e.updated_at, reverse=True)
        return expenses

    async def aggregate_amounts(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> AmountAggregate:
        expenses = await self.list_expenses(user_id, date_from=date_from, date_to=date_to)
        return AmountAggregate.from_expenses(expenses)

    async def group_by_category(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[CategoryTotal]:
        expenses = await self.list_expenses(user_id, date_from=date_from, date_to=date_to)
        return CategoryTotal.group(expenses)


class GoogleSheetsSyncLogStorage(SyncLogStorageInterface):
    """
    Google Sheets implementation of the sync ledger.

    Entries are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_entry(self, row: list) -> SyncLogEntry:
        """Convert a spreadsheet row to a SyncLogEntry."""
        return SyncLogEntry(
            id=row[0],
            user_id=row[1],
            operation=SyncOperationKind(row[2]),
            entity_id=row[3] or "unknown",
            entity_type=row[4],
            timestamp=_parse_dt(row[5]),
        )

    def _entries_for(self, user_id: str) -> list[SyncLogEntry]:
        sheet = self._client.get_sync_log_sheet()
        entries = []
        for row in sheet.get_all_values()[1:]:
            if row and len(row) >= len(SYNC_LOG_COLUMNS) and row[1] == user_id:
                try:
                    entries.append(self._row_to_entry(row))
                except Exception as e:
                    logger.warning("sheets_malformed_sync_log_row", row_id=row[0], error=str(e))
        # Stable sort keeps sheet (append) order for equal timestamps
        entries.sort(key=lambda e: e.timestamp)
        return entries

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_entry(self, entry: SyncLogEntry) -> SyncLogEntry:
        """Append a ledger entry."""
        try:
            sheet = self._client.get_sync_log_sheet()
            sheet.append_row(entry.to_sheets_row(), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to write sync log entry: {e}")
        return entry

    async def get_latest_entry(self, user_id: str) -> Optional[SyncLogEntry]:
        try:
            entries = self._entries_for(user_id)
        except Exception as e:
            raise StorageError(f"Failed to read sync log: {e}")
        return entries[-1] if entries else None

    async def count_entries(self, user_id: str) -> int:
        try:
            return len(self._entries_for(user_id))
        except Exception as e:
            raise StorageError(f"Failed to read sync log: {e}")

    async def get_recent_entries(self, user_id: str, limit: int = 100) -> list[SyncLogEntry]:
        try:
            entries = self._entries_for(user_id)
        except Exception as e:
            raise StorageError(f"Failed to read sync log: {e}")
        entries.reverse()
        return entries[:limit]


class GoogleSheetsStorage(StorageGateway):
    """Gateway over one spreadsheet holding both the Expenses and SyncLog sheets."""

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._client = client or GoogleSheetsClient()
        self._journal = CompensationJournal()
        self._lock = asyncio.Lock()
        self._expenses = GoogleSheetsExpenseStorage(self._client, self._journal, clock)
        self._sync_log = GoogleSheetsSyncLogStorage(self._client)

    @property
    def client(self) -> GoogleSheetsClient:
        return self._client

    @property
    def expenses(self) -> GoogleSheetsExpenseStorage:
        return self._expenses

    @property
    def sync_log(self) -> GoogleSheetsSyncLogStorage:
        return self._sync_log

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            self._journal.begin()
            try:
                yield
            except BaseException:
                self._journal.rollback()
                raise
            else:
                self._journal.commit()
