"""
Shared test helpers.

No real Google API calls are made anywhere in the suite; the Sheets
backend is exercised against FakeWorksheet.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from expense_sync.ledger import SyncLedger
from expense_sync.models.expense import Expense
from expense_sync.services.storage import InMemoryStorage
from expense_sync.services.storage.google_sheets import EXPENSE_COLUMNS, SYNC_LOG_COLUMNS
from expense_sync.sync import Reconciler


class FakeClock:
    """Deterministic clock: every call is one step later than the last."""

    def __init__(
        self,
        start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the Sheets backend."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(value) for value in row])

    def update(self, range_name=None, values=None):
        index = int(range_name[1:])
        self.rows[index - 1] = [str(value) for value in values[0]]

    def delete_rows(self, index: int):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.sync_log = FakeWorksheet(SYNC_LOG_COLUMNS)

    def get_expenses_sheet(self) -> FakeWorksheet:
        return self.expenses

    def get_sync_log_sheet(self) -> FakeWorksheet:
        return self.sync_log


def make_expense(user_id: str = "alice", **overrides) -> Expense:
    fields = {
        "user_id": user_id,
        "title": "Lunch",
        "amount": Decimal("12.50"),
        "category": "Food",
        "date": datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Expense(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(clock) -> InMemoryStorage:
    return InMemoryStorage(clock=clock)


@pytest.fixture
def ledger(storage, clock) -> SyncLedger:
    return SyncLedger(storage, clock=clock)


@pytest.fixture
def reconciler(storage, ledger, clock) -> Reconciler:
    return Reconciler(storage, ledger=ledger, clock=clock)
