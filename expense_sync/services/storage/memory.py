"""
In-Memory Storage Implementation

Keeps expenses and the sync ledger in process memory. Used by the test
suite and as the default backend for local development.

Transactions take a snapshot of both stores and restore it if the
body raises. A single asyncio.Lock serializes transactions, so two
batches for the same user can only interleave between operations,
never inside one.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional

from expense_sync.models.expense import Expense, ensure_utc, utcnow
from expense_sync.models.query import AmountAggregate, CategoryTotal
from expense_sync.models.sync_log import SyncLogEntry
from expense_sync.services.storage.interface import (
    ExpenseStorageInterface,
    ForbiddenError,
    NotFoundError,
    StorageGateway,
    SyncLogStorageInterface,
    filter_expenses,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses keyed by id, in insertion order."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._expenses: dict[str, Expense] = {}

    def _owned(self, expense_id: str, user_id: str) -> Expense:
        expense = self._expenses.get(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        if expense.user_id != user_id:
            raise ForbiddenError(f"Access denied to expense: {expense_id}")
        return expense

    async def create_expense(self, expense: Expense) -> Expense:
        now = self._clock()
        stored = expense.model_copy(update={"created_at": now, "updated_at": now})
        self._expenses[stored.id] = stored
        return stored

    async def get_expense_by_id(self, expense_id: str) -> Optional[Expense]:
        return self._expenses.get(expense_id)

    async def update_expense(
        self,
        expense_id: str,
        user_id: str,
        changes: dict[str, Any],
    ) -> Expense:
        existing = self._owned(expense_id, user_id)
        updated = Expense.model_validate({
            **existing.model_dump(),
            **changes,
            "id": existing.id,
            "user_id": existing.user_id,
            "updated_at": self._clock(),
        })
        self._expenses[expense_id] = updated
        return updated

    async def delete_expense(self, expense_id: str, user_id: str) -> Expense:
        existing = self._owned(expense_id, user_id)
        del self._expenses[expense_id]
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
        expenses = filter_expenses(
            list(self._expenses.values()), user_id, category, date_from, date_to
        )
        expenses.sort(key=lambda e: e.date, reverse=True)
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
        expenses = filter_expenses(
            list(self._expenses.values()), user_id, category, date_from, date_to
        )
        if unsynced_only:
            expenses = [e for e in expenses if e.synced_at is None]
        return len(expenses)

    async def list_updated_since(self, user_id: str, since: datetime) -> list[Expense]:
        since = ensure_utc(since)
        expenses = [
            e for e in self._expenses.values()
            if e.user_id == user_id and e.updated_at > since
        ]
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

    def snapshot(self) -> dict[str, Expense]:
        # Expense instances are replaced, never mutated, so a shallow copy is enough
        return dict(self._expenses)

    def restore(self, snapshot: dict[str, Expense]) -> None:
        self._expenses = snapshot


class InMemorySyncLogStorage(SyncLogStorageInterface):
    """Ledger as a plain append-only list."""

    def __init__(self):
        self._entries: list[SyncLogEntry] = []

    def _for_user(self, user_id: str) -> list[SyncLogEntry]:
        return [e for e in self._entries if e.user_id == user_id]

    async def append_entry(self, entry: SyncLogEntry) -> SyncLogEntry:
        self._entries.append(entry)
        return entry

    async def get_latest_entry(self, user_id: str) -> Optional[SyncLogEntry]:
        entries = self._for_user(user_id)
        if not entries:
            return None
        # Stable sort: equal timestamps keep insertion order, so the last one wins
        return sorted(entries, key=lambda e: e.timestamp)[-1]

    async def count_entries(self, user_id: str) -> int:
        return len(self._for_user(user_id))

    async def get_recent_entries(self, user_id: str, limit: int = 100) -> list[SyncLogEntry]:
        entries = sorted(self._for_user(user_id), key=lambda e: e.timestamp)
        entries.reverse()
        return entries[:limit]

    def snapshot(self) -> int:
        return len(self._entries)

    def restore(self, length: int) -> None:
        del self._entries[length:]


class InMemoryStorage(StorageGateway):
    """Gateway over the two in-memory stores."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._expenses = InMemoryExpenseStorage(clock=clock)
        self._sync_log = InMemorySyncLogStorage()
        self._lock = asyncio.Lock()

    @property
    def expenses(self) -> InMemoryExpenseStorage:
        return self._expenses

    @property
    def sync_log(self) -> InMemorySyncLogStorage:
        return self._sync_log

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            expenses_snapshot = self._expenses.snapshot()
            log_snapshot = self._sync_log.snapshot()
            try:
                yield
            except BaseException:
                self._expenses.restore(expenses_snapshot)
                self._sync_log.restore(log_snapshot)
                raise
