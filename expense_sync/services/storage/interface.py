"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep reconciliation logic decoupled from storage implementation

Two rules every backend must honour:
- Ownership is checked in the same call that mutates
  (update/delete "where id = X and owner = U"), never as a separate read.
- `transaction()` makes the writes inside it all-or-nothing as far as
  the backend is able to.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Optional

from expense_sync.models.expense import Expense, ensure_utc
from expense_sync.models.query import AmountAggregate, CategoryTotal
from expense_sync.models.sync_log import SyncLogEntry


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    All list/count/aggregate operations are scoped to one user.
    """

    @abstractmethod
    async def create_expense(self, expense: Expense) -> Expense:
        """
        Store a new expense.

        Returns:
            The stored expense (with storage-maintained timestamps)

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense_by_id(self, expense_id: str) -> Optional[Expense]:
        """
        Retrieve an expense by its ID, regardless of owner.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_expense(
        self,
        expense_id: str,
        user_id: str,
        changes: dict[str, Any],
    ) -> Expense:
        """
        Apply field changes to an expense owned by user_id.

        Args:
            expense_id: Expense to change
            user_id: Caller; must own the expense
            changes: Field name -> new value

        Returns:
            The updated expense

        Raises:
            NotFoundError: If the expense doesn't exist
            ForbiddenError: If it belongs to another user
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str, user_id: str) -> Expense:
        """
        Delete an expense owned by user_id.

        Returns:
            The expense as it was before deletion

        Raises:
            NotFoundError: If the expense doesn't exist
            ForbiddenError: If it belongs to another user
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        user_id: str,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Expense]:
        """
        List a user's expenses, newest `date` first.

        Args:
            user_id: Owner
            category: Exact category match
            date_from: Expenses on or after this time
            date_to: Expenses on or before this time
            limit: Maximum number of results (None = all)
            offset: Number of results to skip
        """
        pass

    @abstractmethod
    async def count_expenses(
        self,
        user_id: str,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        unsynced_only: bool = False,
    ) -> int:
        """
        Count a user's expenses.

        Args:
            unsynced_only: Only count expenses whose synced_at is None
        """
        pass

    @abstractmethod
    async def list_updated_since(
        self,
        user_id: str,
        since: datetime,
    ) -> list[Expense]:
        """
        Expenses with updated_at strictly after `since`, newest update first.
        """
        pass

    @abstractmethod
    async def aggregate_amounts(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> AmountAggregate:
        """Sum, count and average of amounts in a date range."""
        pass

    @abstractmethod
    async def group_by_category(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[CategoryTotal]:
        """Totals per category in a date range, largest first."""
        pass


class SyncLogStorageInterface(ABC):
    """
    Abstract interface for sync ledger storage.

    The ledger is append-only - we never delete or modify entries.
    """

    @abstractmethod
    async def append_entry(self, entry: SyncLogEntry) -> SyncLogEntry:
        """
        Append an entry to the ledger.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_latest_entry(self, user_id: str) -> Optional[SyncLogEntry]:
        """Newest entry for the user (max timestamp), None if there are none."""
        pass

    @abstractmethod
    async def count_entries(self, user_id: str) -> int:
        """Number of entries for the user."""
        pass

    @abstractmethod
    async def get_recent_entries(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[SyncLogEntry]:
        """Most recent entries for the user, newest first."""
        pass


class StorageGateway(ABC):
    """
    Everything the sync core needs from storage, behind one object.
    """

    @property
    @abstractmethod
    def expenses(self) -> ExpenseStorageInterface:
        pass

    @property
    @abstractmethod
    def sync_log(self) -> SyncLogStorageInterface:
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Group writes into one unit.

        If the body raises, writes made inside it are undone and the
        exception propagates.
        """
        pass


def filter_expenses(
    expenses: list[Expense],
    user_id: str,
    category: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> list[Expense]:
    """Shared filtering for backends that can't query natively."""
    date_from = ensure_utc(date_from)
    date_to = ensure_utc(date_to)
    matched = []
    for expense in expenses:
        if expense.user_id != user_id:
            continue
        if category and expense.category != category:
            continue
        if date_from and expense.date < date_from:
            continue
        if date_to and expense.date > date_to:
            continue
        matched.append(expense)
    return matched


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ForbiddenError(StorageError):
    """Entity exists but belongs to another user."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
