"""
Expense Service

Direct, one-at-a-time expense operations for an online client.
Writes made here count as synced: they reach the server immediately,
so `synced_at` is stamped just like a sync pass would.
"""

from datetime import datetime
from typing import Callable

import structlog

from expense_sync.models.expense import Expense, ExpenseChanges, ExpenseCreate, utcnow
from expense_sync.services.storage import (
    ExpenseStorageInterface,
    ForbiddenError,
    NotFoundError,
)


class ExpenseService:
    """Owner-checked CRUD for single expenses."""

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._storage = storage
        self._clock = clock
        self._logger = structlog.get_logger(__name__)

    async def create(self, user_id: str, data: ExpenseCreate) -> Expense:
        expense = await self._storage.create_expense(
            data.to_expense(user_id, synced_at=self._clock())
        )
        self._logger.info("expense_created", user_id=user_id, expense_id=expense.id)
        return expense

    async def find_one(self, expense_id: str, user_id: str) -> Expense:
        """
        Fetch an expense the caller owns.

        Raises:
            NotFoundError: If the expense doesn't exist
            ForbiddenError: If it belongs to another user
        """
        expense = await self._storage.get_expense_by_id(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        if expense.user_id != user_id:
            raise ForbiddenError(f"Access denied to expense: {expense_id}")
        return expense

    async def update(
        self,
        expense_id: str,
        user_id: str,
        changes: ExpenseChanges,
    ) -> Expense:
        """Apply only the fields present in `changes`."""
        expense = await self._storage.update_expense(
            expense_id,
            user_id,
            {**changes.as_update(), "synced_at": self._clock()},
        )
        self._logger.info("expense_updated", user_id=user_id, expense_id=expense_id)
        return expense

    async def remove(self, expense_id: str, user_id: str) -> Expense:
        expense = await self._storage.delete_expense(expense_id, user_id)
        self._logger.info("expense_removed", user_id=user_id, expense_id=expense_id)
        return expense
