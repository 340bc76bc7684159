"""
Read-side Queries

Delta pull for clients coming back online, plus the listing and
summary views of the expense dashboard. Nothing here writes.
"""

from datetime import datetime
from typing import Optional

import structlog

from expense_sync.models.expense import EPOCH, Expense, ensure_utc
from expense_sync.models.query import (
    ExpensePage,
    ExpenseQuery,
    ExpenseSummary,
    MonthlyTotal,
    Pagination,
)
from expense_sync.services.storage import ExpenseStorageInterface


class ExpenseQueries:
    """Read-only queries over one user's expenses."""

    def __init__(self, storage: ExpenseStorageInterface):
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def updated_since(
        self,
        user_id: str,
        watermark: Optional[datetime] = None,
    ) -> list[Expense]:
        """
        Expenses modified strictly after `watermark`, newest first.

        A client that never synced passes None and gets everything.
        """
        since = ensure_utc(watermark) or EPOCH
        expenses = await self._storage.list_updated_since(user_id, since)
        self._logger.info(
            "updated_expenses_found",
            user_id=user_id,
            since=since.isoformat(),
            count=len(expenses),
        )
        return expenses

    async def list_expenses(self, user_id: str, query: ExpenseQuery) -> ExpensePage:
        """Filtered, paginated listing ordered by expense date, newest first."""
        expenses = await self._storage.list_expenses(
            user_id,
            category=query.category,
            date_from=query.start_date,
            date_to=query.end_date,
            limit=query.limit,
            offset=query.offset,
        )
        total = await self._storage.count_expenses(
            user_id,
            category=query.category,
            date_from=query.start_date,
            date_to=query.end_date,
        )
        self._logger.info(
            "expenses_listed",
            user_id=user_id,
            returned=len(expenses),
            total=total,
        )
        return ExpensePage(
            expenses=expenses,
            pagination=Pagination.build(query.page, query.limit, total),
        )

    async def summary(
        self,
        user_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> ExpenseSummary:
        """Totals, per-category breakdown and monthly trend for a date range."""
        start_date = ensure_utc(start_date)
        end_date = ensure_utc(end_date)

        totals = await self._storage.aggregate_amounts(user_id, start_date, end_date)
        breakdown = await self._storage.group_by_category(user_id, start_date, end_date)
        expenses = await self._storage.list_expenses(
            user_id, date_from=start_date, date_to=end_date
        )

        summary = ExpenseSummary(
            start_date=start_date,
            end_date=end_date,
            totals=totals,
            category_breakdown=breakdown,
            monthly_trend=MonthlyTotal.group(expenses),
        )
        self._logger.info(
            "summary_generated",
            user_id=user_id,
            total_count=totals.count,
            total_amount=str(totals.total_amount),
        )
        return summary
