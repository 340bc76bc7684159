"""Query execution package."""

from expense_sync.queries.executor import ExpenseQueries

__all__ = ["ExpenseQueries"]
