"""Expense CRUD package."""

from expense_sync.expenses.service import ExpenseService

__all__ = ["ExpenseService"]
