"""
Data Models Package

This package contains all Pydantic models used by Expense Sync.
All data flowing through the system must conform to these schemas.
"""

from expense_sync.models.expense import (
    DEFAULT_CURRENCY,
    EPOCH,
    BatchSummary,
    CreateExpenseCommand,
    DeleteExpenseCommand,
    Expense,
    ExpenseChanges,
    ExpenseCreate,
    OperationResult,
    SyncBatchRequest,
    SyncCommand,
    SyncErrorCode,
    SyncOperation,
    SyncOperationKind,
    UpdateExpenseCommand,
    ensure_utc,
    utcnow,
)
from expense_sync.models.query import (
    AmountAggregate,
    CategoryTotal,
    ExpensePage,
    ExpenseQuery,
    ExpenseSummary,
    MonthlyTotal,
    Pagination,
)
from expense_sync.models.sync_log import (
    ENTITY_TYPE_EXPENSE,
    SyncLogEntry,
    SyncStats,
)
from expense_sync.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Expense models
    "DEFAULT_CURRENCY",
    "EPOCH",
    "Expense",
    "ExpenseChanges",
    "ExpenseCreate",
    "ensure_utc",
    "utcnow",
    # Sync models
    "BatchSummary",
    "CreateExpenseCommand",
    "DeleteExpenseCommand",
    "OperationResult",
    "SyncBatchRequest",
    "SyncCommand",
    "SyncErrorCode",
    "SyncOperation",
    "SyncOperationKind",
    "UpdateExpenseCommand",
    # Ledger models
    "ENTITY_TYPE_EXPENSE",
    "SyncLogEntry",
    "SyncStats",
    # Query models
    "AmountAggregate",
    "CategoryTotal",
    "ExpensePage",
    "ExpenseQuery",
    "ExpenseSummary",
    "MonthlyTotal",
    "Pagination",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
