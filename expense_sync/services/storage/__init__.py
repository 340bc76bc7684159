"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a Google Sheets backend.
"""

from expense_sync.services.storage.interface import (
    ConnectionError,
    ExpenseStorageInterface,
    ForbiddenError,
    NotFoundError,
    StorageError,
    StorageGateway,
    SyncLogStorageInterface,
)
from expense_sync.services.storage.memory import (
    InMemoryExpenseStorage,
    InMemoryStorage,
    InMemorySyncLogStorage,
)
from expense_sync.services.storage.google_sheets import (
    CompensationJournal,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsStorage,
    GoogleSheetsSyncLogStorage,
)

__all__ = [
    # Interfaces
    "ExpenseStorageInterface",
    "StorageGateway",
    "SyncLogStorageInterface",
    # Exceptions
    "ConnectionError",
    "ForbiddenError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryExpenseStorage",
    "InMemoryStorage",
    "InMemorySyncLogStorage",
    # Google Sheets implementation
    "CompensationJournal",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsStorage",
    "GoogleSheetsSyncLogStorage",
]
