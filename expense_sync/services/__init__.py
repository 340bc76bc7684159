"""Services package."""

from expense_sync.services.storage import (
    ConnectionError,
    ExpenseStorageInterface,
    ForbiddenError,
    GoogleSheetsClient,
    GoogleSheetsStorage,
    InMemoryStorage,
    NotFoundError,
    StorageError,
    StorageGateway,
    SyncLogStorageInterface,
)

__all__ = [
    "ConnectionError",
    "ExpenseStorageInterface",
    "ForbiddenError",
    "GoogleSheetsClient",
    "GoogleSheetsStorage",
    "InMemoryStorage",
    "NotFoundError",
    "StorageError",
    "StorageGateway",
    "SyncLogStorageInterface",
]
