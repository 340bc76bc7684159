"""Sync operation validation package."""

from expense_sync.validation.validator import InvalidOperationError, SyncOperationValidator

__all__ = ["InvalidOperationError", "SyncOperationValidator"]
