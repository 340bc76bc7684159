"""Sync ledger package."""

from expense_sync.ledger.ledger import SyncLedger

__all__ = ["SyncLedger"]
