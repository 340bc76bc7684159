"""Sync reconciliation package."""

from expense_sync.sync.reconciler import Reconciler

__all__ = ["Reconciler"]
