"""
Sync Ledger

DESIGN DECISION: Every operation a sync pass applies is recorded.
This provides:
1. The client's next sync watermark (newest entry per user)
2. Sync statistics (entry count, records still pending)
3. A history of what each batch changed

Unlike a best-effort audit log, a ledger write failure is NOT swallowed:
the reconciler writes the entry in the same transaction as the change,
so the error must reach it to roll the change back.
"""

from datetime import datetime
from typing import Callable, Optional

import structlog

from expense_sync.models.expense import EPOCH, SyncOperationKind, utcnow
from expense_sync.models.sync_log import ENTITY_TYPE_EXPENSE, SyncLogEntry, SyncStats
from expense_sync.services.storage import StorageGateway


class SyncLedger:
    """
    Append-only record of applied sync operations, per user.

    Entries go to storage and are mirrored to the structured log.
    """

    def __init__(
        self,
        storage: StorageGateway,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._storage = storage
        self._clock = clock
        self._logger = structlog.get_logger(__name__)

    async def record_operation(
        self,
        user_id: str,
        kind: SyncOperationKind,
        entity_id: Optional[str],
        entity_type: str = ENTITY_TYPE_EXPENSE,
    ) -> SyncLogEntry:
        """
        Append one entry.

        Raises:
            StorageError: If the entry could not be stored
        """
        entry = SyncLogEntry(
            user_id=user_id,
            operation=kind,
            entity_id=entity_id or "unknown",
            entity_type=entity_type,
            timestamp=self._clock(),
        )
        await self._storage.sync_log.append_entry(entry)
        self._logger.info("sync_operation_recorded", **entry.to_log_dict())
        return entry

    async def last_sync_time(self, user_id: str) -> datetime:
        """Timestamp of the user's newest entry, or the epoch if there is none."""
        latest = await self._storage.sync_log.get_latest_entry(user_id)
        sync_time = latest.timestamp if latest else EPOCH
        self._logger.debug(
            "last_sync_time",
            user_id=user_id,
            last_sync_time=sync_time.isoformat(),
        )
        return sync_time

    async def stats(self, user_id: str) -> SyncStats:
        total = await self._storage.sync_log.count_entries(user_id)
        latest = await self._storage.sync_log.get_latest_entry(user_id)
        pending = await self._storage.expenses.count_expenses(user_id, unsynced_only=True)
        return SyncStats(
            total_syncs=total,
            last_sync_time=latest.timestamp if latest else None,
            pending_sync=pending,
        )

    async def history(self, user_id: str, limit: int = 100) -> list[SyncLogEntry]:
        """Most recent entries first."""
        return await self._storage.sync_log.get_recent_entries(user_id, limit=limit)
