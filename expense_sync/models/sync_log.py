"""
Sync Ledger Models

Every operation a sync pass applies leaves one SyncLogEntry behind.
The newest entry per user is that user's sync watermark.

DESIGN DECISION: The ledger is append-only. Entries are never modified or deleted.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from expense_sync.models.expense import SyncOperationKind, ensure_utc, utcnow


ENTITY_TYPE_EXPENSE = "EXPENSE"


class SyncLogEntry(BaseModel):
    """A single applied sync operation."""

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique entry identifier"
    )
    user_id: str = Field(..., min_length=1)
    operation: SyncOperationKind
    entity_id: str = Field(
        default="unknown",
        description="Server id, else client-local id, else 'unknown'"
    )
    entity_type: str = Field(default=ENTITY_TYPE_EXPENSE)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the operation was recorded (UTC)"
    )

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "entry_id": self.id,
            "user_id": self.user_id,
            "operation": self.operation.value,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [id, user_id, operation, entity_id, entity_type, timestamp]
        """
        return [
            self.id,
            self.user_id,
            self.operation.value,
            self.entity_id,
            self.entity_type,
            self.timestamp.isoformat(),
        ]


class SyncStats(BaseModel):
    """Per-user sync overview."""

    total_syncs: int = Field(ge=0, description="Number of ledger entries")
    last_sync_time: Optional[datetime] = Field(
        default=None,
        description="Newest ledger entry, None if the user never synced"
    )
    pending_sync: int = Field(
        ge=0,
        description="Expenses never confirmed by a sync pass"
    )

    def to_response(self) -> dict:
        return {
            "totalSyncs": self.total_syncs,
            "lastSyncTime": self.last_sync_time.isoformat() if self.last_sync_time else None,
            "pendingSync": self.pending_sync,
        }
