"""
Core Data Models for Expense Sync

These models define the strict schemas for expenses and for the
operations clients send when they come back online.

DESIGN DECISION: All timestamps are timezone-aware UTC.
Clients send ISO strings with or without an offset; naive values are
read as UTC so watermark comparisons never mix naive and aware datetimes.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_CURRENCY = "USD"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class SyncOperationKind(str, Enum):
    """What a client wants done to one expense."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SyncErrorCode(str, Enum):
    """
    Why a sync item failed.

    Clients use this to decide what to do with the local record:
    NOT_FOUND / FORBIDDEN mean the server copy is gone or not theirs,
    INVALID means the local record needs fixing, STORAGE_ERROR is worth a retry.
    """
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID = "invalid"
    STORAGE_ERROR = "storage_error"


# =============================================================================
# EXPENSE RECORD
# =============================================================================

class Expense(BaseModel):
    """
    A stored expense.

    Every expense has exactly one owner (user_id). It is only ever
    returned to, or changed on behalf of, that owner.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(
        default_factory=_new_id,
        description="Server-assigned expense ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )

    # Payload
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in the expense currency"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    currency: str = Field(
        default=DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
    )
    date: datetime = Field(
        default_factory=utcnow,
        description="When the expense happened"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
    )

    # Sync bookkeeping
    synced_at: Optional[datetime] = Field(
        default=None,
        description="Last time a sync pass confirmed this record; None = never"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Last modification, maintained by storage"
    )

    @field_validator('date', 'synced_at', 'created_at', 'updated_at')
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def is_pending_sync(self) -> bool:
        return self.synced_at is None

    def to_response(self) -> dict:
        """Wire representation (camelCase, ISO timestamps)."""
        return {
            "id": self.id,
            "title": self.title,
            "amount": float(self.amount),
            "category": self.category,
            "currency": self.currency,
            "date": self.date.isoformat(),
            "description": self.description,
            "userId": self.user_id,
            "syncedAt": self.synced_at.isoformat() if self.synced_at else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class ExpenseCreate(BaseModel):
    """Fields a client supplies to create an expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)
    date: Optional[datetime] = Field(
        default=None,
        description="Defaults to the time of creation"
    )
    description: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    def to_expense(self, user_id: str, synced_at: Optional[datetime]) -> Expense:
        now = synced_at or utcnow()
        return Expense(
            user_id=user_id,
            title=self.title,
            amount=self.amount,
            category=self.category,
            currency=self.currency,
            date=self.date or now,
            description=self.description,
            synced_at=synced_at,
        )


class ExpenseChanges(BaseModel):
    """
    A partial set of field changes.

    Only fields that were explicitly provided are applied, so a client can
    clear `description` by sending null but leaves it alone by omitting it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    synced_at: Optional[datetime] = None

    @field_validator('date', 'synced_at')
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    def as_update(self) -> dict[str, Any]:
        """Only the explicitly set fields. Non-nullable fields never become None."""
        changes = self.model_dump(exclude_unset=True)
        for key in ("title", "amount", "category", "currency", "date"):
            if key in changes and changes[key] is None:
                del changes[key]
        return changes


# =============================================================================
# SYNC OPERATIONS (client -> server)
# =============================================================================

class CreateExpenseCommand(BaseModel):
    """Create a new expense owned by the caller."""
    model_config = ConfigDict(frozen=True)

    data: ExpenseCreate


class UpdateExpenseCommand(BaseModel):
    """Overwrite an existing expense owned by the caller."""
    model_config = ConfigDict(frozen=True)

    expense_id: str
    changes: ExpenseChanges


class DeleteExpenseCommand(BaseModel):
    """Remove an existing expense owned by the caller."""
    model_config = ConfigDict(frozen=True)

    expense_id: str


SyncCommand = Union[CreateExpenseCommand, UpdateExpenseCommand, DeleteExpenseCommand]


class SyncOperation(BaseModel):
    """
    One operation as submitted by a client.

    This is the loose wire shape; field rules are checked by
    SyncOperationValidator and the operation is then resolved into
    exactly one SyncCommand by `to_command`.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )

    id: Optional[str] = Field(
        default=None,
        description="Server ID; required for UPDATE/DELETE to target a record"
    )
    title: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    currency: Optional[str] = None
    date: Optional[str] = Field(
        default=None,
        description="ISO 8601 timestamp"
    )
    description: Optional[str] = None
    operation: SyncOperationKind
    local_id: Optional[str] = Field(
        default=None,
        alias="localId",
        description="Client-side ID for records created offline"
    )

    @property
    def targets_existing(self) -> bool:
        """UPDATE/DELETE only reach a stored record when an id is given."""
        return bool(self.id) and self.operation in (
            SyncOperationKind.UPDATE,
            SyncOperationKind.DELETE,
        )

    @property
    def entity_id(self) -> str:
        """ID written to the ledger: server id, then local id, then 'unknown'."""
        return self.id or self.local_id or "unknown"

    def to_command(self, default_currency: str = DEFAULT_CURRENCY) -> SyncCommand:
        """
        Resolve into a typed command.

        UPDATE or DELETE without an id fall through to CREATE.

        Raises:
            pydantic.ValidationError: if payload fields are missing or invalid
        """
        if self.operation is SyncOperationKind.DELETE and self.id:
            return DeleteExpenseCommand(expense_id=self.id)

        if self.operation is SyncOperationKind.UPDATE and self.id:
            changes: dict[str, Any] = {
                "title": self.title,
                "amount": self.amount,
                "category": self.category,
                "description": self.description,
            }
            if self.currency:
                changes["currency"] = self.currency
            if self.date:
                changes["date"] = self.date
            return UpdateExpenseCommand(
                expense_id=self.id,
                changes=ExpenseChanges.model_validate(changes),
            )

        data: dict[str, Any] = {
            "title": self.title,
            "amount": self.amount,
            "category": self.category,
            "currency": self.currency or default_currency,
            "description": self.description,
        }
        if self.date:
            data["date"] = self.date
        return CreateExpenseCommand(data=ExpenseCreate.model_validate(data))

    def to_wire(self) -> dict:
        """Echo of the operation for failure results."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SyncBatchRequest(BaseModel):
    """
    Body of a sync request.

    Items are kept raw here; each one is parsed on its own by the
    reconciler so a malformed item fails alone.
    """

    expenses: list[dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# SYNC RESULTS (server -> client)
# =============================================================================

class OperationResult(BaseModel):
    """Outcome of one sync item, correlated back through local_id."""

    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[SyncErrorCode] = None
    operation: Optional[dict[str, Any]] = None
    local_id: Optional[str] = None

    @classmethod
    def succeeded(cls, data: dict, local_id: Optional[str]) -> "OperationResult":
        return cls(success=True, data=data, local_id=local_id)

    @classmethod
    def failed(
        cls,
        error: str,
        error_code: SyncErrorCode,
        operation: Optional[dict],
        local_id: Optional[str],
    ) -> "OperationResult":
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            operation=operation,
            local_id=local_id,
        )

    def to_response(self) -> dict:
        if self.success:
            return {
                "success": True,
                "data": self.data,
                "localId": self.local_id,
            }
        return {
            "success": False,
            "error": self.error,
            "errorCode": self.error_code.value if self.error_code else None,
            "operation": self.operation,
            "localId": self.local_id,
        }


class BatchSummary(BaseModel):
    """Counts derived from per-item results."""

    total: int = Field(ge=0)
    successful: int = Field(ge=0)
    failed: int = Field(ge=0)

    @classmethod
    def from_results(cls, results: list[OperationResult]) -> "BatchSummary":
        successful = sum(1 for r in results if r.success)
        return cls(
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
        )
