"""
Batch Reconciler

Applies a client's offline operations to server state.

Flow, per operation, strictly in input order:
1. Parse   -> SyncOperation (a malformed item fails alone)
2. Check   -> SyncOperationValidator
3. Resolve -> CreateExpenseCommand | UpdateExpenseCommand | DeleteExpenseCommand
4. Apply   -> mutation + ledger entry inside one storage transaction
5. Report  -> OperationResult

GUARANTEES:
- One result per input operation, same order, same length
- A failed item never aborts or rolls back earlier items
- A ledger entry exists for an item if and only if its change was applied
- Items run one at a time; a batch is never parallelized or reordered
"""

from datetime import datetime
from typing import Any, Callable, Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from expense_sync.ledger import SyncLedger
from expense_sync.models.expense import (
    DEFAULT_CURRENCY,
    CreateExpenseCommand,
    DeleteExpenseCommand,
    OperationResult,
    SyncCommand,
    SyncErrorCode,
    SyncOperation,
    UpdateExpenseCommand,
    utcnow,
)
from expense_sync.models.sync_log import ENTITY_TYPE_EXPENSE
from expense_sync.services.storage import (
    ForbiddenError,
    NotFoundError,
    StorageGateway,
)
from expense_sync.validation import InvalidOperationError, SyncOperationValidator


RawOperation = Union[SyncOperation, dict[str, Any]]


class Reconciler:
    """
    Reconciles one user's batch of offline operations.

    The caller supplies an already-authenticated user id;
    it is trusted as-is.
    """

    def __init__(
        self,
        storage: StorageGateway,
        ledger: Optional[SyncLedger] = None,
        validator: Optional[SyncOperationValidator] = None,
        default_currency: str = DEFAULT_CURRENCY,
        entity_type: str = ENTITY_TYPE_EXPENSE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._storage = storage
        self._clock = clock
        self._ledger = ledger or SyncLedger(storage, clock=clock)
        self._validator = validator or SyncOperationValidator()
        self._default_currency = default_currency
        self._entity_type = entity_type
        self._logger = structlog.get_logger(__name__)

    async def sync_batch(
        self,
        user_id: str,
        operations: Sequence[RawOperation],
    ) -> list[OperationResult]:
        """
        Apply every operation and return one result per operation.

        Items are awaited one after another so that, e.g., an UPDATE
        followed by a DELETE of the same id behaves as written.
        """
        log = self._logger.bind(user_id=user_id)
        log.info("sync_batch_started", operation_count=len(operations))

        results = []
        for index, raw in enumerate(operations):
            results.append(await self._apply(user_id, index, raw))

        successful = sum(1 for r in results if r.success)
        log.info(
            "sync_batch_completed",
            successful=successful,
            failed=len(results) - successful,
        )
        return results

    async def _apply(self, user_id: str, index: int, raw: RawOperation) -> OperationResult:
        """Apply one operation. Never raises."""
        if isinstance(raw, SyncOperation):
            wire, local_id = raw.to_wire(), raw.local_id
        else:
            wire, local_id = dict(raw), raw.get("localId")
            # Unvalidated input: echo any localId back as text
            if local_id is not None and not isinstance(local_id, str):
                local_id = str(local_id)

        try:
            operation = raw if isinstance(raw, SyncOperation) else SyncOperation.model_validate(raw)
            self._validator.validate_or_raise(operation)
            command = operation.to_command(self._default_currency)

            async with self._storage.transaction():
                data = await self._execute(user_id, command)
                await self._ledger.record_operation(
                    user_id,
                    operation.operation,
                    operation.entity_id,
                    self._entity_type,
                )

            return OperationResult.succeeded(data, local_id)

        except (InvalidOperationError, ValidationError) as e:
            return self._failure(user_id, index, str(e), SyncErrorCode.INVALID, wire, local_id)
        except NotFoundError as e:
            return self._failure(user_id, index, str(e), SyncErrorCode.NOT_FOUND, wire, local_id)
        except ForbiddenError as e:
            return self._failure(user_id, index, str(e), SyncErrorCode.FORBIDDEN, wire, local_id)
        except Exception as e:
            # Storage faults (and anything unexpected) fail this item only
            self._logger.exception("sync_item_storage_failure", user_id=user_id, index=index)
            return self._failure(user_id, index, str(e), SyncErrorCode.STORAGE_ERROR, wire, local_id)

    async def _execute(self, user_id: str, command: SyncCommand) -> dict:
        """Run a resolved command against storage and return the result payload."""
        now = self._clock()
        expenses = self._storage.expenses

        match command:
            case CreateExpenseCommand(data=data):
                self._logger.debug("sync_create", user_id=user_id, title=data.title)
                expense = await expenses.create_expense(
                    data.to_expense(user_id, synced_at=now)
                )
                return expense.to_response()

            case UpdateExpenseCommand(expense_id=expense_id, changes=changes):
                self._logger.debug("sync_update", user_id=user_id, expense_id=expense_id)
                expense = await expenses.update_expense(
                    expense_id,
                    user_id,
                    {**changes.as_update(), "synced_at": now},
                )
                return expense.to_response()

            case DeleteExpenseCommand(expense_id=expense_id):
                self._logger.debug("sync_delete", user_id=user_id, expense_id=expense_id)
                await expenses.delete_expense(expense_id, user_id)
                return {"id": expense_id, "deleted": True}

            case _:
                raise TypeError(f"Unhandled sync command: {type(command).__name__}")

    def _failure(
        self,
        user_id: str,
        index: int,
        message: str,
        code: SyncErrorCode,
        wire: dict,
        local_id: Optional[str],
    ) -> OperationResult:
        self._logger.warning(
            "sync_item_failed",
            user_id=user_id,
            index=index,
            entity_id=wire.get("id") or local_id,
            error_code=code.value,
            error=message,
        )
        return OperationResult.failed(message, code, wire, local_id)
