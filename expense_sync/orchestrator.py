"""
Main Orchestrator for Expense Sync

This module ties together all the components and defines the
entry points a transport layer (HTTP, RPC, CLI) calls into:
1. Sync (batch upload, delta pull, watermark, stats)
2. Expenses (create, list, summary, get, update, remove)

Every entry point takes an authenticated user id, validates the
request body and returns the response body as plain dicts.

DESIGN DECISION: No transport framework lives here. Request/response
shapes are kept in camelCase so any thin adapter can pass them through.
"""

from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import TypeAdapter

from expense_sync.config import configure_logging, get_settings
from expense_sync.expenses import ExpenseService
from expense_sync.ledger import SyncLedger
from expense_sync.models.expense import (
    BatchSummary,
    ExpenseChanges,
    ExpenseCreate,
    SyncBatchRequest,
)
from expense_sync.models.query import ExpenseQuery
from expense_sync.queries import ExpenseQueries
from expense_sync.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsStorage,
    InMemoryStorage,
    StorageGateway,
)
from expense_sync.sync import Reconciler


_OPTIONAL_DATETIME = TypeAdapter(Optional[datetime])


class BatchTooLargeError(ValueError):
    """A sync batch has more operations than the configured maximum."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Sync batch of {size} operations exceeds the limit of {limit}")


class SyncFlow:
    """
    Orchestrates the sync endpoints.

    Flow for a batch:
    1. Validate body -> SyncBatchRequest
    2. Enforce max batch size
    3. Reconcile items in order
    4. Summarize per-item outcomes
    """

    def __init__(
        self,
        reconciler: Reconciler,
        ledger: SyncLedger,
        queries: ExpenseQueries,
        max_batch_size: int = 500,
    ):
        self._reconciler = reconciler
        self._ledger = ledger
        self._queries = queries
        self._max_batch_size = max_batch_size
        self._logger = structlog.get_logger(__name__)

    async def sync_expenses(self, user_id: str, body: dict[str, Any]) -> dict:
        """
        Reconcile a batch.

        Returns:
            {"results": [...], "summary": {"total", "successful", "failed"}}

        Raises:
            pydantic.ValidationError: If the body is not {"expenses": [...]}
            BatchTooLargeError: If the batch exceeds the configured maximum
        """
        request = SyncBatchRequest.model_validate(body)
        self._logger.info(
            "sync_expenses_requested",
            user_id=user_id,
            count=len(request.expenses),
        )
        if len(request.expenses) > self._max_batch_size:
            raise BatchTooLargeError(len(request.expenses), self._max_batch_size)

        results = await self._reconciler.sync_batch(user_id, request.expenses)
        summary = BatchSummary.from_results(results)

        return {
            "results": [r.to_response() for r in results],
            "summary": summary.model_dump(),
        }

    async def get_updated_expenses(
        self,
        user_id: str,
        last_sync_time: Optional[str] = None,
    ) -> dict:
        """Delta pull. `last_sync_time` is an ISO timestamp; omitted means everything."""
        self._logger.info(
            "updated_expenses_requested",
            user_id=user_id,
            last_sync_time=last_sync_time,
        )
        watermark = _OPTIONAL_DATETIME.validate_python(last_sync_time or None)
        expenses = await self._queries.updated_since(user_id, watermark)
        return {"expenses": [e.to_response() for e in expenses]}

    async def get_last_sync_time(self, user_id: str) -> dict:
        self._logger.info("last_sync_requested", user_id=user_id)
        sync_time = await self._ledger.last_sync_time(user_id)
        return {"lastSyncTime": sync_time.isoformat()}

    async def get_sync_stats(self, user_id: str) -> dict:
        self._logger.info("sync_stats_requested", user_id=user_id)
        stats = await self._ledger.stats(user_id)
        return stats.to_response()


class ExpenseFlow:
    """Orchestrates the expense endpoints."""

    def __init__(
        self,
        service: ExpenseService,
        queries: ExpenseQueries,
        default_page_limit: int = 50,
    ):
        self._service = service
        self._queries = queries
        self._default_page_limit = default_page_limit
        self._logger = structlog.get_logger(__name__)

    async def create_expense(self, user_id: str, body: dict[str, Any]) -> dict:
        data = ExpenseCreate.model_validate(body)
        expense = await self._service.create(user_id, data)
        return expense.to_response()

    async def list_expenses(
        self,
        user_id: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict:
        params = {"limit": self._default_page_limit, **(params or {})}
        self._logger.info("expenses_requested", user_id=user_id, params=params)
        query = ExpenseQuery.model_validate(params)
        page = await self._queries.list_expenses(user_id, query)
        return page.to_response()

    async def get_summary(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> dict:
        summary = await self._queries.summary(
            user_id,
            _OPTIONAL_DATETIME.validate_python(start_date or None),
            _OPTIONAL_DATETIME.validate_python(end_date or None),
        )
        return summary.to_response()

    async def get_expense(self, user_id: str, expense_id: str) -> dict:
        expense = await self._service.find_one(expense_id, user_id)
        return expense.to_response()

    async def update_expense(
        self,
        user_id: str,
        expense_id: str,
        body: dict[str, Any],
    ) -> dict:
        changes = ExpenseChanges.model_validate(body)
        expense = await self._service.update(expense_id, user_id, changes)
        return expense.to_response()

    async def remove_expense(self, user_id: str, expense_id: str) -> dict:
        expense = await self._service.remove(expense_id, user_id)
        return expense.to_response()


def create_storage(backend: Optional[str] = None) -> StorageGateway:
    """Build the configured storage backend."""
    backend = backend or get_settings().storage.backend
    if backend == "google_sheets":
        return GoogleSheetsStorage(GoogleSheetsClient())
    return InMemoryStorage()


def create_app_components(
    storage: Optional[StorageGateway] = None,
) -> tuple[SyncFlow, ExpenseFlow, StorageGateway]:
    """
    Factory function to create all application components.

    Args:
        storage: Storage gateway to use. If None, the backend
                 selected by STORAGE_BACKEND is built.

    Returns:
        (sync_flow, expense_flow, storage)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)
    sync_settings = settings.sync

    storage = storage or create_storage()

    ledger = SyncLedger(storage)
    queries = ExpenseQueries(storage.expenses)
    reconciler = Reconciler(
        storage,
        ledger=ledger,
        default_currency=sync_settings.default_currency,
        entity_type=sync_settings.entity_type,
    )

    sync_flow = SyncFlow(
        reconciler=reconciler,
        ledger=ledger,
        queries=queries,
        max_batch_size=sync_settings.max_batch_size,
    )
    expense_flow = ExpenseFlow(
        service=ExpenseService(storage.expenses),
        queries=queries,
        default_page_limit=sync_settings.default_page_limit,
    )

    return sync_flow, expense_flow, storage
