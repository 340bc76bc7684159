"""Tests for the in-memory storage backend."""

import asyncio
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from expense_sync.models import SyncLogEntry, SyncOperationKind
from expense_sync.services.storage import ForbiddenError, NotFoundError
from tests.conftest import make_expense


def run(coro):
    return asyncio.run(coro)


class TestInMemoryExpenseStorage:
    """Tests for InMemoryExpenseStorage."""

    def test_create_stamps_timestamps_from_clock(self, storage, clock):
        created = run(storage.expenses.create_expense(make_expense()))
        assert created.created_at == clock.current
        assert created.updated_at == clock.current
        assert run(storage.expenses.get_expense_by_id(created.id)) == created

    def test_update_by_owner(self, storage):
        created = run(storage.expenses.create_expense(make_expense()))
        updated = run(storage.expenses.update_expense(
            created.id, "alice", {"title": "Dinner", "amount": Decimal("30")}
        ))
        assert updated.title == "Dinner"
        assert updated.amount == Decimal("30")
        assert updated.category == "Food"
        assert updated.updated_at > created.updated_at

    def test_update_rejects_other_owner(self, storage):
        created = run(storage.expenses.create_expense(make_expense()))
        with pytest.raises(ForbiddenError):
            run(storage.expenses.update_expense(created.id, "mallory", {"title": "Mine"}))
        assert run(storage.expenses.get_expense_by_id(created.id)).title == "Lunch"

    def test_update_missing(self, storage):
        with pytest.raises(NotFoundError):
            run(storage.expenses.update_expense("nope", "alice", {"title": "x"}))

    def test_update_cannot_change_owner(self, storage):
        created = run(storage.expenses.create_expense(make_expense()))
        updated = run(storage.expenses.update_expense(created.id, "alice", {"user_id": "bob"}))
        assert updated.user_id == "alice"

    def test_delete_returns_old_record(self, storage):
        created = run(storage.expenses.create_expense(make_expense()))
        removed = run(storage.expenses.delete_expense(created.id, "alice"))
        assert removed.id == created.id
        assert run(storage.expenses.get_expense_by_id(created.id)) is None

    def test_delete_rejects_other_owner(self, storage):
        created = run(storage.expenses.create_expense(make_expense()))
        with pytest.raises(ForbiddenError):
            run(storage.expenses.delete_expense(created.id, "mallory"))
        assert run(storage.expenses.get_expense_by_id(created.id)) is not None

    def test_list_is_scoped_filtered_and_newest_first(self, storage):
        for day, category in ((1, "Food"), (3, "Food"), (2, "Travel")):
            run(storage.expenses.create_expense(make_expense(
                category=category,
                date=datetime(2024, 2, day, tzinfo=timezone.utc),
            )))
        run(storage.expenses.create_expense(make_expense(user_id="bob")))

        listed = run(storage.expenses.list_expenses("alice"))
        assert [e.date.day for e in listed] == [3, 2, 1]

        food = run(storage.expenses.list_expenses("alice", category="Food"))
        assert len(food) == 2

        ranged = run(storage.expenses.list_expenses(
            "alice",
            date_from=datetime(2024, 2, 2, tzinfo=timezone.utc),
            date_to=datetime(2024, 2, 3, tzinfo=timezone.utc),
        ))
        assert [e.date.day for e in ranged] == [3, 2]

        page = run(storage.expenses.list_expenses("alice", limit=1, offset=1))
        assert [e.date.day for e in page] == [2]

    def test_count_unsynced_only(self, storage):
        run(storage.expenses.create_expense(make_expense()))
        run(storage.expenses.create_expense(make_expense(
            synced_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )))
        assert run(storage.expenses.count_expenses("alice")) == 2
        assert run(storage.expenses.count_expenses("alice", unsynced_only=True)) == 1

    def test_updated_since_is_strict(self, storage):
        first = run(storage.expenses.create_expense(make_expense(title="First")))
        second = run(storage.expenses.create_expense(make_expense(title="Second")))

        newer = run(storage.expenses.list_updated_since("alice", first.updated_at))
        assert [e.id for e in newer] == [second.id]

        everything = run(storage.expenses.list_updated_since(
            "alice", datetime(1970, 1, 1, tzinfo=timezone.utc)
        ))
        assert [e.id for e in everything] == [second.id, first.id]

    def test_aggregates(self, storage):
        run(storage.expenses.create_expense(make_expense(amount=Decimal("10"), category="Food")))
        run(storage.expenses.create_expense(make_expense(amount=Decimal("30"), category="Rent")))
        totals = run(storage.expenses.aggregate_amounts("alice"))
        assert totals.total_amount == Decimal("40")
        assert totals.average_amount == Decimal("20")
        categories = run(storage.expenses.group_by_category("alice"))
        assert [c.category for c in categories] == ["Rent", "Food"]


class TestInMemorySyncLog:
    """Tests for InMemorySyncLogStorage."""

    def test_latest_and_recent(self, storage):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        older = SyncLogEntry(user_id="alice", operation=SyncOperationKind.CREATE, timestamp=ts)
        newer = SyncLogEntry(
            user_id="alice",
            operation=SyncOperationKind.DELETE,
            timestamp=ts.replace(hour=5),
        )
        other = SyncLogEntry(user_id="bob", operation=SyncOperationKind.CREATE, timestamp=ts)
        for entry in (newer, older, other):
            run(storage.sync_log.append_entry(entry))

        assert run(storage.sync_log.get_latest_entry("alice")) == newer
        assert run(storage.sync_log.count_entries("alice")) == 2
        assert run(storage.sync_log.get_recent_entries("alice", limit=1)) == [newer]
        assert run(storage.sync_log.get_latest_entry("carol")) is None

    def test_equal_timestamps_last_appended_wins(self, storage):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        first = SyncLogEntry(user_id="alice", operation=SyncOperationKind.CREATE, timestamp=ts)
        second = SyncLogEntry(user_id="alice", operation=SyncOperationKind.UPDATE, timestamp=ts)
        run(storage.sync_log.append_entry(first))
        run(storage.sync_log.append_entry(second))
        assert run(storage.sync_log.get_latest_entry("alice")) == second


class TestInMemoryTransaction:
    """Tests for InMemoryStorage.transaction()."""

    def test_commit_keeps_writes(self, storage):
        async def scenario():
            async with storage.transaction():
                expense = await storage.expenses.create_expense(make_expense())
                await storage.sync_log.append_entry(SyncLogEntry(
                    user_id="alice",
                    operation=SyncOperationKind.CREATE,
                    entity_id=expense.id,
                ))
            return expense

        expense = run(scenario())
        assert run(storage.expenses.get_expense_by_id(expense.id)) is not None
        assert run(storage.sync_log.count_entries("alice")) == 1

    def test_failure_restores_both_stores(self, storage):
        kept = run(storage.expenses.create_expense(make_expense(title="Kept")))

        async def scenario():
            async with storage.transaction():
                await storage.expenses.create_expense(make_expense(title="Dropped"))
                await storage.expenses.update_expense(kept.id, "alice", {"title": "Changed"})
                await storage.sync_log.append_entry(SyncLogEntry(
                    user_id="alice",
                    operation=SyncOperationKind.CREATE,
                ))
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run(scenario())

        listed = run(storage.expenses.list_expenses("alice"))
        assert [e.title for e in listed] == ["Kept"]
        assert run(storage.sync_log.count_entries("alice")) == 0
