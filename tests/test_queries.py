"""Tests for read-side queries."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from expense_sync.models import ExpenseQuery
from expense_sync.queries import ExpenseQueries
from tests.conftest import make_expense


def run(coro):
    return asyncio.run(coro)


def utc(year, month, day) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def queries(storage) -> ExpenseQueries:
    return ExpenseQueries(storage.expenses)


@pytest.fixture
def seeded(storage):
    rows = [
        ("Rent", Decimal("1000"), utc(2024, 1, 1)),
        ("Food", Decimal("20"), utc(2024, 1, 15)),
        ("Food", Decimal("40"), utc(2024, 2, 10)),
        ("Travel", Decimal("300"), utc(2024, 3, 5)),
    ]
    for category, amount, date in rows:
        run(storage.expenses.create_expense(
            make_expense(category=category, amount=amount, date=date)
        ))
    run(storage.expenses.create_expense(make_expense(user_id="bob", amount=Decimal("999"))))
    return storage


class TestUpdatedSince:
    """Tests for the delta pull."""

    def test_none_watermark_returns_everything(self, queries, seeded):
        assert len(run(queries.updated_since("alice"))) == 4

    def test_naive_watermark_is_read_as_utc(self, queries, seeded, clock):
        naive_now = clock.current.replace(tzinfo=None)
        assert run(queries.updated_since("alice", naive_now)) == []

    def test_results_newest_update_first(self, queries, seeded):
        expenses = run(queries.updated_since("alice"))
        stamps = [e.updated_at for e in expenses]
        assert stamps == sorted(stamps, reverse=True)


class TestListExpenses:
    """Tests for paginated listing."""

    def test_pagination(self, queries, seeded):
        page = run(queries.list_expenses("alice", ExpenseQuery(page=2, limit=3)))
        assert len(page.expenses) == 1
        assert page.expenses[0].category == "Rent"
        assert page.pagination.total == 4
        assert page.pagination.total_pages == 2

    def test_filters(self, queries, seeded):
        query = ExpenseQuery.model_validate({
            "category": "Food",
            "startDate": "2024-02-01T00:00:00Z",
        })
        page = run(queries.list_expenses("alice", query))
        assert [e.amount for e in page.expenses] == [Decimal("40")]
        assert page.pagination.total == 1

    def test_response_shape(self, queries, seeded):
        body = run(queries.list_expenses("alice", ExpenseQuery(limit=2))).to_response()
        assert len(body["expenses"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 4, "totalPages": 2}


class TestSummary:
    """Tests for the dashboard summary."""

    def test_full_range(self, queries, seeded):
        summary = run(queries.summary("alice"))
        body = summary.to_response()
        assert body["totalAmount"] == 1360.0
        assert body["totalCount"] == 4
        assert body["averageAmount"] == 340.0
        assert [c["category"] for c in body["categoryBreakdown"]] == ["Rent", "Travel", "Food"]
        assert [m["month"] for m in body["monthlyTrend"]] == ["2024-01", "2024-02", "2024-03"]
        assert body["monthlyTrend"][0]["totalAmount"] == 1020.0

    def test_date_range(self, queries, seeded):
        summary = run(queries.summary("alice", utc(2024, 1, 10), utc(2024, 2, 28)))
        assert summary.totals.count == 2
        assert summary.totals.total_amount == Decimal("60")
        assert [c.category for c in summary.category_breakdown] == ["Food"]

    def test_user_without_expenses(self, queries):
        body = run(queries.summary("nobody")).to_response()
        assert body["totalCount"] == 0
        assert body["totalAmount"] == 0.0
        assert body["categoryBreakdown"] == []
        assert body["monthlyTrend"] == []
