"""
Listing and Summary Models

Shapes for the read side: paginated listings and the
category / month summary shown on the client dashboard.
"""

import math
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_sync.models.expense import Expense, ensure_utc


class ExpenseQuery(BaseModel):
    """Filters and pagination for listing expenses."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    category: Optional[str] = None
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=1000)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
        )

    def to_response(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


class ExpensePage(BaseModel):
    expenses: list[Expense]
    pagination: Pagination

    def to_response(self) -> dict:
        return {
            "expenses": [e.to_response() for e in self.expenses],
            "pagination": self.pagination.to_response(),
        }


class AmountAggregate(BaseModel):
    """Sum / count / average over a set of expenses."""

    total_amount: Decimal = Decimal("0")
    count: int = 0
    average_amount: Decimal = Decimal("0")

    @classmethod
    def from_expenses(cls, expenses: Iterable[Expense]) -> "AmountAggregate":
        amounts = [e.amount for e in expenses]
        if not amounts:
            return cls()
        total = sum(amounts, Decimal("0"))
        return cls(
            total_amount=total,
            count=len(amounts),
            average_amount=total / len(amounts),
        )


class CategoryTotal(BaseModel):
    category: str
    total_amount: Decimal
    count: int

    @classmethod
    def group(cls, expenses: Iterable[Expense]) -> list["CategoryTotal"]:
        """Totals per category, largest total first."""
        groups: dict[str, list[Decimal]] = {}
        for expense in expenses:
            groups.setdefault(expense.category, []).append(expense.amount)

        totals = [
            cls(
                category=category,
                total_amount=sum(amounts, Decimal("0")),
                count=len(amounts),
            )
            for category, amounts in groups.items()
        ]
        totals.sort(key=lambda t: t.total_amount, reverse=True)
        return totals

    def to_response(self) -> dict:
        return {
            "category": self.category,
            "totalAmount": float(self.total_amount),
            "count": self.count,
        }


class MonthlyTotal(BaseModel):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    total_amount: Decimal
    count: int

    @property
    def first_day(self) -> datetime:
        year, month = (int(part) for part in self.month.split("-"))
        return datetime(year, month, 1, tzinfo=timezone.utc)

    @classmethod
    def group(cls, expenses: Iterable[Expense]) -> list["MonthlyTotal"]:
        """Totals per calendar month (YYYY-MM), oldest first."""
        ordered = sorted(expenses, key=lambda e: e.date)
        groups: "OrderedDict[str, list[Decimal]]" = OrderedDict()
        for expense in ordered:
            groups.setdefault(expense.date.strftime("%Y-%m"), []).append(expense.amount)

        return [
            cls(
                month=month,
                total_amount=sum(amounts, Decimal("0")),
                count=len(amounts),
            )
            for month, amounts in groups.items()
        ]

    def to_response(self) -> dict:
        return {
            "month": self.month,
            "date": self.first_day.isoformat(),
            "totalAmount": float(self.total_amount),
            "count": self.count,
        }


class ExpenseSummary(BaseModel):
    """Dashboard summary for a date range."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    totals: AmountAggregate
    category_breakdown: list[CategoryTotal] = Field(default_factory=list)
    monthly_trend: list[MonthlyTotal] = Field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "totalAmount": float(self.totals.total_amount),
            "totalCount": self.totals.count,
            "averageAmount": float(self.totals.average_amount),
            "categoryBreakdown": [c.to_response() for c in self.category_breakdown],
            "monthlyTrend": [m.to_response() for m in self.monthly_trend],
        }
