"""Tests for sync operation validation."""

import pytest
from decimal import Decimal

from expense_sync.models import SyncOperation
from expense_sync.validation import InvalidOperationError, SyncOperationValidator


def _op(**fields) -> SyncOperation:
    base = {
        "operation": "CREATE",
        "title": "Coffee",
        "amount": Decimal("4.50"),
        "category": "Food",
    }
    base.update(fields)
    return SyncOperation.model_validate(base)


class TestSyncOperationValidator:
    """Tests for SyncOperationValidator."""

    @pytest.fixture
    def validator(self):
        return SyncOperationValidator()

    def test_valid_create(self, validator):
        result = validator.validate(_op())
        assert result.is_valid
        assert result.issues == []

    def test_delete_with_id_needs_no_payload(self, validator):
        op = SyncOperation.model_validate({"operation": "DELETE", "id": "e1"})
        assert validator.validate(op).is_valid

    def test_missing_fields_are_errors(self, validator):
        op = SyncOperation.model_validate({"operation": "CREATE"})
        result = validator.validate(op)
        assert not result.is_valid
        assert result.error_count == 3
        assert {i.field for i in result.issues} == {"title", "amount", "category"}

    def test_negative_amount(self, validator):
        result = validator.validate(_op(amount=Decimal("-5")))
        assert not result.is_valid
        assert "Amount cannot be negative" in result.error_message()

    def test_zero_amount_is_allowed(self, validator):
        assert validator.validate(_op(amount=Decimal("0"))).is_valid

    def test_title_too_long(self, validator):
        result = validator.validate(_op(title="x" * 201))
        assert not result.is_valid
        assert result.issues[0].field == "title"

    def test_unparseable_date(self, validator):
        result = validator.validate(_op(date="yesterday"))
        assert not result.is_valid
        issue = result.issues[0]
        assert issue.field == "date"
        assert issue.suggested_fix

    def test_iso_date_is_accepted(self, validator):
        assert validator.validate(_op(date="2024-05-01T12:30:00Z")).is_valid

    def test_bad_currency(self, validator):
        result = validator.validate(_op(currency="EURO"))
        assert not result.is_valid
        assert result.issues[0].field == "currency"

    def test_update_without_id_only_warns(self, validator):
        result = validator.validate(_op(operation="UPDATE"))
        assert result.is_valid
        assert not result.has_errors
        assert len(result.warnings) == 1

    def test_delete_without_id_validates_as_create(self, validator):
        op = SyncOperation.model_validate({"operation": "DELETE"})
        result = validator.validate(op)
        assert not result.is_valid
        assert result.warnings

    def test_validate_or_raise(self, validator):
        with pytest.raises(InvalidOperationError) as exc_info:
            validator.validate_or_raise(_op(title=""))
        assert exc_info.value.result.error_count == 1
        assert "Title is required" in str(exc_info.value)
