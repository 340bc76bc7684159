"""
Sync Operation Validation

Each operation in a batch is checked on its own before anything is
written. A failing operation becomes a failed result for that item
only; the rest of the batch carries on.

Checks:
- Payload fields present when the operation will create or update
- Amount is not negative
- Date parses as ISO 8601
- Currency looks like an ISO 4217 code

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the client can correct its local record.
"""

import re
from datetime import datetime

from pydantic import TypeAdapter, ValidationError

from expense_sync.models.expense import SyncOperation, SyncOperationKind
from expense_sync.models.validation import ValidationIssue, ValidationResult


_CURRENCY_PATTERN = re.compile(r"^[A-Za-z]{3}$")
_DATETIME = TypeAdapter(datetime)


class InvalidOperationError(ValueError):
    """A sync operation failed validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.error_message() or "Invalid sync operation")


class SyncOperationValidator:
    """Validates a single SyncOperation."""

    def validate(self, operation: SyncOperation) -> ValidationResult:
        issues: list[ValidationIssue] = []

        # A DELETE that targets a stored record carries no payload
        if operation.operation is SyncOperationKind.DELETE and operation.id:
            return ValidationResult(is_valid=True)

        if operation.operation is not SyncOperationKind.CREATE and not operation.id:
            issues.append(ValidationIssue(
                field="id",
                issue_type="missing",
                message=f"{operation.operation.value} without an id will create a new expense",
                severity="warning",
            ))

        issues.extend(self._validate_payload(operation))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(is_valid=is_valid, issues=issues)

    def validate_or_raise(self, operation: SyncOperation) -> ValidationResult:
        result = self.validate(operation)
        if not result.is_valid:
            raise InvalidOperationError(result)
        return result

    def _validate_payload(self, operation: SyncOperation) -> list[ValidationIssue]:
        issues = []

        if not operation.title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Title is required",
                severity="error",
            ))
        elif len(operation.title) > 200:
            issues.append(ValidationIssue(
                field="title",
                issue_type="invalid_value",
                message="Title must be at most 200 characters",
                severity="error",
            ))

        if operation.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif operation.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount cannot be negative ({operation.amount})",
                severity="error",
            ))

        if not operation.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))

        if operation.date:
            try:
                _DATETIME.validate_python(operation.date)
            except ValidationError:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="invalid_format",
                    message=f"Date is not a valid ISO 8601 timestamp: {operation.date!r}",
                    severity="error",
                    suggested_fix="Send dates like 2024-05-01T12:30:00Z",
                ))

        if operation.currency and not _CURRENCY_PATTERN.match(operation.currency):
            issues.append(ValidationIssue(
                field="currency",
                issue_type="invalid_format",
                message=f"Currency must be a 3-letter code: {operation.currency!r}",
                severity="error",
            ))

        return issues
