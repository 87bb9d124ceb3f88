"""
Two-Stage Input Validation

DESIGN DECISION: Caller input is validated in two distinct stages
before any key is read or written:

STAGE 1 - FIELD CHECKS:
- Required field presence
- Kind is income or expense
- Amount is a positive number
- Dates are formatted YYYY-MM-DD (periods YYYY-MM)

STAGE 2 - MODEL CONSTRUCTION:
- The checked fields are parsed into the pydantic input models
- Anything pydantic still rejects is reported the same way

WHY TWO STAGES:
1. Every problem with a request is reported at once, not just the first
2. Error messages name the wire field the caller actually sent
3. Stage 2 guarantees the store only ever sees well-typed models

IMPORTANT: Validation NEVER silently fixes issues, with one exception
kept for compatibility: over-long notes are truncated by the store.
"""

from datetime import date
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ledger.models.ledger import (
    DAY_PATTERN,
    PERIOD_PATTERN,
    NewCategory,
    NewTransaction,
    ShardHint,
    TransactionKind,
    TransactionPatch,
    ValidationIssue,
    normalize_amount,
)
from ledger.services.storage.documents import issues_from_pydantic
from ledger.services.storage.interface import ValidationError


KINDS = {kind.value for kind in TransactionKind}


def _pick(fields: Mapping[str, Any], *names: str) -> Any:
    """First present value among a wire name and its Python alias."""
    for name in names:
        if name in fields:
            return fields[name]
    return None


class TransactionValidator:
    """
    Validates raw transaction, category and hint payloads.

    All public methods either return a model or raise ValidationError
    carrying every issue found.
    """

    # -------------------------------------------------------------------------
    # Stage 1 helpers
    # -------------------------------------------------------------------------

    def _check_kind(self, value: Any, issues: list[ValidationIssue]) -> None:
        if value is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message="Type is required",
            ))
        elif not isinstance(value, str) or value not in KINDS:
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Type must be income or expense",
            ))

    def _check_amount(self, value: Any, issues: list[ValidationIssue]) -> None:
        if value is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
            ))
            return
        try:
            amount = normalize_amount(value)
        except ValueError as e:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=str(e),
            ))
            return
        if amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))

    def _check_category(self, value: Any, issues: list[ValidationIssue]) -> None:
        if value is None or not isinstance(value, str) or not value.strip():
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category cannot be empty",
            ))

    def _check_day(self, value: Any, field: str, issues: list[ValidationIssue]) -> None:
        if value is None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message="Date is required",
            ))
            return
        if isinstance(value, date):
            return
        if not isinstance(value, str) or not DAY_PATTERN.match(value):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Date must be formatted as YYYY-MM-DD",
            ))
            return
        try:
            date.fromisoformat(value)
        except ValueError:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{value} is not a calendar date",
            ))

    def _check_note(self, value: Any, issues: list[ValidationIssue]) -> None:
        if value is not None and not isinstance(value, str):
            issues.append(ValidationIssue(
                field="note",
                issue_type="invalid_format",
                message="Note must be text",
            ))

    def _raise_if_errors(self, message: str, issues: list[ValidationIssue]) -> None:
        if any(issue.severity == "error" for issue in issues):
            raise ValidationError(message, issues)

    def _build(self, model, payload: Mapping[str, Any], message: str):
        """Stage 2: construct the model, reporting pydantic errors as issues."""
        try:
            return model.model_validate(dict(payload))
        except PydanticValidationError as e:
            raise ValidationError(message, issues_from_pydantic(e)) from e

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def validate_create(self, fields: Mapping[str, Any]) -> NewTransaction:
        issues: list[ValidationIssue] = []

        kind = _pick(fields, "type", "kind")
        amount = _pick(fields, "amount")
        category = _pick(fields, "category")
        day = _pick(fields, "date", "occurred_on")
        note = _pick(fields, "note")

        self._check_kind(kind, issues)
        self._check_amount(amount, issues)
        self._check_category(category, issues)
        self._check_day(day, "date", issues)
        self._check_note(note, issues)
        self._raise_if_errors("Invalid transaction", issues)

        return self._build(
            NewTransaction,
            {"type": kind, "amount": amount, "category": category, "date": day, "note": note},
            "Invalid transaction",
        )

    def validate_patch(self, fields: Mapping[str, Any]) -> TransactionPatch:
        """Only the fields present in the payload are checked and applied."""
        issues: list[ValidationIssue] = []
        payload: dict[str, Any] = {}

        kind = _pick(fields, "type", "kind")
        if kind is not None:
            self._check_kind(kind, issues)
            payload["type"] = kind

        amount = _pick(fields, "amount")
        if amount is not None:
            self._check_amount(amount, issues)
            payload["amount"] = amount

        if "category" in fields:
            self._check_category(fields["category"], issues)
            payload["category"] = fields["category"]

        day = _pick(fields, "date", "occurred_on")
        if day is not None:
            self._check_day(day, "date", issues)
            payload["date"] = day

        note = _pick(fields, "note")
        if note is not None:
            self._check_note(note, issues)
            payload["note"] = note

        self._raise_if_errors("Invalid update", issues)
        return self._build(TransactionPatch, payload, "Invalid update")

    def validate_hint(self, fields: Optional[Mapping[str, Any]]) -> Optional[ShardHint]:
        """
        Shard hint from a payload.

        The record's current day may be sent as `originalDate`, `day` or
        `date`; a period as `period` or `month`.
        """
        if not fields:
            return None

        issues: list[ValidationIssue] = []
        day = _pick(fields, "originalDate", "day", "date")
        period = _pick(fields, "period", "month")

        if day is not None:
            self._check_day(day, "originalDate", issues)
        if period is not None:
            self._check_period(period, issues)
        self._raise_if_errors("Invalid shard hint", issues)

        if day is None and period is None:
            return None
        return self._build(ShardHint, {"day": day, "period": period}, "Invalid shard hint")

    def _check_period(self, value: Any, issues: list[ValidationIssue]) -> None:
        if not isinstance(value, str) or not PERIOD_PATTERN.match(value):
            issues.append(ValidationIssue(
                field="period",
                issue_type="invalid_format",
                message="Period must be formatted as YYYY-MM",
            ))

    def validate_period(self, value: Optional[str]) -> Optional[str]:
        """A YYYY-MM period, or None for the current one."""
        if value is None:
            return None
        issues: list[ValidationIssue] = []
        self._check_period(value, issues)
        self._raise_if_errors("Invalid period", issues)
        return value

    def validate_category(self, fields: Mapping[str, Any]) -> NewCategory:
        issues: list[ValidationIssue] = []

        name = _pick(fields, "name")
        kind = _pick(fields, "type", "kind")
        icon = _pick(fields, "icon")

        if name is None or not isinstance(name, str) or not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Category name cannot be empty",
            ))
        self._check_kind(kind, issues)
        if icon is not None and not isinstance(icon, str):
            issues.append(ValidationIssue(
                field="icon",
                issue_type="invalid_format",
                message="Icon must be text",
            ))
        self._raise_if_errors("Invalid category", issues)

        return self._build(
            NewCategory,
            {"name": name, "type": kind, "icon": icon or None},
            "Invalid category",
        )
