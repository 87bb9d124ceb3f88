"""
Tests for payload validation.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger.models import TransactionKind
from ledger.services.storage import ValidationError
from ledger.validation import TransactionValidator


VALID = {
    "type": "expense",
    "amount": 12.5,
    "category": "food",
    "date": "2024-03-05",
    "note": "lunch",
}


@pytest.fixture
def validator():
    return TransactionValidator()


def fields_of(exc_info) -> set[str]:
    return {issue.field for issue in exc_info.value.issues}


class TestValidateCreate:
    """Tests for create payloads."""

    def test_valid_payload(self, validator):
        """Test that a complete payload becomes a NewTransaction."""
        fields = validator.validate_create(VALID)
        assert fields.kind == TransactionKind.EXPENSE
        assert fields.amount == Decimal("12.50")
        assert fields.occurred_on == date(2024, 3, 5)
        assert fields.note == "lunch"

    def test_python_field_names_accepted(self, validator):
        """Test that kind/occurred_on work as well as type/date."""
        fields = validator.validate_create({
            "kind": "income", "amount": "3", "category": "bonus", "occurred_on": "2024-01-02",
        })
        assert fields.kind == TransactionKind.INCOME
        assert fields.note == ""

    def test_all_issues_reported_at_once(self, validator):
        """Test that every missing field is reported in one error."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_create({})
        assert fields_of(exc_info) == {"type", "amount", "category", "date"}

    @pytest.mark.parametrize("kind", ["transfer", "", 1, "EXPENSE"])
    def test_bad_kind(self, validator, kind):
        """Test that only income and expense are accepted."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_create({**VALID, "type": kind})
        assert fields_of(exc_info) == {"type"}

    @pytest.mark.parametrize("amount", [0, -5, "0.001", "abc", True, float("nan")])
    def test_bad_amount(self, validator, amount):
        """Test that amounts must be positive numbers after rounding."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_create({**VALID, "amount": amount})
        assert fields_of(exc_info) == {"amount"}

    @pytest.mark.parametrize("category", ["", "   ", None])
    def test_empty_category(self, validator, category):
        """Test that the category is required."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_create({**VALID, "category": category})
        assert fields_of(exc_info) == {"category"}

    @pytest.mark.parametrize("day", ["2024-3-5", "05/03/2024", "2024-02-30", "2024-03-05T10:00"])
    def test_bad_date(self, validator, day):
        """Test that dates must be real YYYY-MM-DD days."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_create({**VALID, "date": day})
        assert fields_of(exc_info) == {"date"}

    def test_non_text_note(self, validator):
        """Test that notes must be strings."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_create({**VALID, "note": 42})
        assert fields_of(exc_info) == {"note"}

    def test_validation_error_is_value_error(self, validator):
        """Test that callers catching ValueError still see validation failures."""
        with pytest.raises(ValueError):
            validator.validate_create({})


class TestValidatePatch:
    """Tests for update payloads."""

    def test_empty_patch(self, validator):
        """Test that an empty payload yields no changes."""
        assert validator.validate_patch({}).changes() == {}

    def test_only_present_fields_applied(self, validator):
        """Test that a patch carries only what was sent."""
        patch = validator.validate_patch({"amount": "20", "date": "2024-02-10"})
        assert patch.changes() == {"amount": Decimal("20.00"), "occurred_on": date(2024, 2, 10)}

    def test_bad_fields_reported(self, validator):
        """Test that present fields are still checked."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_patch({"amount": -1, "type": "gift", "category": ""})
        assert fields_of(exc_info) == {"amount", "type", "category"}


class TestValidateHintsAndPeriods:
    """Tests for shard hints and periods."""

    def test_no_hint(self, validator):
        """Test that missing or empty hints mean no hint."""
        assert validator.validate_hint(None) is None
        assert validator.validate_hint({}) is None

    def test_original_date_hint(self, validator):
        """Test the original-date hint pins the day and the period."""
        hint = validator.validate_hint({"originalDate": "2023-11-02"})
        assert hint.day == date(2023, 11, 2)
        assert hint.resolved_period == "2023-11"

    def test_period_hint(self, validator):
        """Test a period-only hint."""
        hint = validator.validate_hint({"month": "2023-11"})
        assert hint.day is None
        assert hint.resolved_period == "2023-11"

    def test_bad_hint(self, validator):
        """Test that malformed hints are rejected."""
        with pytest.raises(ValidationError):
            validator.validate_hint({"originalDate": "yesterday"})
        with pytest.raises(ValidationError):
            validator.validate_hint({"period": "2023-13"})

    def test_periods(self, validator):
        """Test period validation."""
        assert validator.validate_period(None) is None
        assert validator.validate_period("2024-03") == "2024-03"
        with pytest.raises(ValidationError):
            validator.validate_period("March")


class TestValidateCategory:
    """Tests for category payloads."""

    def test_valid_category(self, validator):
        """Test a category with an icon."""
        category = validator.validate_category({"name": " Pets ", "type": "expense", "icon": "🐶"})
        assert category.name == "Pets"
        assert category.icon == "🐶"

    def test_empty_icon_means_default(self, validator):
        """Test that an empty icon is left for the store to default."""
        category = validator.validate_category({"name": "Pets", "type": "expense", "icon": ""})
        assert category.icon is None

    def test_bad_category(self, validator):
        """Test missing name and bad kind together."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_category({"name": "  ", "type": "other"})
        assert fields_of(exc_info) == {"name", "type"}
