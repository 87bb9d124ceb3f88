"""
Tests for period summaries.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from ledger.models import Category, NewTransaction, Transaction
from ledger.queries import AggregationEngine, AggregationError


def txn(record_id, amount, category, kind="expense", day=date(2024, 3, 5)):
    return Transaction(
        id=record_id,
        kind=kind,
        amount=amount,
        category=category,
        occurred_on=day,
        created_at=datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc),
    )


CATEGORIES = [
    Category(id="food", name="Food", icon="🍔", kind="expense"),
    Category(id="salary", name="Salary", icon="💰", kind="income"),
]


class TestSummarize:
    """Tests for AggregationEngine.summarize."""

    def test_totals(self):
        """Test income, expense, balance and count."""
        records = [
            txn("a", "12.50", "food"),
            txn("b", "100", "salary", kind="income"),
            txn("c", "7.25", "food"),
        ]
        summary = AggregationEngine().summarize("2024-03", records, CATEGORIES)

        assert summary.total_income == Decimal("100.00")
        assert summary.total_expense == Decimal("19.75")
        assert summary.balance == Decimal("80.25")
        assert summary.transaction_count == 3

    def test_decimal_sums_are_exact(self):
        """Test that summing cents never drifts like float addition."""
        records = [txn(str(i), "0.10", "food") for i in range(3)]
        summary = AggregationEngine().summarize("2024-03", records)
        assert summary.total_expense == Decimal("0.30")

    def test_breakdown_joined_to_categories(self):
        """Test per-category rows carry the category name and icon."""
        summary = AggregationEngine().summarize(
            "2024-03",
            [txn("a", 5, "food"), txn("b", 9, "salary", kind="income")],
            CATEGORIES,
        )
        assert summary.expense_by_category[0].category_name == "Food"
        assert summary.expense_by_category[0].icon == "🍔"
        assert summary.income_by_category[0].category_id == "salary"
        assert summary.income_by_category[0].amount == Decimal("9.00")

    def test_deleted_category_falls_back(self):
        """Test that an unknown category id shows as itself with the placeholder icon."""
        summary = AggregationEngine().summarize("2024-03", [txn("a", 5, "vanished")], CATEGORIES)
        row = summary.expense_by_category[0]
        assert row.category_name == "vanished"
        assert row.icon == "📝"

    def test_breakdown_sorted_descending_and_stable(self):
        """Test descending amounts, ties kept in first-seen order."""
        records = [
            txn("a", 5, "transport"),
            txn("b", 20, "food"),
            txn("c", 5, "shopping"),
        ]
        summary = AggregationEngine().summarize("2024-03", records)
        assert [row.category_id for row in summary.expense_by_category] == [
            "food", "transport", "shopping",
        ]

    def test_empty_period(self):
        """Test a summary of no records."""
        summary = AggregationEngine().summarize("2024-03", [])
        assert summary.transaction_count == 0
        assert summary.balance == Decimal("0")
        assert summary.expense_by_category == []

    def test_wire_shape(self):
        """Test the camelCase JSON shape consumers read."""
        summary = AggregationEngine().summarize("2024-03", [txn("a", "12.5", "food")], CATEGORIES)
        payload = summary.model_dump(mode="json", by_alias=True)

        assert payload["period"] == "2024-03"
        assert payload["totalExpense"] == 12.5
        assert payload["totalIncome"] == 0
        assert payload["balance"] == -12.5
        assert payload["transactionCount"] == 1
        assert payload["expenseByCategory"] == [
            {"categoryId": "food", "categoryName": "Food", "icon": "🍔", "amount": 12.5},
        ]
        assert payload["incomeByCategory"] == []


class TestSummarizePeriod:
    """Tests for summaries loaded through the stores."""

    @pytest.mark.asyncio
    async def test_without_store(self):
        """Test that a store is required to load a period."""
        with pytest.raises(AggregationError):
            await AggregationEngine().summarize_period("2024-03")

    @pytest.mark.asyncio
    async def test_uses_category_collection(self, store, category_store):
        """Test that summaries join against the stored categories."""
        await store.create_transaction(NewTransaction(
            type="income", amount=2500, category="salary", date="2024-03-01",
        ))
        summary = await AggregationEngine(store, category_store).summarize_period("2024-03")

        assert summary.total_income == Decimal("2500.00")
        assert summary.income_by_category[0].category_name == "Salary"
        assert summary.income_by_category[0].icon == "💰"
