"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and works only on the
merged, deduplicated record set the record store returns. It never
reads shard keys itself, so a summary can never count a record that
listing would not show.

A single pass produces:
1. Total income, total expense and balance
2. Transaction count
3. Per-category sums, split by kind, joined to the category collection

Categories may be deleted while historical transactions still point at
them. Such rows fall back to the raw category id and the placeholder
icon instead of failing.
"""

from decimal import Decimal
from typing import Iterable, Optional

from ledger.models.ledger import (
    DEFAULT_CATEGORY_ICON,
    Category,
    CategoryTotal,
    PeriodSummary,
    Transaction,
    TransactionKind,
)
from ledger.services.storage import CategoryStore, TransactionStorageInterface


class AggregationError(Exception):
    """Aggregation was asked for without a source of records."""
    pass


class AggregationEngine:
    """
    Computes period summaries.

    `summarize` is pure. `summarize_period` loads the period and the
    category collection through the stores it was given.
    """

    def __init__(
        self,
        store: Optional[TransactionStorageInterface] = None,
        categories: Optional[CategoryStore] = None,
    ):
        self._store = store
        self._categories = categories

    def summarize(
        self,
        period: str,
        records: Iterable[Transaction],
        categories: Iterable[Category] = (),
    ) -> PeriodSummary:
        total_income = Decimal("0.00")
        total_expense = Decimal("0.00")
        income_by_category: dict[str, Decimal] = {}
        expense_by_category: dict[str, Decimal] = {}
        count = 0

        for record in records:
            count += 1
            if record.kind == TransactionKind.INCOME:
                total_income += record.amount
                bucket = income_by_category
            else:
                total_expense += record.amount
                bucket = expense_by_category
            bucket[record.category] = bucket.get(record.category, Decimal("0.00")) + record.amount

        by_id = {category.id: category for category in categories}

        return PeriodSummary(
            period=period,
            total_income=total_income,
            total_expense=total_expense,
            balance=total_income - total_expense,
            transaction_count=count,
            expense_by_category=self._breakdown(expense_by_category, by_id),
            income_by_category=self._breakdown(income_by_category, by_id),
        )

    def _breakdown(
        self,
        sums: dict[str, Decimal],
        by_id: dict[str, Category],
    ) -> list[CategoryTotal]:
        rows = []
        for category_id, amount in sums.items():
            category = by_id.get(category_id)
            rows.append(CategoryTotal(
                category_id=category_id,
                category_name=category.name if category else category_id,
                icon=category.icon if category else DEFAULT_CATEGORY_ICON,
                amount=amount,
            ))
        # sorted() is stable: equal amounts keep first-seen order
        return sorted(rows, key=lambda row: row.amount, reverse=True)

    async def summarize_period(self, period: str) -> PeriodSummary:
        """
        Load a period through the record store and summarize it.

        Raises:
            AggregationError: If the engine was built without a record store
        """
        if self._store is None:
            raise AggregationError("No record store configured")

        records = await self._store.list_transactions(period)
        categories = await self._categories.list_categories() if self._categories else []
        return self.summarize(period, records, categories)
