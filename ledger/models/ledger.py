"""
Core Data Models for the Ledger Store

These models define the schemas for every record persisted in the
key-value store. They are designed to:
1. Read records written by every historical key layout
2. Write records in the same wire shape the older writers used
3. Provide clear validation error messages
4. Be serializable for storage and logging

DESIGN DECISION: Stored records keep the original wire names
(`type`, `date`, `createdAt`, `updatedAt`) through aliases, so a shard
written today is indistinguishable from one written by the first
generation of the service. Python code uses descriptive field names.
"""

import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


AMOUNT_QUANTUM = Decimal("0.01")
DEFAULT_CATEGORY_ICON = "📝"

DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def normalize_amount(value: Any) -> Decimal:
    """Round an amount to 2 decimal places (half-up)."""
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Amount is not a number: {value!r}")
    if not amount.is_finite():
        raise ValueError("Amount must be finite")
    return amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def _positive_amount(value: Any) -> Decimal:
    amount = normalize_amount(value)
    if amount <= 0:
        raise ValueError("Amount must be greater than zero")
    return amount


def _strict_day(value: Any) -> Any:
    if isinstance(value, str) and not DAY_PATTERN.match(value):
        raise ValueError("Date must be formatted as YYYY-MM-DD")
    return value


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A persisted ledger entry.

    Identity is `id`, unique across every period. At any instant a
    transaction is owned by exactly one shard key, except for the short
    window of a cross-shard move, when it may briefly be owned by two.

    Stored records are read leniently: older writers accepted zero
    amounts, empty categories and extra fields, and a record must survive
    every rewrite of its shard unchanged. The strict rules apply to
    caller input (NewTransaction, TransactionPatch).
    """
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="allow",
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Globally unique record identifier"
    )
    kind: TransactionKind = Field(
        ...,
        alias="type",
        description="income or expense"
    )
    amount: Decimal = Field(
        ...,
        description="Amount with 2 decimal places"
    )
    category: str = Field(
        ...,
        description="Category id"
    )
    occurred_on: date = Field(
        ...,
        alias="date",
        description="Day the transaction happened"
    )
    note: str = Field(
        default="",
        description="Free-text note"
    )
    created_at: datetime = Field(
        ...,
        description="When the record was first written (UTC)"
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        description="Last update timestamp (UTC)"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def normalize_stored_amount(cls, v: Any) -> Decimal:
        return normalize_amount(v)

    @field_validator('occurred_on', mode='before')
    @classmethod
    def validate_day_format(cls, v: Any) -> Any:
        return _strict_day(v)

    @field_validator('note', mode='before')
    @classmethod
    def default_missing_note(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('created_at', 'updated_at')
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Older writers stored 'Z' timestamps; naive values are read as UTC."""
        return _as_utc(v)

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, amount: Decimal) -> float:
        # Stored shards have always carried amounts as JSON numbers
        return float(amount)

    @property
    def period(self) -> str:
        """YYYY-MM of the transaction."""
        return self.occurred_on.strftime("%Y-%m")

    @property
    def sort_key(self) -> tuple[date, datetime]:
        return (self.occurred_on, self.created_at)

    def to_storage_dict(self) -> dict:
        """Wire representation kept inside a shard."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NewTransaction(BaseModel):
    """
    Caller-supplied fields for a transaction that has not been stored yet.

    The identifier and timestamps are assigned by the store.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    kind: TransactionKind = Field(..., alias="type")
    amount: Decimal
    category: str = Field(..., min_length=1)
    occurred_on: date = Field(..., alias="date")
    note: str = ""

    @field_validator('amount', mode='before')
    @classmethod
    def normalize_positive_amount(cls, v: Any) -> Decimal:
        return _positive_amount(v)

    @field_validator('occurred_on', mode='before')
    @classmethod
    def validate_day_format(cls, v: Any) -> Any:
        return _strict_day(v)

    @field_validator('note', mode='before')
    @classmethod
    def default_missing_note(cls, v: Any) -> Any:
        return "" if v is None else v


class TransactionPatch(BaseModel):
    """
    Partial update. Only the fields the caller actually set are applied.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    kind: Optional[TransactionKind] = Field(default=None, alias="type")
    amount: Optional[Decimal] = None
    category: Optional[str] = Field(default=None, min_length=1)
    occurred_on: Optional[date] = Field(default=None, alias="date")
    note: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def normalize_positive_amount(cls, v: Any) -> Optional[Decimal]:
        if v is None:
            return None
        return _positive_amount(v)

    @field_validator('occurred_on', mode='before')
    @classmethod
    def validate_day_format(cls, v: Any) -> Any:
        return _strict_day(v)

    def changes(self) -> dict[str, Any]:
        """Fields to overlay on the stored record, keyed by field name."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ShardHint(BaseModel):
    """
    Where the caller believes a record currently lives.

    `day` is the record's current occurred-on date and pins the exact
    shard key. `period` (YYYY-MM) narrows a fan-out search to one month.
    """

    day: Optional[date] = None
    period: Optional[str] = None

    @field_validator('day', mode='before')
    @classmethod
    def validate_day_format(cls, v: Any) -> Any:
        return _strict_day(v)

    @field_validator('period')
    @classmethod
    def validate_period_format(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not PERIOD_PATTERN.match(v):
            raise ValueError("Period must be formatted as YYYY-MM")
        return v

    @property
    def resolved_period(self) -> Optional[str]:
        if self.period:
            return self.period
        if self.day:
            return self.day.strftime("%Y-%m")
        return None


# =============================================================================
# CATEGORIES AND BUDGETS
# =============================================================================

class Category(BaseModel):
    """A category. `(name, kind)` is unique within the collection."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    icon: str = DEFAULT_CATEGORY_ICON
    kind: TransactionKind = Field(..., alias="type")

    def to_storage_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class NewCategory(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    name: str = Field(..., min_length=1)
    icon: Optional[str] = None
    kind: TransactionKind = Field(..., alias="type")


class Budgets(RootModel[dict[str, Decimal]]):
    """
    Budget limits keyed by category id or period.

    Stored as one document; the last writer wins.
    """

    @field_validator('root', mode='before')
    @classmethod
    def normalize_limits(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            raise ValueError("Budgets must be a mapping of key to limit")
        limits = {}
        for key, limit in v.items():
            amount = normalize_amount(limit)
            if amount < 0:
                raise ValueError(f"Budget limit for {key!r} cannot be negative")
            limits[str(key)] = amount
        return limits

    @field_serializer('root', when_used='json')
    def serialize_limits(self, limits: dict[str, Decimal]) -> dict[str, float]:
        return {key: float(amount) for key, amount in limits.items()}


# =============================================================================
# AGGREGATION RESULTS
# =============================================================================

class CategoryTotal(BaseModel):
    """One row of a per-category breakdown."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    category_id: str
    category_name: str
    icon: str
    amount: Decimal

    @field_serializer('amount', when_used='json')
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)


class PeriodSummary(BaseModel):
    """Totals for one YYYY-MM period."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    period: str
    total_income: Decimal = Decimal("0.00")
    total_expense: Decimal = Decimal("0.00")
    balance: Decimal = Decimal("0.00")
    transaction_count: int = Field(default=0, ge=0)
    expense_by_category: list[CategoryTotal] = Field(default_factory=list)
    income_by_category: list[CategoryTotal] = Field(default_factory=list)

    @field_serializer('total_income', 'total_expense', 'balance', when_used='json')
    def serialize_totals(self, amount: Decimal) -> float:
        return float(amount)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found in caller input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
