"""
Single-Document Collections

Categories and budgets are low-volume and each live under one key as a
single JSON document. They are not sharded and are not versioned:
every change is a read-modify-write of the whole document and the last
writer wins.
"""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ledger.audit import AuditLogger
from ledger.config import StorageSettings, get_settings
from ledger.models.ledger import (
    DEFAULT_CATEGORY_ICON,
    Budgets,
    Category,
    NewCategory,
    TransactionKind,
    ValidationIssue,
)
from ledger.services.storage.identifiers import IdentifierAllocator
from ledger.services.storage.interface import (
    CorruptShardError,
    DuplicateError,
    KeyValueBackend,
    NotFoundError,
    ValidationError,
)
from ledger.services.storage.shards import ShardAccessor


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="food", name="Food", icon="🍔", kind=TransactionKind.EXPENSE),
    Category(id="transport", name="Transport", icon="🚗", kind=TransactionKind.EXPENSE),
    Category(id="shopping", name="Shopping", icon="🛍️", kind=TransactionKind.EXPENSE),
    Category(id="entertainment", name="Entertainment", icon="🎬", kind=TransactionKind.EXPENSE),
    Category(id="medical", name="Medical", icon="🏥", kind=TransactionKind.EXPENSE),
    Category(id="education", name="Education", icon="📚", kind=TransactionKind.EXPENSE),
    Category(id="salary", name="Salary", icon="💰", kind=TransactionKind.INCOME),
    Category(id="bonus", name="Bonus", icon="🎁", kind=TransactionKind.INCOME),
    Category(id="investment", name="Investment", icon="📈", kind=TransactionKind.INCOME),
)


def issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    """Convert pydantic errors into ValidationIssue entries."""
    issues = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "value"
        issues.append(ValidationIssue(
            field=location,
            issue_type="missing" if item.get("type") == "missing" else "invalid_value",
            message=item.get("msg", "Invalid value"),
        ))
    return issues


class CategoryStore:
    """
    The category collection.

    An empty or absent collection is seeded with the default categories
    the first time it is listed.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        settings: Optional[StorageSettings] = None,
        allocator: Optional[IdentifierAllocator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().storage
        self._audit = audit_logger or AuditLogger()
        self._documents = ShardAccessor(backend, audit_logger=self._audit)
        self._ids = allocator or IdentifierAllocator()
        self._key = self._settings.categories_key

    async def _load(self) -> list[Category]:
        payload = await self._documents.load_json(self._key)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise CorruptShardError(f"{self._key} does not hold a JSON array")
        categories = []
        for entry in payload:
            try:
                categories.append(Category.model_validate(entry))
            except PydanticValidationError as e:
                await self._audit.log_malformed_record(self._key, str(e))
        return categories

    async def _save(self, categories: list[Category]) -> None:
        await self._documents.dump_json(
            self._key,
            [category.to_storage_dict() for category in categories],
        )

    async def list_categories(self) -> list[Category]:
        categories = await self._load()
        if categories:
            return categories

        defaults = list(DEFAULT_CATEGORIES)
        await self._save(defaults)
        await self._audit.log_categories_seeded(len(defaults))
        return defaults

    async def get_category(self, category_id: str) -> Optional[Category]:
        for category in await self._load():
            if category.id == category_id:
                return category
        return None

    async def create_category(self, fields: NewCategory) -> Category:
        """
        Add a category.

        Raises:
            DuplicateError: If a category with the same name and kind exists
        """
        categories = await self._load()
        for existing in categories:
            if existing.name == fields.name and existing.kind == fields.kind:
                raise DuplicateError(
                    f"Category already exists: {fields.name} ({fields.kind.value})"
                )

        category = Category(
            id=self._ids.allocate(),
            name=fields.name,
            icon=fields.icon or DEFAULT_CATEGORY_ICON,
            kind=fields.kind,
        )
        categories.append(category)
        await self._save(categories)

        await self._audit.log_category_created(category.id, category.name, category.kind.value)
        return category

    async def delete_category(self, category_id: str) -> None:
        """
        Remove a category. Transactions that reference it are left alone.

        Raises:
            NotFoundError: If no category has this id
        """
        categories = await self._load()
        remaining = [category for category in categories if category.id != category_id]
        if len(remaining) == len(categories):
            raise NotFoundError(f"Category not found: {category_id}")

        await self._save(remaining)
        await self._audit.log_category_deleted(category_id)


class BudgetStore:
    """The budget document. Replaced as a whole on every write."""

    def __init__(
        self,
        backend: KeyValueBackend,
        settings: Optional[StorageSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().storage
        self._audit = audit_logger or AuditLogger()
        self._documents = ShardAccessor(backend, audit_logger=self._audit)
        self._key = self._settings.budgets_key

    async def get_budgets(self) -> Budgets:
        payload = await self._documents.load_json(self._key)
        if payload is None:
            return Budgets({})
        try:
            return Budgets.model_validate(payload)
        except PydanticValidationError as e:
            raise CorruptShardError(f"{self._key} does not hold a budget document: {e}") from e

    async def set_budgets(self, limits: Any) -> Budgets:
        """
        Replace the budget document.

        Raises:
            ValidationError: If limits is not a mapping of non-negative amounts
        """
        try:
            budgets = Budgets.model_validate(limits)
        except PydanticValidationError as e:
            raise ValidationError("Invalid budget document", issues_from_pydantic(e)) from e

        await self._documents.dump_json(self._key, budgets.model_dump(mode="json"))
        await self._audit.log_budgets_updated(sorted(budgets.root))
        return budgets
