"""
Abstract Storage Interface

DESIGN DECISION: The raw backend contract is exactly two operations,
whole-value `get` and `put` by string key. This allows us to:
1. Run on any eventually-available key-value store (edge KV, Redis,
   a spreadsheet, a dict)
2. Use in-memory storage for testing
3. Keep sharding and migration logic independent of the backend

Everything richer than get/put (fan-out, dedup, migration) is built on
top of this contract in the record store, never pushed down into it.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ledger.models.ledger import (
    NewTransaction,
    ShardHint,
    Transaction,
    TransactionPatch,
    ValidationIssue,
)


class KeyValueBackend(ABC):
    """
    Raw key-value store.

    Guarantees expected from implementations:
    - read-after-write consistency on the same key
    - nothing across keys (no atomicity, no ordering)

    Any failure to reach the store is raised as BackendUnavailableError.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the whole value stored under a key.

        Returns:
            The stored value, or None if the key is absent
        """
        pass

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """
        Replace the whole value stored under a key.

        Raises:
            BackendUnavailableError: If the write did not reach the store
        """
        pass


class TransactionStorageInterface(ABC):
    """
    Logical transaction operations offered to the caller.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def list_transactions(self, period: str) -> list[Transaction]:
        """
        All transactions of a YYYY-MM period.

        Returns:
            Transactions ordered by (occurred_on, created_at);
            empty list when the period has no data
        """
        pass

    @abstractmethod
    async def create_transaction(self, fields: NewTransaction) -> Transaction:
        """
        Store a new transaction.

        Raises:
            ResourceExhaustedError: If no free identifier could be allocated
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        patch: TransactionPatch,
        hint: Optional[ShardHint] = None,
    ) -> Transaction:
        """
        Apply a partial update, moving the record if its day changed.

        Raises:
            NotFoundError: If the id is absent from the searched scope
        """
        pass

    @abstractmethod
    async def delete_transaction(
        self,
        transaction_id: str,
        hint: Optional[ShardHint] = None,
    ) -> Transaction:
        """
        Remove a transaction.

        Returns:
            The removed transaction

        Raises:
            NotFoundError: If the id is absent from the searched scope
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ValidationError(StorageError, ValueError):
    """Caller input is malformed; the operation was not attempted."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []


class NotFoundError(StorageError):
    """Entity not found within the searched scope."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ResourceExhaustedError(StorageError):
    """Identifier allocation gave up after bounded retries."""
    pass


class BackendUnavailableError(StorageError):
    """The underlying get/put failed."""
    pass


class CorruptShardError(StorageError):
    """A stored value is not the JSON document its key should hold."""
    pass
