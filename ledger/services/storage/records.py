"""
Sharded Transaction Store

DESIGN DECISION: Transactions of one day are spread over `bucket_count`
keys chosen by a hash of the record id. The backend has no
compare-and-swap, so every write is an honest read-modify-write of a
single key and the last writer wins. Narrow shards shrink the window
in which two writers can meet; they do not close it.

TRADEOFFS:
- Listing a month reads days x buckets keys (bounded concurrency)
- Creating or editing a record touches one key
- A record moved to another day is written to its new key before it
  is removed from the old one. An interruption leaves a duplicate,
  which listing resolves by id, never a loss

Records are located for update/delete in three tiers:
1. The exact key, when the caller knows the record's current day
2. Every key of the hinted (or current) period
3. Every key of the current period and the ones before it
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from ledger.audit import AuditLogger
from ledger.config import StorageSettings, get_settings
from ledger.models.ledger import (
    NewTransaction,
    ShardHint,
    Transaction,
    TransactionPatch,
    ValidationIssue,
)
from ledger.services.storage.identifiers import IdentifierAllocator
from ledger.services.storage.interface import (
    KeyValueBackend,
    NotFoundError,
    TransactionStorageInterface,
    ValidationError,
)
from ledger.services.storage.migration import MigrationResolver
from ledger.services.storage.shards import Shard, ShardAccessor
from ledger.sharding import KeyScheme, parse_period, period_of, recent_periods


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShardedTransactionStore(TransactionStorageInterface):
    """
    Transaction storage over a raw key-value backend.

    All new data is written with the day-and-bucket key layout; older
    layouts are read through MigrationResolver.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        settings: Optional[StorageSettings] = None,
        key_scheme: Optional[KeyScheme] = None,
        allocator: Optional[IdentifierAllocator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._settings = settings or get_settings().storage
        self._keys = key_scheme or KeyScheme(
            prefix=self._settings.key_prefix,
            bucket_count=self._settings.bucket_count,
        )
        self._audit = audit_logger or AuditLogger()
        self._shards = ShardAccessor(
            backend,
            audit_logger=self._audit,
            batch_size=self._settings.fan_out_batch_size,
        )
        self._ids = allocator or IdentifierAllocator(
            max_regenerations=self._settings.max_id_regenerations,
        )
        self._migration = MigrationResolver(self._shards, self._keys, self._audit)
        self._now = clock or _utcnow

    @property
    def key_scheme(self) -> KeyScheme:
        return self._keys

    @property
    def migration(self) -> MigrationResolver:
        return self._migration

    def current_period(self) -> str:
        return period_of(self._now().date())

    def _require_period(self, period: Optional[str]) -> str:
        if period is None:
            return self.current_period()
        try:
            parse_period(period)
        except ValueError as e:
            raise ValidationError(
                str(e),
                [ValidationIssue(
                    field="period",
                    issue_type="invalid_format",
                    message="Period must be formatted as YYYY-MM",
                )],
            ) from e
        return period

    def _truncate_note(self, note: str) -> str:
        return note[: self._settings.note_max_length]

    # -------------------------------------------------------------------------
    # list
    # -------------------------------------------------------------------------

    async def list_transactions(self, period: Optional[str] = None) -> list[Transaction]:
        """
        All transactions of a period, deduplicated and sorted.

        Falls back to legacy key layouts (and migrates them) only when
        no current-generation key of the period holds a record. Writes
        migrate their period first, so a non-empty read never hides
        legacy data.
        """
        period = self._require_period(period)

        shards = await self._shards.read_many(self._keys.keys_for_period(period))
        records = [record for shard in shards for record in shard.records]

        if not records:
            records = await self._migration.resolve(period)

        return await self._merge(period, records)

    async def _merge(self, period: str, records: list[Transaction]) -> list[Transaction]:
        """Keep the first occurrence of each id, then sort."""
        unique: dict[str, Transaction] = {}
        occurrences: dict[str, int] = {}
        for record in records:
            occurrences[record.id] = occurrences.get(record.id, 0) + 1
            if record.id not in unique:
                unique[record.id] = record

        for record_id, count in occurrences.items():
            if count > 1:
                await self._audit.log_integrity_anomaly(record_id, period, count)

        return sorted(unique.values(), key=lambda record: record.sort_key)

    # -------------------------------------------------------------------------
    # create
    # -------------------------------------------------------------------------

    async def create_transaction(self, fields: NewTransaction) -> Transaction:
        """
        Allocate an id, then append the record to its shard.

        The shard read while checking the id for collisions is the one
        the record is appended to. The target period is migrated before
        anything is read from it.
        """
        day = fields.occurred_on
        await self._migration.resolve(period_of(day))
        checked_shards: dict[str, Shard] = {}

        async def is_taken(candidate: str) -> bool:
            shard = await self._shards.read(self._keys.key_for_write(day, candidate))
            checked_shards[candidate] = shard
            return shard.index_of(candidate) is not None

        async def on_collision(candidate: str, attempt: int) -> None:
            await self._audit.log_identifier_collision(candidate, attempt)

        transaction_id = await self._ids.allocate_unique(is_taken, on_collision)
        shard = checked_shards[transaction_id]

        transaction = Transaction(
            id=transaction_id,
            kind=fields.kind,
            amount=fields.amount,
            category=fields.category,
            occurred_on=day,
            note=self._truncate_note(fields.note),
            created_at=self._now(),
        )
        shard.records.append(transaction)
        await self._shards.write(shard)

        await self._audit.log_transaction_created(
            transaction_id=transaction.id,
            shard_key=shard.key,
            amount=str(transaction.amount),
        )
        return transaction

    # -------------------------------------------------------------------------
    # locate
    # -------------------------------------------------------------------------

    async def _search_period(
        self,
        period: str,
        transaction_id: str,
    ) -> Optional[tuple[Shard, int]]:
        found, saw_records = await self._shards.find_record(
            self._keys.keys_for_period(period),
            transaction_id,
        )
        if found is not None or saw_records:
            return found

        # Nothing under the current layout: the period may still live in a legacy key
        migrated = await self._migration.resolve(period)
        for record in migrated:
            if record.id == transaction_id:
                shard = await self._shards.read(
                    self._keys.key_for_write(record.occurred_on, record.id)
                )
                index = shard.index_of(transaction_id)
                if index is not None:
                    return shard, index
        return None

    async def locate(
        self,
        transaction_id: str,
        hint: Optional[ShardHint] = None,
    ) -> tuple[Shard, int]:
        """
        Find the shard currently holding a transaction.

        Raises:
            NotFoundError: If no searched shard holds the id
        """
        if hint is not None and hint.day is not None:
            shard = await self._shards.read(self._keys.key_for_write(hint.day, transaction_id))
            index = shard.index_of(transaction_id)
            if index is not None:
                return shard, index

        current = self.current_period()
        first = (hint.resolved_period if hint is not None else None) or current
        candidates = [first] + recent_periods(current, self._settings.search_period_count)

        searched: set[str] = set()
        for period in candidates:
            if period in searched:
                continue
            searched.add(period)
            found = await self._search_period(period, transaction_id)
            if found is not None:
                return found

        raise NotFoundError(
            f"Transaction not found: {transaction_id} "
            f"(searched {', '.join(sorted(searched))})"
        )

    # -------------------------------------------------------------------------
    # update / delete
    # -------------------------------------------------------------------------

    async def update_transaction(
        self,
        transaction_id: str,
        patch: TransactionPatch,
        hint: Optional[ShardHint] = None,
    ) -> Transaction:
        """
        Apply a patch and stamp updated_at.

        If the new day maps to another key, the record is inserted
        there before it is removed from the source key.
        """
        source, index = await self.locate(transaction_id, hint)
        existing = source.records[index]

        changes = patch.changes()
        if "note" in changes:
            changes["note"] = self._truncate_note(changes["note"])
        changes["updated_at"] = self._now()
        updated = existing.model_copy(update=changes)

        destination_key = self._keys.key_for_write(updated.occurred_on, updated.id)
        migrated = await self._migration.resolve(updated.period)

        if destination_key == source.key:
            if migrated:
                # Migration may have appended to the shard read above
                source = await self._shards.read(source.key)
                index = source.index_of(updated.id)
            source.records[index] = updated
            await self._shards.write(source)
            await self._audit.log_transaction_updated(
                transaction_id=updated.id,
                shard_key=source.key,
                fields=sorted(changes),
            )
            return updated

        await self._move(updated, source.key, destination_key)
        return updated

    async def _move(self, updated: Transaction, source_key: str, destination_key: str) -> None:
        destination = await self._shards.read(destination_key)
        existing_index = destination.index_of(updated.id)
        if existing_index is None:
            destination.records.append(updated)
        else:
            # Left behind by an interrupted earlier move
            destination.records[existing_index] = updated
        await self._shards.write(destination)

        # Re-read so writes that landed on the source meanwhile are kept
        source = await self._shards.read(source_key)
        if source.remove(updated.id):
            await self._shards.write(source)

        await self._audit.log_transaction_moved(
            transaction_id=updated.id,
            source_key=source_key,
            destination_key=destination_key,
        )

    async def delete_transaction(
        self,
        transaction_id: str,
        hint: Optional[ShardHint] = None,
    ) -> Transaction:
        """Remove a transaction from the first shard found holding it."""
        shard, index = await self.locate(transaction_id, hint)
        removed = shard.records.pop(index)
        await self._shards.write(shard)

        await self._audit.log_transaction_deleted(
            transaction_id=transaction_id,
            shard_key=shard.key,
        )
        return removed

