"""
Lazy Key-Layout Migration

DESIGN DECISION: Migration is triggered by use, never by a background
job. A period is migrated:
1. On a read that finds every generation-3 key of the period empty
2. Before the first generation-3 write into the period, so a new
   record can never hide the legacy records next to it

When it runs, it:
1. Reads the legacy generations newest first (day keys, then the
   month key), keeping the first copy of each id
2. Re-buckets every record into its generation-3 key
3. Carries entries that do not parse as records verbatim into a
   generation-3 key of the same day (or the period's first day), so
   nothing a legacy writer stored is left behind
4. Returns the legacy records to the caller unchanged

Legacy keys are never deleted or modified. Once a period is migrated a
marker key (`{prefix}_YYYY_MM_migrated`) is written for it, also when no
legacy data was found, and its legacy keys are no longer read, even
after every record of the period has been deleted.

Running the same migration twice (or two requests running it
concurrently) is harmless: entries already present in a destination
shard are not appended again, and list-time dedup by id absorbs
anything a race still duplicates.
"""

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from ledger.audit import AuditLogger
from ledger.models.ledger import Transaction
from ledger.services.storage.shards import ShardAccessor
from ledger.sharding import KeyScheme, days_in_period, period_of


@dataclass
class LegacyData:
    """Everything a period holds under legacy keys."""

    records: list[Transaction] = field(default_factory=list)
    unreadable: list[Any] = field(default_factory=list)
    generations: list[int] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.records and not self.unreadable


def _raw_id(entry: Any) -> Optional[str]:
    if isinstance(entry, dict) and isinstance(entry.get("id"), str) and entry["id"]:
        return entry["id"]
    return None


class MigrationResolver:
    """
    Upgrades one period from legacy key layouts to the current one.
    """

    def __init__(
        self,
        shards: ShardAccessor,
        key_scheme: KeyScheme,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._shards = shards
        self._keys = key_scheme
        self._audit = audit_logger or AuditLogger()

    async def collect_legacy(self, period: str) -> LegacyData:
        """
        Records and unparseable entries of the period held under legacy keys.

        Records come newest generation first without repeated ids. An
        unparseable entry is shadowed by a newer entry with the same id.
        """
        legacy = LegacyData()
        seen: set[str] = set()

        for generation in self._keys.legacy_generations:
            shards = await self._shards.read_many(generation.derive_keys(period))
            records = [record for shard in shards for record in shard.records]
            unreadable = [entry for shard in shards for entry in shard.unreadable]
            if not records and not unreadable:
                continue
            legacy.generations.append(generation.number)

            for record in records:
                if record.id not in seen:
                    seen.add(record.id)
                    legacy.records.append(record)

            for entry in unreadable:
                raw_id = _raw_id(entry)
                if raw_id is not None and raw_id in seen:
                    continue
                if entry in legacy.unreadable:
                    continue
                if raw_id is not None:
                    seen.add(raw_id)
                legacy.unreadable.append(entry)

        return legacy

    async def resolve(self, period: str) -> list[Transaction]:
        """
        Migrate a period unless its marker says it already was.

        Returns:
            The legacy records, or an empty list if the period was already
            migrated or no generation has data
        """
        if await self.is_migrated(period):
            return []

        legacy = await self.collect_legacy(period)
        if not legacy.empty:
            keys_written = await self.rewrite(period, legacy)
            await self._audit.log_period_migrated(
                period=period,
                generations=legacy.generations,
                record_count=len(legacy.records),
                keys_written=keys_written,
            )
        await self._mark_migrated(period, legacy)
        return legacy.records

    async def is_migrated(self, period: str) -> bool:
        return await self._shards.load_json(self._keys.migration_marker_key(period)) is not None

    async def _mark_migrated(self, period: str, legacy: LegacyData) -> None:
        # Written last, so an interrupted rewrite is simply run again
        await self._shards.dump_json(
            self._keys.migration_marker_key(period),
            {
                "sourceGenerations": legacy.generations,
                "recordCount": len(legacy.records),
                "unreadableCount": len(legacy.unreadable),
            },
        )

    def home_key(self, period: str, entry: Any) -> str:
        """
        Generation-3 key for an entry that does not parse as a record.

        Uses the entry's own date and id where they are usable; otherwise
        the period's first day and a hash of the entry itself.
        """
        day = days_in_period(period)[0]
        identity = json.dumps(entry, sort_keys=True, ensure_ascii=False)

        if isinstance(entry, dict):
            raw_day = entry.get("date")
            if isinstance(raw_day, str):
                try:
                    parsed = date.fromisoformat(raw_day)
                except ValueError:
                    parsed = None
                if parsed is not None and period_of(parsed) == period:
                    day = parsed
            identity = _raw_id(entry) or identity

        return self._keys.key_for_write(day, identity)

    async def rewrite(self, period: str, legacy: LegacyData) -> int:
        """
        Append legacy entries to their generation-3 keys, one write per key.

        Returns:
            Number of keys that were written
        """
        records_by_key: dict[str, list[Transaction]] = {}
        for record in legacy.records:
            key = self._keys.key_for_write(record.occurred_on, record.id)
            records_by_key.setdefault(key, []).append(record)

        unreadable_by_key: dict[str, list[Any]] = {}
        for entry in legacy.unreadable:
            unreadable_by_key.setdefault(self.home_key(period, entry), []).append(entry)

        async def merge_into(key: str) -> bool:
            shard = await self._shards.read(key)
            present = {record.id for record in shard.records}
            added = [r for r in records_by_key.get(key, []) if r.id not in present]
            carried = [e for e in unreadable_by_key.get(key, []) if e not in shard.unreadable]
            if not added and not carried:
                return False
            shard.records.extend(added)
            shard.unreadable.extend(carried)
            await self._shards.write(shard)
            return True

        keys = list(dict.fromkeys([*records_by_key, *unreadable_by_key]))
        written = await self._shards.run_bounded(keys, merge_into)
        return sum(written)
