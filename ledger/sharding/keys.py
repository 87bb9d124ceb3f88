"""
Key Scheme

Pure, deterministic mapping from logical coordinates (period, day,
record id) to physical key-value keys. No I/O happens here.

Three key layouts have been used over the life of the service and all
of them still exist in deployed stores:

    generation 1  one key per month          transactions_2024_03
    generation 2  one key per day            transactions_2024_03_05
    generation 3  one key per day and bucket transactions_2024_03_05_a7

Generation 3 is the only one written to. The bucket is derived from the
record id, so the same id always lands in the same key for a given day.

DESIGN DECISION: The bucket hash is pinned. It is the 32-bit signed
rolling hash `h = h * 31 + code_unit` over the UTF-16 code units of the
id, the `String.hashCode` formula, so writers outside this package can
compute the same keys. The bucket is `abs(h) % bucket_count` rendered
as two lowercase hex digits.
Changing either the hash or the bucket count makes existing
generation-3 data unreachable.
"""

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Callable

from ledger.models.ledger import PERIOD_PATTERN


MAX_BUCKETS = 256

GENERATION_PERIOD = 1
GENERATION_DAY = 2
GENERATION_DAY_BUCKET = 3


# =============================================================================
# PERIOD HELPERS
# =============================================================================

def parse_period(period: str) -> tuple[int, int]:
    """Split a YYYY-MM period into (year, month)."""
    if not isinstance(period, str) or not PERIOD_PATTERN.match(period):
        raise ValueError(f"Period must be formatted as YYYY-MM: {period!r}")
    year, month = period.split("-")
    return int(year), int(month)


def period_of(day: date) -> str:
    return day.strftime("%Y-%m")


def days_in_period(period: str) -> list[date]:
    """Every calendar day of the period, in order."""
    year, month = parse_period(period)
    _, last_day = calendar.monthrange(year, month)
    return [date(year, month, d) for d in range(1, last_day + 1)]


def recent_periods(period: str, count: int) -> list[str]:
    """`period` followed by the `count - 1` periods before it."""
    year, month = parse_period(period)
    periods = []
    for _ in range(count):
        periods.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return periods


def bucket_hash(identifier: str) -> int:
    """Non-negative 32-bit rolling hash of an identifier."""
    h = 0
    encoded = identifier.encode("utf-16-be")
    for i in range(0, len(encoded), 2):
        code_unit = (encoded[i] << 8) | encoded[i + 1]
        h = (h * 31 + code_unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


# =============================================================================
# GENERATIONS
# =============================================================================

@dataclass(frozen=True)
class KeyGeneration:
    """One historical key layout and how it covers a period."""

    number: int
    name: str
    derive_keys: Callable[[str], list[str]]


@dataclass(frozen=True)
class LegacyKey:
    generation: int
    key: str


class KeyScheme:
    """
    Derives storage keys for every key layout generation.

    Generations are kept as an ordered tuple, oldest first. Reads that
    need a fallback walk it newest-legacy-first; writes only ever use
    the last entry.
    """

    def __init__(self, prefix: str = "transactions", bucket_count: int = MAX_BUCKETS):
        if not 1 <= bucket_count <= MAX_BUCKETS:
            raise ValueError(f"bucket_count must be between 1 and {MAX_BUCKETS}")
        self._prefix = prefix
        self._bucket_count = bucket_count
        self._generations = (
            KeyGeneration(GENERATION_PERIOD, "period", lambda p: [self.period_key(p)]),
            KeyGeneration(GENERATION_DAY, "day", self.day_keys_for_period),
            KeyGeneration(GENERATION_DAY_BUCKET, "day_bucket", self.keys_for_period),
        )

    @property
    def bucket_count(self) -> int:
        return self._bucket_count

    @property
    def generations(self) -> tuple[KeyGeneration, ...]:
        return self._generations

    @property
    def current_generation(self) -> KeyGeneration:
        return self._generations[-1]

    @property
    def legacy_generations(self) -> list[KeyGeneration]:
        """Generations that are read but never written, newest first."""
        return list(reversed(self._generations[:-1]))

    # Generation 1

    def period_key(self, period: str) -> str:
        year, month = parse_period(period)
        return f"{self._prefix}_{year:04d}_{month:02d}"

    # Generation 2

    def day_key(self, day: date) -> str:
        return f"{self._prefix}_{day.year:04d}_{day.month:02d}_{day.day:02d}"

    def day_keys_for_period(self, period: str) -> list[str]:
        return [self.day_key(day) for day in days_in_period(period)]

    # Generation 3

    def bucket_for(self, record_id: str) -> str:
        return f"{bucket_hash(record_id) % self._bucket_count:02x}"

    def key_for_write(self, day: date, record_id: str) -> str:
        """The one key a record with this id and day is written to."""
        return f"{self.day_key(day)}_{self.bucket_for(record_id)}"

    def keys_for_day(self, day: date) -> list[str]:
        day_key = self.day_key(day)
        return [f"{day_key}_{bucket:02x}" for bucket in range(self._bucket_count)]

    def keys_for_period(self, period: str) -> list[str]:
        """Every day x bucket key of the period, ordered by day then bucket."""
        keys = []
        for day in days_in_period(period):
            keys.extend(self.keys_for_day(day))
        return keys

    def migration_marker_key(self, period: str) -> str:
        """Written once a period has been migrated to generation 3."""
        return f"{self.period_key(period)}_migrated"

    def legacy_keys_for_period(self, period: str) -> list[LegacyKey]:
        """Generation-2 day keys, then the generation-1 period key."""
        return [
            LegacyKey(generation.number, key)
            for generation in self.legacy_generations
            for key in generation.derive_keys(period)
        ]
