"""Key layout package."""

from ledger.sharding.keys import (
    GENERATION_DAY,
    GENERATION_DAY_BUCKET,
    GENERATION_PERIOD,
    KeyGeneration,
    KeyScheme,
    LegacyKey,
    bucket_hash,
    days_in_period,
    parse_period,
    period_of,
    recent_periods,
)

__all__ = [
    "GENERATION_DAY",
    "GENERATION_DAY_BUCKET",
    "GENERATION_PERIOD",
    "KeyGeneration",
    "KeyScheme",
    "LegacyKey",
    "bucket_hash",
    "days_in_period",
    "parse_period",
    "period_of",
    "recent_periods",
]
