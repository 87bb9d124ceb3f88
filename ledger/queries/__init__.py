"""Aggregation package."""

from ledger.queries.aggregation import AggregationEngine, AggregationError

__all__ = ["AggregationEngine", "AggregationError"]
