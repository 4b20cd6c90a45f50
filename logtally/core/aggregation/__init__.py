"""
aggregation/__init__.py

Public API for the aggregation sub-package.
"""

from .aggregator import ConcurrentAggregator, aggregate, merge_partials
from .bucketer import KeyFn, make_bucketer, timestamp_key, truncate_to
from .models import AggregateMap, AggregateResult, Chunk, PartialAggregate

__all__ = [
    "ConcurrentAggregator",
    "aggregate",
    "merge_partials",
    "KeyFn",
    "make_bucketer",
    "timestamp_key",
    "truncate_to",
    "AggregateMap",
    "AggregateResult",
    "Chunk",
    "PartialAggregate",
]
