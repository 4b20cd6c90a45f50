"""
aggregation/bucketer.py

Maps a Record to its aggregation key.

The default key is the record's own (UTC) timestamp. A truncating bucketer
floors timestamps to a fixed N-second boundary measured from the Unix epoch,
so e.g. 60 groups records per minute. Any callable Record -> hashable,
totally ordered value is a valid drop-in.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

from ..models import AggregateKey, Record

KeyFn = Callable[[Record], AggregateKey]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def timestamp_key(record: Record) -> datetime:
    """Identity bucketing: the raw timestamp is the key."""
    return record.timestamp


def truncate_to(bucket_seconds: int) -> KeyFn:
    """
    Build a key function that floors timestamps to `bucket_seconds`.

    Sub-second precision is discarded along with the remainder, so every
    record inside [bucket, bucket + N s) maps to the same key.
    """
    if bucket_seconds < 1:
        raise ValueError(f"bucket_seconds must be >= 1, got {bucket_seconds}")
    width = timedelta(seconds=bucket_seconds)

    def _truncate(record: Record) -> datetime:
        since_epoch = record.timestamp - _EPOCH
        return _EPOCH + (since_epoch // width) * width

    _truncate.__name__ = f"truncate_to_{bucket_seconds}s"
    return _truncate


def make_bucketer(bucket_seconds: int = 0) -> KeyFn:
    """0 → identity key, N > 0 → N-second buckets."""
    if bucket_seconds == 0:
        return timestamp_key
    return truncate_to(bucket_seconds)
