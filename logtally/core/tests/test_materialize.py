"""
tests/test_materialize.py

Tests for materialize.py — ordering modes and key rendering.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from logtally.core.aggregation import AggregateMap
from logtally.core.materialize import (
    KeyFormat,
    OutputOrder,
    format_entry,
    materialize,
    render_key,
)
from logtally.core.models import ResultEntry

UTC = timezone.utc
T0 = datetime(2024, 1, 1, tzinfo=UTC)


def shuffled_map(n: int = 200, seed: int = 5) -> AggregateMap:
    keys = [T0 + timedelta(seconds=i) for i in range(n)]
    random.Random(seed).shuffle(keys)
    return AggregateMap({k: i + 1 for i, k in enumerate(keys)})


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

class TestMaterializeOrder:

    def test_sorted_is_strictly_ascending(self):
        entries = materialize(shuffled_map())
        keys = [e.key for e in entries]
        assert all(a < b for a, b in zip(keys, keys[1:]))

    def test_sorted_keeps_counts(self):
        m = shuffled_map()
        entries = materialize(m)
        assert {e.key: e.count for e in entries} == dict(m)

    def test_unordered_keeps_map_order(self):
        m = shuffled_map()
        entries = materialize(m, OutputOrder.UNORDERED)
        assert [e.key for e in entries] == list(m)

    def test_unordered_same_entries_as_sorted(self):
        m = shuffled_map()
        assert sorted(materialize(m, OutputOrder.UNORDERED)) == materialize(m, OutputOrder.SORTED)

    def test_accepts_string_order(self):
        assert materialize({T0: 1}, "sorted") == [ResultEntry(T0, 1)]

    def test_rejects_unknown_order(self):
        with pytest.raises(ValueError):
            materialize({T0: 1}, "random")

    def test_empty(self):
        assert materialize(AggregateMap()) == []

    def test_plain_dict_input(self):
        assert materialize({3: 1, 1: 2, 2: 3}) == [
            ResultEntry(1, 2), ResultEntry(2, 3), ResultEntry(3, 1),
        ]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestRenderKey:

    @pytest.mark.parametrize("key,expected", [
        (T0,                                               "2024-01-01T00:00:00Z"),
        (T0.replace(microsecond=123_000),                  "2024-01-01T00:00:00.123Z"),
        (T0.replace(microsecond=123_456),                  "2024-01-01T00:00:00.123456Z"),
        (datetime(2024, 1, 1, 2, tzinfo=timezone(timedelta(hours=2))), "2024-01-01T00:00:00Z"),
    ])
    def test_iso(self, key, expected):
        assert render_key(key) == expected

    def test_epoch(self):
        assert render_key(T0, KeyFormat.EPOCH) == "1704067200"

    def test_epoch_drops_fraction(self):
        assert render_key(T0.replace(microsecond=999_999), "epoch") == "1704067200"

    def test_non_datetime_key(self):
        assert render_key(42) == "42"


class TestFormatEntry:

    def test_key_space_count(self):
        assert format_entry(ResultEntry(T0, 2)) == "2024-01-01T00:00:00Z 2"

    def test_epoch_format(self):
        assert format_entry(ResultEntry(T0, 7), KeyFormat.EPOCH) == "1704067200 7"
