"""
tests/test_aggregator.py

Tests for the ConcurrentAggregator — partition invariance, conservation,
merge, cancellation and failure propagation.

All tests use in-memory line lists or generators; no files required.
"""

from __future__ import annotations

import itertools
import threading
from collections import Counter
from datetime import datetime, timezone

import pytest

from logtally.core.aggregation import (
    AggregateMap,
    Chunk,
    ConcurrentAggregator,
    PartialAggregate,
    aggregate,
    merge_partials,
    truncate_to,
)
from logtally.core.errors import CancellationError, SourceError
from logtally.core.loggen import generate
from logtally.core.metrics import METRICS
from logtally.core.models import RawLine
from logtally.core.parsing import accept_all, severity_is

UTC = timezone.utc
T0 = datetime(2024, 1, 1, tzinfo=UTC)
T5 = datetime(2024, 1, 1, 0, 0, 5, tzinfo=UTC)

SCENARIO = [
    "[2024-01-01T00:00:00Z] [svc:1] [error] [cat] boom",
    "[2024-01-01T00:00:00Z] [svc:2] [error] [cat] boom2",
    "[2024-01-01T00:00:05Z] [svc:1] [info] [cat] ok",
]


@pytest.fixture(autouse=True)
def _reset_metrics():
    METRICS.reset_all()
    yield


@pytest.fixture(scope="module")
def sample_log():
    return generate(20_000, seed=11, span_seconds=300, malformed_ratio=0.05)


# ---------------------------------------------------------------------------
# Basic aggregation
# ---------------------------------------------------------------------------

class TestAggregateBasics:

    def test_scenario_counts(self):
        result = aggregate(SCENARIO, worker_count=2)
        assert result.counts == {T0: 2}
        assert result.lines == 3
        assert result.rejected == 0
        assert result.filtered == 1
        assert result.counted == 2

    def test_empty_input(self):
        result = aggregate([], worker_count=4)
        assert len(result.counts) == 0
        assert result.lines == 0
        assert result.workers == 4

    def test_malformed_line_dropped_not_fatal(self):
        result = aggregate([SCENARIO[0], "this is not a log line"], worker_count=1)
        assert result.counts == {T0: 1}
        assert result.rejected == 1

    def test_custom_predicate_and_key(self):
        result = aggregate(
            SCENARIO,
            predicate=accept_all,
            key_fn=truncate_to(60),
            worker_count=2,
        )
        assert result.counts == {T0: 3}

    def test_other_severity(self):
        result = aggregate(SCENARIO, predicate=severity_is("info"))
        assert result.counts == {T5: 1}
        assert result.filtered == 2

    def test_accepts_generator_source(self):
        result = aggregate((line for line in SCENARIO), worker_count=3, chunk_size=1)
        assert result.counts == {T0: 2}

    def test_more_workers_than_chunks(self):
        result = aggregate(SCENARIO, worker_count=16, chunk_size=10)
        assert result.counts == {T0: 2}
        assert result.workers == 16


# ---------------------------------------------------------------------------
# Partition invariance and conservation
# ---------------------------------------------------------------------------

class TestPartitionInvariance:

    @pytest.mark.parametrize("workers", [1, 2, 3, 8])
    @pytest.mark.parametrize("chunk_size", [1, 97, 10_000])
    def test_matches_expected_counts(self, sample_log, workers, chunk_size):
        result = aggregate(sample_log.lines, worker_count=workers, chunk_size=chunk_size)
        assert result.counts == sample_log.expected
        assert result.rejected == sample_log.rejected
        assert result.filtered == sample_log.filtered

    def test_identical_across_worker_counts(self, sample_log):
        maps = [
            aggregate(sample_log.lines, worker_count=n, chunk_size=500).counts
            for n in (1, 2, 7)
        ]
        assert maps[0] == maps[1] == maps[2]

    @pytest.mark.parametrize("workers", [1, 4])
    def test_conservation(self, sample_log, workers):
        result = aggregate(sample_log.lines, worker_count=workers, chunk_size=333)
        assert result.counted + result.rejected + result.filtered == len(sample_log.lines)
        assert result.lines == len(sample_log.lines)

    def test_small_queue_depth(self, sample_log):
        result = aggregate(sample_log.lines, worker_count=4, chunk_size=50, queue_depth=1)
        assert result.counts == sample_log.expected


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:

    @pytest.mark.parametrize("kwargs", [
        {"worker_count": 0},
        {"chunk_size": 0},
        {"queue_depth": -1},
    ])
    def test_rejects_bad_arguments(self, kwargs):
        with pytest.raises(ValueError):
            ConcurrentAggregator(**kwargs)


# ---------------------------------------------------------------------------
# Cancellation and failures
# ---------------------------------------------------------------------------

class TestCancellation:

    def test_cancelled_before_start(self):
        event = threading.Event()
        event.set()
        with pytest.raises(CancellationError):
            aggregate(SCENARIO, worker_count=2, cancel_event=event)

    def test_cancel_mid_run_stops_infinite_source(self):
        agg = ConcurrentAggregator(worker_count=4, chunk_size=100)

        def endless():
            for i, line in enumerate(itertools.cycle(SCENARIO)):
                if i == 5_000:
                    agg.cancel()
                yield line

        with pytest.raises(CancellationError):
            agg.aggregate(endless())
        assert agg.cancel_event.is_set()

    def test_external_event_is_used(self):
        event = threading.Event()
        agg = ConcurrentAggregator(cancel_event=event)
        agg.cancel()
        assert event.is_set()


class TestFailures:

    def test_source_error_propagates(self):
        def broken():
            yield from SCENARIO * 100
            raise SourceError("disk went away")

        with pytest.raises(SourceError, match="disk went away"):
            aggregate(broken(), worker_count=3, chunk_size=10)

    def test_worker_error_propagates(self):
        def exploding(record):
            raise RuntimeError("bad predicate")

        with pytest.raises(RuntimeError, match="bad predicate"):
            aggregate(SCENARIO * 1_000, predicate=exploding, worker_count=4, chunk_size=10)

    def test_worker_error_with_endless_source_terminates(self):
        def exploding(record):
            raise RuntimeError("bad predicate")

        with pytest.raises(RuntimeError):
            aggregate(itertools.cycle(SCENARIO), predicate=exploding, worker_count=2, chunk_size=10)


# ---------------------------------------------------------------------------
# Merge and frozen map
# ---------------------------------------------------------------------------

class TestMerge:

    def test_overlapping_keys_sum(self):
        a = PartialAggregate(worker_id=0, counts=Counter({T0: 2, T5: 1}), lines=5, rejected=1, filtered=1)
        b = PartialAggregate(worker_id=1, counts=Counter({T0: 3}), lines=4, rejected=0, filtered=1)
        result = merge_partials([a, b])
        assert result.counts == {T0: 5, T5: 1}
        assert result.lines == 9
        assert result.rejected == 1
        assert result.filtered == 2
        assert result.workers == 2

    def test_merge_order_irrelevant(self):
        a = PartialAggregate(worker_id=0, counts=Counter({T0: 2}))
        b = PartialAggregate(worker_id=1, counts=Counter({T0: 1, T5: 4}))
        assert merge_partials([a, b]).counts == merge_partials([b, a]).counts

    def test_partial_counted(self):
        p = PartialAggregate(worker_id=0, lines=10, rejected=2, filtered=3)
        assert p.counted == 5


class TestAggregateMap:

    def test_read_only(self):
        m = AggregateMap({T0: 1})
        with pytest.raises(TypeError):
            m[T0] = 2

    def test_copy_is_detached(self):
        source = {T0: 1}
        m = AggregateMap(source)
        source[T0] = 99
        assert m[T0] == 1

    def test_total_and_len(self):
        m = AggregateMap({T0: 2, T5: 3})
        assert m.total() == 5
        assert len(m) == 2

    def test_equals_dict(self):
        assert AggregateMap({T0: 1}) == {T0: 1}
        assert AggregateMap() == {}


class TestChunk:

    def test_raw_lines_carry_offsets(self):
        chunk = Chunk(index=3, start=30, lines=["a", "b"])
        assert list(chunk.raw_lines()) == [RawLine(30, "a"), RawLine(31, "b")]


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class TestMetrics:

    def test_counters_updated(self):
        aggregate(SCENARIO + ["garbage"], worker_count=2, chunk_size=2)
        m = METRICS.as_dict()
        assert m["lines_read"] == 4
        assert m["lines_rejected"] == 1
        assert m["records_filtered"] == 1
        assert m["records_counted"] == 2
        assert m["chunks_processed"] == 2
