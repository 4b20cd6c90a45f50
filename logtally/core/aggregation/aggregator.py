"""
aggregation/aggregator.py

ConcurrentAggregator — fans parse + filter + count out across worker threads
and merges their private partial maps into one frozen AggregateMap.

Scheduling:
  - Producer: the calling thread. It reads the line source, cuts it into
    contiguous Chunks of `chunk_size` lines and puts them on a bounded
    queue.Queue (depth `queue_depth`). The bound gives back-pressure, so
    reading the source overlaps with worker CPU time without buffering the
    whole input.
  - Workers: `worker_count` threads. Each pulls the next available chunk,
    so a fast worker simply takes more chunks. Each owns a PartialAggregate;
    the per-line path takes no locks.
  - Merge barrier: after every worker has returned, the partial maps are
    summed. Counting is associative and commutative, so the result does not
    depend on worker count, chunk boundaries, or which worker got which chunk.

Stopping:
  - Cancellation: workers check the cancel event before taking each chunk;
    the producer checks it before each put. A cancelled run raises
    CancellationError. No partial map is ever returned.
  - Failure: if the line source raises, or a worker raises (e.g. a faulty
    predicate), an internal stop event halts everyone and the original
    exception propagates to the caller.

Malformed lines are never errors here: they are dropped, tallied as
`rejected`, and never retried.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from itertools import islice
from typing import Iterable, Sequence

from ..errors import CancellationError
from ..metrics import METRICS
from ..models import REJECTED
from ..parsing.classify import Predicate, is_error
from ..parsing.parser import parse_line
from .bucketer import KeyFn, timestamp_key
from .models import AggregateMap, AggregateResult, Chunk, PartialAggregate

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10_000

# How long a blocked put/get waits before re-checking the stop/cancel events.
_POLL_SECONDS = 0.05

# Queued once per worker after the last chunk.
_END = None


class ConcurrentAggregator:
    """
    Counts records per key across a fixed pool of worker threads.

    Args:
        predicate:    Record -> bool; only matching records are counted.
        key_fn:       Record -> aggregation key.
        worker_count: Number of worker threads (>= 1).
        chunk_size:   Lines per chunk (>= 1).
        queue_depth:  Max chunks waiting on the queue; 0 → 2 per worker.
        cancel_event: Optional externally owned threading.Event. Setting it
                      cancels the aggregation in flight.
    """

    def __init__(
        self,
        predicate: Predicate = is_error,
        key_fn: KeyFn = timestamp_key,
        worker_count: int = 1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        queue_depth: int = 0,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        if queue_depth < 0:
            raise ValueError(f"queue_depth must be >= 0, got {queue_depth}")

        self._predicate = predicate
        self._key_fn = key_fn
        self._workers = worker_count
        self._chunk_size = chunk_size
        self._queue_depth = queue_depth or 2 * worker_count
        self._cancel = cancel_event if cancel_event is not None else threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def worker_count(self) -> int:
        return self._workers

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    def cancel(self) -> None:
        """Ask the workers to stop before their next chunk."""
        self._cancel.set()

    def aggregate(self, lines: Iterable[str]) -> AggregateResult:
        """
        Consume `lines` to exhaustion and return the merged, frozen result.

        Blocks until every worker has finished and the merge is done.

        Raises:
            CancellationError: the cancel event was set during the run.
            Exception:         whatever the line source or a worker raised.
        """
        chunks: queue.Queue = queue.Queue(maxsize=self._queue_depth)
        stop = threading.Event()

        def _on_worker_done(fut: Future) -> None:
            if not fut.cancelled() and fut.exception() is not None:
                stop.set()

        with ThreadPoolExecutor(
            max_workers=self._workers,
            thread_name_prefix="logtally-worker",
        ) as pool:
            futures = [
                pool.submit(self._work, worker_id, chunks, stop)
                for worker_id in range(self._workers)
            ]
            for fut in futures:
                fut.add_done_callback(_on_worker_done)

            try:
                self._produce(lines, chunks, stop)
            except BaseException:
                # Source failed: release the workers, then let the pool join them.
                stop.set()
                raise

        # --- Merge barrier: every worker has returned ---
        partials = [fut.result() for fut in futures]

        if self._cancel.is_set():
            logger.warning("Aggregation cancelled — discarding %d partial maps", len(partials))
            raise CancellationError("aggregation cancelled")

        return merge_partials(partials)

    # ------------------------------------------------------------------
    # Producer (calling thread)
    # ------------------------------------------------------------------

    def _produce(
        self,
        lines: Iterable[str],
        chunks: queue.Queue,
        stop: threading.Event,
    ) -> None:
        it = iter(lines)
        index = 0
        start = 0
        while batch := list(islice(it, self._chunk_size)):
            if not self._put(chunks, Chunk(index, start, batch), stop):
                return
            index += 1
            start += len(batch)

        logger.debug("Producer done — %d lines in %d chunks", start, index)
        for _ in range(self._workers):
            if not self._put(chunks, _END, stop):
                return

    def _put(self, chunks: queue.Queue, item: Chunk | None, stop: threading.Event) -> bool:
        """Blocking put that gives up (returns False) once the run is halted."""
        while not self._halted(stop):
            try:
                chunks.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _halted(self, stop: threading.Event) -> bool:
        return stop.is_set() or self._cancel.is_set()

    def _work(
        self,
        worker_id: int,
        chunks: queue.Queue,
        stop: threading.Event,
    ) -> PartialAggregate:
        partial = PartialAggregate(worker_id=worker_id)
        while not self._halted(stop):
            try:
                chunk = chunks.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            if chunk is _END:
                break
            self._consume(partial, chunk)
        logger.debug("Worker finished — %r", partial)
        return partial

    def _consume(self, partial: PartialAggregate, chunk: Chunk) -> None:
        """Parse, filter and count one chunk into the worker's own map."""
        predicate = self._predicate
        key_fn = self._key_fn
        counts = partial.counts
        trace = logger.isEnabledFor(logging.DEBUG)
        rejected = 0
        filtered = 0

        for raw in chunk.raw_lines():
            result = parse_line(raw.text)
            if result is REJECTED:
                rejected += 1
                if trace:
                    logger.debug("Rejected line %d: %.120r", raw.offset, raw.text)
                continue
            if not predicate(result):
                filtered += 1
                continue
            counts[key_fn(result)] += 1

        n = len(chunk.lines)
        partial.lines += n
        partial.rejected += rejected
        partial.filtered += filtered
        partial.chunks += 1

        METRICS.lines_read.add(n)
        METRICS.lines_rejected.add(rejected)
        METRICS.records_filtered.add(filtered)
        METRICS.records_counted.add(n - rejected - filtered)
        METRICS.chunks_processed.add()


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def merge_partials(partials: Sequence[PartialAggregate]) -> AggregateResult:
    """
    Sum worker partial maps into one frozen AggregateResult.

    Keys present in several partials have their counts added; nothing is
    deduplicated and nothing is dropped.
    """
    merged: Counter = Counter()
    lines = rejected = filtered = 0
    for partial in partials:
        merged.update(partial.counts)
        lines += partial.lines
        rejected += partial.rejected
        filtered += partial.filtered

    result = AggregateResult(
        counts=AggregateMap(merged),
        lines=lines,
        rejected=rejected,
        filtered=filtered,
        workers=len(partials),
    )
    logger.debug(
        "Merged %d partial maps — keys=%d lines=%d rejected=%d filtered=%d",
        len(partials), len(merged), lines, rejected, filtered,
    )
    return result


def aggregate(
    lines: Iterable[str],
    predicate: Predicate = is_error,
    key_fn: KeyFn = timestamp_key,
    worker_count: int = 1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    queue_depth: int = 0,
    cancel_event: threading.Event | None = None,
) -> AggregateResult:
    """Functional shorthand for ConcurrentAggregator(...).aggregate(lines)."""
    return ConcurrentAggregator(
        predicate=predicate,
        key_fn=key_fn,
        worker_count=worker_count,
        chunk_size=chunk_size,
        queue_depth=queue_depth,
        cancel_event=cancel_event,
    ).aggregate(lines)
