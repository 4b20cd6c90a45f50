"""
core/pipeline.py

Pipeline driver — wires parser, aggregator, materialiser and sink into a
single blocking run() call.

Stage order (no streaming, no partial emission):

    line source ──► ConcurrentAggregator (parse + filter + bucket, N threads)
                          │  merge barrier: frozen AggregateMap
                          ▼
                    materialize()  (single thread, sorts by key)
                          │
                          ▼
                        sink.write(entries)   (exactly once)

Outcomes:
  - success      → RunStats
  - SourceError  → input broke; nothing was written to the sink
  - SinkError    → output broke; partial output is the caller's to clean up
  - CancellationError → cancel() was called (DeadlineExceeded when a
                        run_with_deadline() deadline elapsed)

Timeouts belong here and nowhere else: run_with_deadline() runs the blocking
driver in a thread and cancels it when the deadline passes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .aggregation import ConcurrentAggregator, KeyFn, make_bucketer, truncate_to
from .aggregation.aggregator import DEFAULT_CHUNK_SIZE
from .errors import CancellationError, DeadlineExceeded, SinkError
from .materialize import KeyFormat, OutputOrder, materialize
from .metrics import METRICS
from .models import ERROR_SEVERITY, RunStats
from .parsing import Predicate, is_error, severity_is
from .streams.source import guarded

if TYPE_CHECKING:
    from .config import Settings
    from .streams.sink import Sink

logger = logging.getLogger(__name__)


def _default_worker_count() -> int:
    return os.cpu_count() or 1


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Immutable knobs for one driver. Validated on construction."""

    worker_count: int = field(default_factory=_default_worker_count)
    chunk_size: int = DEFAULT_CHUNK_SIZE
    queue_depth: int = 0
    """Max chunks buffered between reader and workers; 0 → 2 per worker."""

    severity: str = ERROR_SEVERITY
    bucket_seconds: int = 0
    """0 → the raw timestamp is the key; N → N-second buckets."""

    order: OutputOrder = OutputOrder.SORTED
    key_format: KeyFormat = KeyFormat.ISO

    def __post_init__(self) -> None:
        if self.worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {self.worker_count}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.queue_depth < 0:
            raise ValueError(f"queue_depth must be >= 0, got {self.queue_depth}")
        if self.bucket_seconds < 0:
            raise ValueError(f"bucket_seconds must be >= 0, got {self.bucket_seconds}")
        if not self.severity:
            raise ValueError("severity must not be empty")
        # Accept plain strings ("sorted", "epoch") from settings / CLI
        object.__setattr__(self, "order", OutputOrder(self.order))
        object.__setattr__(self, "key_format", KeyFormat(self.key_format))

    @classmethod
    def from_settings(cls, s: "Settings | None" = None) -> "PipelineConfig":
        if s is None:
            from .config import settings as s
        return cls(
            worker_count=s.WORKER_COUNT,
            chunk_size=s.CHUNK_SIZE,
            queue_depth=s.QUEUE_DEPTH,
            severity=s.SEVERITY,
            bucket_seconds=s.BUCKET_SECONDS,
            order=OutputOrder(s.OUTPUT_ORDER),
            key_format=KeyFormat(s.KEY_FORMAT),
        )


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

class PipelineDriver:
    """
    Runs the full pipeline for one line source and one sink.

    Args:
        config:       PipelineConfig; defaults to PipelineConfig().
        predicate:    Overrides the severity predicate derived from config.
        key_fn:       Overrides the bucketer derived from config.
        cancel_event: Optional externally owned threading.Event.

    Cancellation is sticky: once cancel() has been called every run() on
    this driver raises CancellationError. Build a new driver to run again.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        predicate: Predicate | None = None,
        key_fn: KeyFn | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config if config is not None else PipelineConfig()
        if predicate is None:
            predicate = (
                is_error
                if self.config.severity == ERROR_SEVERITY
                else severity_is(self.config.severity)
            )
        self._predicate = predicate
        if key_fn is None:
            key_fn = self._default_key_fn(self.config)
        self._key_fn = key_fn
        self._cancel = cancel_event if cancel_event is not None else threading.Event()

    @staticmethod
    def _default_key_fn(config: PipelineConfig) -> KeyFn:
        # Epoch keys render whole seconds, so raw sub-second instants would
        # print as duplicate lines. Fold them into one-second buckets first.
        if config.key_format is KeyFormat.EPOCH and config.bucket_seconds == 0:
            return truncate_to(1)
        return make_bucketer(config.bucket_seconds)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Ask an in-flight run to stop. Safe to call from any thread."""
        if not self._cancel.is_set():
            logger.info("Cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, line_source: Iterable[str], sink: "Sink") -> RunStats:
        """
        Aggregate `line_source`, materialise the result and write it to `sink`.

        Blocks until the sink has been written (or the run fails).
        """
        cfg = self.config
        started = time.monotonic()
        logger.info(
            "Run started — workers=%d chunk_size=%d severity=%r bucket=%ss order=%s",
            cfg.worker_count, cfg.chunk_size, cfg.severity,
            cfg.bucket_seconds or "raw", cfg.order.value,
        )

        aggregator = ConcurrentAggregator(
            predicate=self._predicate,
            key_fn=self._key_fn,
            worker_count=cfg.worker_count,
            chunk_size=cfg.chunk_size,
            queue_depth=cfg.queue_depth,
            cancel_event=self._cancel,
        )

        try:
            result = aggregator.aggregate(guarded(line_source))
            if self._cancel.is_set():
                # Cancelled after the merge but before anything was written
                raise CancellationError("run cancelled before output")
        except CancellationError:
            METRICS.runs_cancelled.add()
            logger.warning("Run cancelled after %.3fs — no output written", time.monotonic() - started)
            raise
        except Exception:
            METRICS.runs_failed.add()
            logger.error("Run failed after %.3fs — no output written", time.monotonic() - started)
            raise

        entries = materialize(result.counts, cfg.order)

        try:
            sink.write(entries)
        except SinkError:
            METRICS.runs_failed.add()
            raise
        except OSError as exc:
            METRICS.runs_failed.add()
            raise SinkError(f"sink failed: {exc}") from exc

        stats = RunStats(
            lines_read=result.lines,
            records=result.counted,
            rejected=result.rejected,
            filtered=result.filtered,
            buckets=len(entries),
            workers=result.workers,
            elapsed_seconds=time.monotonic() - started,
        )
        METRICS.runs_completed.add()
        logger.info(
            "Run complete in %.3fs (%.0f lines/s) — %s",
            stats.elapsed_seconds, stats.lines_per_second, stats.as_dict(),
        )
        return stats


def run(
    line_source: Iterable[str],
    sink: "Sink",
    config: PipelineConfig | None = None,
    cancel_event: threading.Event | None = None,
) -> RunStats:
    """Functional shorthand for PipelineDriver(config, ...).run(line_source, sink)."""
    return PipelineDriver(config, cancel_event=cancel_event).run(line_source, sink)


# ---------------------------------------------------------------------------
# Deadline wrapper
# ---------------------------------------------------------------------------

async def run_with_deadline(
    driver: PipelineDriver,
    line_source: Iterable[str],
    sink: "Sink",
    timeout: float,
) -> RunStats:
    """
    Run `driver` in a worker thread and cancel it if `timeout` seconds pass.

    The blocking run is shielded from wait_for() so that on timeout the
    driver is cancelled cooperatively and its workers are joined before
    DeadlineExceeded is raised. If the awaiting task itself is cancelled the
    driver is cancelled too, its thread is awaited, and asyncio.CancelledError
    propagates.

    A run that completes in the window between the deadline firing and the
    workers observing cancellation returns its stats normally.
    """
    task = asyncio.ensure_future(asyncio.to_thread(driver.run, line_source, sink))
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Deadline of %gs exceeded — cancelling run", timeout)
        driver.cancel()
        try:
            return await task
        except CancellationError as exc:
            raise DeadlineExceeded(timeout) from exc
    except asyncio.CancelledError:
        driver.cancel()
        # Join the thread so its CancellationError is retrieved, not orphaned
        with contextlib.suppress(CancellationError):
            await task
        raise
