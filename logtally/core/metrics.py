"""
core/metrics.py

Process-wide run tallies for the aggregation pipeline.

Workers add their per-chunk totals once per chunk, not once per line, so the
lock is never on the per-line hot path. The driver adds one run outcome per
run. Everything is cumulative across runs until reset_all().

Usage:
    from logtally.core.metrics import METRICS
    METRICS.lines_read.add(10_000)
    print(METRICS.as_dict())
"""

from __future__ import annotations

import threading
from typing import Iterator


class Tally:
    """A named, thread-safe running total."""

    __slots__ = ("name", "_total", "_lock")

    def __init__(self, name: str) -> None:
        self.name = name
        self._total = 0
        self._lock = threading.Lock()

    def add(self, n: int = 1) -> int:
        """Add `n` (must be >= 0) and return the new total."""
        if n < 0:
            raise ValueError(f"{self.name}: tallies only grow, got {n}")
        with self._lock:
            self._total += n
            return self._total

    def reset(self) -> None:
        with self._lock:
            self._total = 0

    @property
    def value(self) -> int:
        return self._total

    def __repr__(self) -> str:
        return f"<Tally {self.name}={self._total}>"


class Metrics:
    """Line, chunk and run-outcome tallies shared by every driver."""

    def __init__(self) -> None:
        # --- Aggregation workers ---
        self.lines_read = Tally("lines_read")
        self.lines_rejected = Tally("lines_rejected")
        """Lines that did not match the record grammar."""

        self.records_filtered = Tally("records_filtered")
        """Parsed records excluded by the predicate."""

        self.records_counted = Tally("records_counted")
        self.chunks_processed = Tally("chunks_processed")

        # --- Driver ---
        self.runs_completed = Tally("runs_completed")
        self.runs_cancelled = Tally("runs_cancelled")
        self.runs_failed = Tally("runs_failed")
        """SourceError, SinkError or an unexpected exception."""

    def _tallies(self) -> Iterator[Tally]:
        return (t for t in vars(self).values() if isinstance(t, Tally))

    def as_dict(self) -> dict[str, int]:
        return {t.name: t.value for t in self._tallies()}

    def reset_all(self) -> None:
        for t in self._tallies():
            t.reset()


METRICS = Metrics()
