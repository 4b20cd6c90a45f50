"""
aggregation/models.py

Data models for the aggregation stage.

Chunk            — contiguous batch of input lines handed to one worker
PartialAggregate — worker-private counts + tallies (never shared while live)
AggregateMap     — frozen key → count mapping produced by the merge
AggregateResult  — AggregateMap plus the summed tallies of every worker
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from ..models import RawLine


# ---------------------------------------------------------------------------
# Chunk — unit of work on the queue
# ---------------------------------------------------------------------------

class Chunk(NamedTuple):
    """
    A contiguous slice of the input.

    `start` is the offset of the first line, so line i of the chunk is
    input line `start + i`.
    """

    index: int
    start: int
    lines: list[str]

    def raw_lines(self) -> Iterator[RawLine]:
        for offset, text in enumerate(self.lines, self.start):
            yield RawLine(offset, text)

    def __repr__(self) -> str:
        return f"Chunk(#{self.index} lines={self.start}..{self.start + len(self.lines) - 1})"


# ---------------------------------------------------------------------------
# PartialAggregate — one per worker
# ---------------------------------------------------------------------------

@dataclass
class PartialAggregate:
    """
    Counts accumulated by a single worker.

    Owned exclusively by that worker until it returns; ownership then moves
    to the merge step. Not thread-safe, and never needs to be.
    """

    worker_id: int
    counts: Counter = field(default_factory=Counter)

    lines: int = 0
    rejected: int = 0
    filtered: int = 0
    chunks: int = 0

    @property
    def counted(self) -> int:
        return self.lines - self.rejected - self.filtered

    def __repr__(self) -> str:
        return (
            f"PartialAggregate(worker={self.worker_id} "
            f"chunks={self.chunks} lines={self.lines} "
            f"rejected={self.rejected} filtered={self.filtered} "
            f"keys={len(self.counts)})"
        )


# ---------------------------------------------------------------------------
# AggregateMap — frozen merge result
# ---------------------------------------------------------------------------

class AggregateMap(Mapping):
    """
    Read-only key → count mapping.

    Built once by the merge barrier and never mutated afterwards, so it can
    be shared between threads without locking. Compares equal to any Mapping
    with the same items (including a plain dict).
    """

    __slots__ = ("_counts",)

    def __init__(self, counts: Mapping[Any, int] | None = None) -> None:
        self._counts: dict[Any, int] = dict(counts or {})

    def __getitem__(self, key: Any) -> int:
        return self._counts[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def total(self) -> int:
        """Sum of all counts."""
        return sum(self._counts.values())

    def __repr__(self) -> str:
        return f"AggregateMap(keys={len(self._counts)} total={self.total()})"


# ---------------------------------------------------------------------------
# AggregateResult — what the aggregator hands to the driver
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class AggregateResult:
    counts: AggregateMap
    lines: int
    rejected: int
    filtered: int
    workers: int

    @property
    def counted(self) -> int:
        return self.counts.total()
