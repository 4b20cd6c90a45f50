"""
core/models.py

Shared data contracts for every stage of the pipeline.

RawLine      — one input line plus its position in the input
Record       — a parsed, typed log record (Parser output)
Rejected     — payload-free marker for lines that failed to parse
ResultEntry  — one (key, count) pair of the final summary
RunStats     — what a completed run reports back to the caller

Aggregation-internal types (Chunk, PartialAggregate, AggregateMap) live in
aggregation/models.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Hashable, NamedTuple, Union


# ---------------------------------------------------------------------------
# Stage 0 — Input
# ---------------------------------------------------------------------------

class RawLine(NamedTuple):
    """An input line and its 0-based offset in the line source."""

    offset: int
    text: str


# ---------------------------------------------------------------------------
# Stage 1 — Parser output
# ---------------------------------------------------------------------------

ERROR_SEVERITY = "error"


@dataclass(frozen=True, slots=True)
class Record:
    """A log line that matched the record grammar."""

    timestamp: datetime
    """Offset-aware instant, normalised to UTC."""

    severity: str
    """Verbatim severity token, never empty. Compared case-sensitively."""

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR_SEVERITY


class Rejected(Enum):
    """
    Parse outcome for a line that is not a Record.

    Carries no payload: the pipeline only needs to know the line was dropped.
    A single-member enum, so `result is REJECTED` narrows for type checkers.
    """

    REJECTED = "rejected"

    def __repr__(self) -> str:
        return "REJECTED"


REJECTED = Rejected.REJECTED

ParseResult = Union[Record, Rejected]


# ---------------------------------------------------------------------------
# Stage 3 — Materialised output
# ---------------------------------------------------------------------------

AggregateKey = Hashable


class ResultEntry(NamedTuple):
    """One line of the summary: a bucket key and its record count."""

    key: Any
    count: int


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RunStats:
    """Counters and timing for one completed pipeline run."""

    lines_read: int
    records: int
    """Records that passed the predicate and were counted."""

    rejected: int
    """Lines dropped because they did not parse."""

    filtered: int
    """Parsed records the predicate excluded."""

    buckets: int
    """Distinct keys in the final summary."""

    workers: int
    elapsed_seconds: float

    @property
    def lines_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.lines_read / self.elapsed_seconds

    def as_dict(self) -> dict:
        return {
            "lines_read": self.lines_read,
            "records": self.records,
            "rejected": self.rejected,
            "filtered": self.filtered,
            "buckets": self.buckets,
            "workers": self.workers,
            "elapsed_seconds": round(self.elapsed_seconds, 4),
            "lines_per_second": round(self.lines_per_second, 1),
        }

