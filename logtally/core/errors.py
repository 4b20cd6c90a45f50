"""
core/errors.py

Exception hierarchy surfaced by the pipeline driver.

Malformed input lines are NOT errors: the aggregator drops them and counts
them in RunStats.rejected. Everything here is fatal to the run it occurs in.

    LogTallyError
    ├── SourceError        — the line source could not be opened / read / decoded
    ├── SinkError          — writing the summary failed
    └── CancellationError  — the run was asked to stop
        └── DeadlineExceeded — ... because its deadline elapsed
"""

from __future__ import annotations


class LogTallyError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class SourceError(LogTallyError):
    """The input collaborator failed. No output is written."""


class SinkError(LogTallyError):
    """
    The output collaborator failed while writing.

    Anything already written stays where it is; cleaning it up is the
    caller's job.
    """


class CancellationError(LogTallyError):
    """The run was cancelled before it completed. No partial result is returned."""


class DeadlineExceeded(CancellationError):
    """The run was cancelled because its deadline elapsed."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"run exceeded its deadline of {timeout:g}s")
        self.timeout = timeout
