"""
parsing/classify.py

Predicates over parsed Records. Stateless, so one instance is shared by
every worker thread.
"""

from __future__ import annotations

from typing import Callable

from ..models import Record

Predicate = Callable[[Record], bool]


def is_error(record: Record) -> bool:
    """True for records whose severity is exactly 'error'."""
    return record.is_error


def severity_is(severity: str) -> Predicate:
    """
    Build a predicate matching one severity, compared case-sensitively.

    Usage:
        warn_only = severity_is("warn")
        warn_only(record)   # True iff record.severity == "warn"
    """
    if not severity:
        raise ValueError("severity must not be empty")

    def _matches(record: Record) -> bool:
        return record.severity == severity

    _matches.__name__ = f"severity_is_{severity}"
    return _matches


def accept_all(record: Record) -> bool:
    return True
