"""
parsing/parser.py

Converts one raw log line into a typed Record, or REJECTED.

Record grammar (one fixed format):

    [<timestamp>] [<component>:<id>] [<severity>] [<category>] <message>

    e.g. [2024-01-01T00:00:00Z] [svc:1] [error] [db] connection refused

Design principles:
  - Called concurrently from every aggregation worker thread. It must be
    pure: no I/O, no logging on the hot path, no shared mutable state.
  - Never raises on bad input. Both failure modes collapse to REJECTED:
      * the line does not match the grammar
      * it matches, but the timestamp is not an offset-aware ISO-8601 instant
  - Severity is kept verbatim (no case folding).
  - Timestamps are normalised to UTC, so the same instant written with
    different offsets produces the same aggregation key.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from ..models import REJECTED, ParseResult, Record

# [ts] [component:id] [severity] [category] message
# Bracketed fields cannot contain ']'; component cannot contain ':'.
LINE_PATTERN = re.compile(
    r"\[(?P<timestamp>[^\]]+)\]\s"
    r"\[(?P<component>[^\]:]*):(?P<id>[^\]]*)\]\s"
    r"\[(?P<severity>[^\]]+)\]\s"
    r"\[(?P<category>[^\]]*)\]\s"
    r"(?P<message>.+)"
)

# datetime holds microseconds; longer fractions would be silently truncated
MAX_FRACTION_DIGITS = 6
_FRACTION = re.compile(r"[.,](\d+)")


def parse_timestamp(text: str) -> datetime | None:
    """
    Parse an offset-aware ISO-8601 timestamp and normalise it to UTC.

    Accepts a trailing 'Z' or a numeric offset ('+02:00'). Returns None for
    anything unparsable, for naive timestamps (no offset), since a naive
    value does not identify a single instant, and for fractions finer than
    a microsecond, which cannot be kept distinct.
    """
    fraction = _FRACTION.search(text)
    if fraction is not None and len(fraction.group(1)) > MAX_FRACTION_DIGITS:
        return None
    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        return None
    if ts.tzinfo is None or ts.utcoffset() is None:
        return None
    return ts.astimezone(timezone.utc)


def parse_line(line: str) -> ParseResult:
    """
    Parse one log line.

    Args:
        line: Raw text. A trailing newline (LF or CRLF) is ignored.

    Returns:
        Record on success, REJECTED otherwise.
    """
    match = LINE_PATTERN.fullmatch(line.rstrip("\r\n"))
    if match is None:
        return REJECTED

    timestamp = parse_timestamp(match.group("timestamp"))
    if timestamp is None:
        return REJECTED

    return Record(timestamp=timestamp, severity=match.group("severity"))
