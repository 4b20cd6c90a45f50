"""
core/materialize.py

Turns the frozen AggregateMap into the ordered summary and renders entries
as text.

Worker scheduling leaves the merged map's iteration order unspecified, so
the default SORTED mode re-imposes a total order (ascending key) before
anything leaves the pipeline. UNORDERED is the explicitly requested fast
path: it skips the sort and emits keys in whatever order the merge produced.

Text contract (one entry per line):

    <key> <count>

    2024-01-01T00:00:00Z 2        KeyFormat.ISO   (default)
    1704067200 2                  KeyFormat.EPOCH
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .models import ResultEntry

logger = logging.getLogger(__name__)


class OutputOrder(str, Enum):
    SORTED    = "sorted"
    UNORDERED = "unordered"


class KeyFormat(str, Enum):
    ISO   = "iso"
    EPOCH = "epoch"


def materialize(
    counts: Mapping[Any, int],
    order: OutputOrder = OutputOrder.SORTED,
) -> list[ResultEntry]:
    """
    Convert a key → count mapping into a list of ResultEntry.

    Args:
        counts: The frozen merge result. Keys must be mutually comparable
                when `order` is SORTED.
        order:  SORTED (ascending key) or UNORDERED (map iteration order).

    Returns:
        One ResultEntry per key. Keys are unique because they come from a
        mapping, so SORTED output is strictly ascending.
    """
    entries = [ResultEntry(key, count) for key, count in counts.items()]
    if OutputOrder(order) is OutputOrder.SORTED:
        entries.sort(key=lambda e: e.key)
    logger.debug("Materialised %d entries (%s)", len(entries), OutputOrder(order).value)
    return entries


def render_key(key: Any, key_format: KeyFormat = KeyFormat.ISO) -> str:
    """
    Render one key as text.

    Datetimes are rendered in UTC: ISO form ends in 'Z' and shows
    milliseconds or microseconds only when present; EPOCH form is whole
    seconds. Any other key type is rendered with str().
    """
    if not isinstance(key, datetime):
        return str(key)

    utc = key.astimezone(timezone.utc) if key.tzinfo is not None else key
    if KeyFormat(key_format) is KeyFormat.EPOCH:
        return str(int(utc.replace(tzinfo=timezone.utc).timestamp() // 1))

    if utc.microsecond == 0:
        spec = "seconds"
    elif utc.microsecond % 1000 == 0:
        spec = "milliseconds"
    else:
        spec = "microseconds"
    return utc.replace(tzinfo=None).isoformat(timespec=spec) + "Z"


def format_entry(entry: ResultEntry, key_format: KeyFormat = KeyFormat.ISO) -> str:
    """'<key> <count>' — the line format of the summary file."""
    return f"{render_key(entry.key, key_format)} {entry.count}"
