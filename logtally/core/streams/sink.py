"""
streams/sink.py

Output sinks: the pipeline hands each sink the complete, already ordered
list of ResultEntry exactly once, after aggregation has finished.

TextSink — renders "<key> <count>" lines onto an open text stream
FileSink — same, but opens its file only when results arrive, so a run that
           fails before materialisation leaves no output file behind
ListSink — keeps the entries in memory (library use and tests)

Write failures are raised as SinkError. Whatever was written before the
failure is left in place.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol, Sequence, TextIO

from ..errors import SinkError
from ..materialize import KeyFormat, format_entry
from ..models import ResultEntry

logger = logging.getLogger(__name__)


class Sink(Protocol):
    def write(self, entries: Sequence[ResultEntry]) -> None: ...


class TextSink:
    """Writes entries to an open text stream. The stream is not closed."""

    def __init__(self, stream: TextIO, key_format: KeyFormat = KeyFormat.ISO) -> None:
        self._stream = stream
        self._key_format = KeyFormat(key_format)

    def write(self, entries: Sequence[ResultEntry]) -> None:
        try:
            for entry in entries:
                self._stream.write(format_entry(entry, self._key_format) + "\n")
            self._stream.flush()
        except (OSError, ValueError) as exc:
            # ValueError: write to a closed stream
            raise SinkError(f"cannot write summary: {exc}") from exc


class FileSink:
    """Writes entries to `path`, replacing any existing file."""

    def __init__(
        self,
        path: str | os.PathLike,
        key_format: KeyFormat = KeyFormat.ISO,
        encoding: str = "utf-8",
    ) -> None:
        self.path = path
        self._key_format = KeyFormat(key_format)
        self._encoding = encoding

    def write(self, entries: Sequence[ResultEntry]) -> None:
        try:
            with open(self.path, "w", encoding=self._encoding, newline="\n") as fh:
                TextSink(fh, self._key_format).write(entries)
        except OSError as exc:
            raise SinkError(f"cannot write {os.fspath(self.path)!r}: {exc}") from exc
        logger.info("Wrote %d entries to %s", len(entries), os.fspath(self.path))


class ListSink:
    """Collects entries in memory."""

    def __init__(self) -> None:
        self.entries: list[ResultEntry] = []

    def write(self, entries: Sequence[ResultEntry]) -> None:
        self.entries.extend(entries)

    def lines(self, key_format: KeyFormat = KeyFormat.ISO) -> list[str]:
        """The entries rendered exactly as TextSink would write them."""
        return [format_entry(e, key_format) for e in self.entries]
