"""
streams/source.py

Line sources: the input collaborator of the pipeline.

A line source is any iterable of str; exhausting it is the end-of-input
signal. The helpers here read text files or streams lazily, strip the line
terminator, and turn I/O and decoding failures into SourceError so the
driver can tell "the input broke" apart from everything else.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Iterator, TextIO

from ..errors import SourceError

logger = logging.getLogger(__name__)


def _strip(line: str) -> str:
    return line.rstrip("\r\n")


def file_lines(path: str | os.PathLike, encoding: str = "utf-8") -> Iterator[str]:
    """
    Yield the lines of a text file, without terminators.

    The file is opened on first iteration and closed when the generator is
    exhausted or closed.

    Raises:
        SourceError: the file cannot be opened, read, or decoded.
    """
    try:
        with open(path, "r", encoding=encoding, newline="") as fh:
            logger.info("Reading %s (encoding=%s)", os.fspath(path), encoding)
            for line in fh:
                yield _strip(line)
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceError(f"cannot read {os.fspath(path)!r}: {exc}") from exc


def stream_lines(stream: TextIO) -> Iterator[str]:
    """
    Yield the lines of an already-open text stream (e.g. sys.stdin).

    The stream is not closed.

    Raises:
        SourceError: reading or decoding the stream fails.
    """
    try:
        for line in stream:
            yield _strip(line)
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceError(f"cannot read input stream: {exc}") from exc


def guarded(lines: Iterable[str]) -> Iterator[str]:
    """
    Wrap an arbitrary line source so I/O failures surface as SourceError.

    Used by the driver for caller-supplied iterables that do not come from
    the helpers above.
    """
    try:
        yield from lines
    except SourceError:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceError(f"line source failed: {exc}") from exc
