"""
streams/__init__.py

Public API for the streams sub-package (line sources and output sinks).
"""

from .sink import FileSink, ListSink, Sink, TextSink
from .source import file_lines, guarded, stream_lines

__all__ = [
    "file_lines",
    "stream_lines",
    "guarded",
    "Sink",
    "TextSink",
    "FileSink",
    "ListSink",
]
