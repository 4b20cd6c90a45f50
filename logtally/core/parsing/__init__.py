"""
parsing/__init__.py

Public API for the parsing sub-package.
"""

from .classify import Predicate, accept_all, is_error, severity_is
from .parser import LINE_PATTERN, parse_line, parse_timestamp

__all__ = [
    "LINE_PATTERN",
    "parse_line",
    "parse_timestamp",
    "Predicate",
    "accept_all",
    "is_error",
    "severity_is",
]
