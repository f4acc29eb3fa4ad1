"""Diagnostics written alongside imports."""

from corpusflow.diagnostics.trace import NullTraceLog, TraceLog, make_file_safe

__all__ = [
    "TraceLog",
    "NullTraceLog",
    "make_file_safe",
]
