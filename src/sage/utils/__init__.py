"""
Utilities module - logging sinks shared by the kernel and completion engine.
"""

from sage.utils.logger import JsonFormatter, LogSink, NullSink, StructuredSink, get_sink

__all__ = ["LogSink", "NullSink", "StructuredSink", "JsonFormatter", "get_sink"]
