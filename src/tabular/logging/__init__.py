"""Structured event logging for tabular.

Provides the event schema, a filesystem NDJSON sink, and emit helpers
that never raise.
"""

from tabular.logging.events import (
    EventLevel,
    EventType,
    TabularEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    get_log_dir,
    set_log_dir,
)
from tabular.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "TabularEvent",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "get_log_dir",
    "set_log_dir",
]
