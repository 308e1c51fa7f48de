"""Structured event logging for notecalc.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from notecalc.logging.events import (
    EventLevel,
    EventType,
    NotecalcEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    make_document_event,
    redact_context,
    reset_sink,
    set_project_dir,
)
from notecalc.logging.sink import EventSink, RunLog

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "NotecalcEvent",
    "RunLog",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "make_document_event",
    "redact_context",
    "reset_sink",
    "set_project_dir",
]
