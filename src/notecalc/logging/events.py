"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and reported on stderr, and nothing is written until
``set_project_dir()`` has configured a sink.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Single-expression evaluation
    evaluate_completed = "evaluate_completed"
    evaluate_failed = "evaluate_failed"

    # Document processing
    document_processed = "document_processed"
    document_exhausted = "document_exhausted"
    line_error = "line_error"


# ---------------------------------------------------------------------------
# Error codes (one per evaluation error kind)
# ---------------------------------------------------------------------------

PARSE_ERROR = "parse_error"
UNKNOWN_FUNCTION = "unknown_function"
ARGUMENT_ERROR = "argument_error"
DIVISION_BY_ZERO = "division_by_zero"
EVALUATION_ERROR = "evaluation_error"
ITERATION_BUDGET_EXHAUSTED = "iteration_budget_exhausted"


# ---------------------------------------------------------------------------
# Context sanitizing
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* safe to persist.

    String values longer than 256 chars (whole expressions, document
    excerpts) are truncated; nested dicts and lists are handled recursively.
    """
    return {k: _redact_value(v) for k, v in context.items()}


def _redact_value(v: Any) -> Any:
    if isinstance(v, dict):
        return redact_context(v)
    if isinstance(v, list):
        return [_redact_value(item) for item in v]
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Attribution invariants
# ---------------------------------------------------------------------------

_EVENT_REQUIRED_KEYS: dict[str, set[str]] = {
    EventType.evaluate_completed.value: {"expression"},
    EventType.evaluate_failed.value: {"expression"},
    EventType.document_processed.value: {"run_id"},
    EventType.document_exhausted.value: {"run_id"},
    EventType.line_error.value: {"run_id", "line"},
}


def _validate_attribution(event: NotecalcEvent) -> NotecalcEvent:
    """Check required context keys; downgrade to warning if missing."""
    event_type = event.event_type.value if isinstance(event.event_type, EventType) else event.event_type
    required = _EVENT_REQUIRED_KEYS.get(event_type, set())
    missing = required - set(event.context.keys())
    if not missing:
        return event
    ctx = dict(event.context)
    ctx["_missing_attribution"] = sorted(missing)
    return event.model_copy(update={"level": EventLevel.warning, "context": ctx})


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class NotecalcEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_document_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    run_id: str,
    line: int | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> NotecalcEvent:
    """Build an event with guaranteed document-run attribution context."""
    ctx: dict[str, Any] = {"run_id": run_id}
    if line is not None:
        ctx["line"] = line
    if extra:
        ctx.update(extra)
    return NotecalcEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Lazily initialised when ``set_project_dir`` is called.
_sink: Any = None  # EventSink | None


def set_project_dir(project_dir: Any) -> None:
    """Configure the module-level event sink for a project directory.

    Reads ``logging_fsync`` and ``logging_tail_bytes`` from the project
    config (``notecalc.yaml``) to configure the sink.
    """
    global _sink
    from pathlib import Path

    from notecalc.config import ConfigError, load_config
    from notecalc.logging.sink import EventSink

    project_dir = Path(project_dir)
    fsync = False
    tail_bytes = None
    try:
        cfg = load_config(project_dir)
        fsync = bool(cfg.get("logging_fsync", False))
        tb = cfg.get("logging_tail_bytes")
        if tb is not None:
            tail_bytes = int(tb)
    except (ConfigError, TypeError, ValueError):
        _stderr_warning("could not read logging options; using defaults")

    _sink = EventSink(project_dir, fsync=fsync, tail_bytes=tail_bytes)


def reset_sink() -> None:
    """Stop writing events (used by tests and long-lived hosts)."""
    global _sink
    _sink = None


def _get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[notecalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: NotecalcEvent, *, run_id: str | None = None) -> None:
    """Write an event to the global log and optionally to a per-run log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = _get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": redact_context(event.context)})
        event = _validate_attribution(event)
        sink.write(event, run_id=run_id)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    run_id: str | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        NotecalcEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        ),
        run_id=run_id,
    )


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    run_id: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        NotecalcEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        run_id=run_id,
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    run_id: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        NotecalcEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        run_id=run_id,
    )
