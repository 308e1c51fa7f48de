"""NDJSON event log for document runs.

Layout under a project directory::

    logs/events.ndjson          every event, in emission order
    logs/runs/<run_id>.ndjson   the events of one ``process_document`` run

Each event is one JSON object per line with sorted keys.  Appends take an
exclusive ``fcntl.flock`` and reads a shared one; where ``fcntl`` is missing
(Windows) files are used unlocked.  Reads only look at the last
``tail_bytes`` of a log, so a long-lived project's log never has to be
loaded whole.
"""

from __future__ import annotations

import json
import os
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from notecalc.logging.events import EventType, NotecalcEvent

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

# Run ids become file names; anything else could escape logs/runs/.
_RUN_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
_MAX_QUERY_LIMIT = 2000

_OUTCOME_TYPES = (EventType.document_processed.value, EventType.document_exhausted.value)


@dataclass
class RunLog:
    """The events of one document run, with per-line failures pulled out.

    Attributes:
        run_id: The run's id.
        events: All events of the run, oldest first.
        line_errors: Line index to error code, from ``line_error`` events.
        outcome: The closing ``document_processed`` or
            ``document_exhausted`` event, if the run got that far.
    """

    run_id: str
    events: list[dict[str, Any]] = field(default_factory=list)
    line_errors: dict[int, str] = field(default_factory=dict)
    outcome: dict[str, Any] | None = None

    @property
    def converged(self) -> bool | None:
        if self.outcome is None:
            return None
        return self.outcome.get("event_type") == EventType.document_processed.value


class EventSink:
    """Writes and queries the event logs of one project directory."""

    def __init__(self, project_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = Path(project_dir) / "logs"
        self.runs_dir = self.logs_dir / "runs"
        self.global_log = self.logs_dir / "events.ndjson"
        self._fsync = fsync
        self._tail_bytes = tail_bytes or _DEFAULT_TAIL_BYTES
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def run_log_path(self, run_id: str) -> Path | None:
        """Where *run_id*'s events live, or None for an unusable id."""
        if not _RUN_ID_RE.match(run_id):
            return None
        return self.runs_dir / f"{run_id}.ndjson"

    def write(self, event: NotecalcEvent, *, run_id: str | None = None) -> None:
        """Append *event* to the global log, and to the run's log if given."""
        record = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str)
        targets = [self.global_log]
        run_path = self.run_log_path(run_id) if run_id else None
        if run_path is not None:
            targets.append(run_path)
        for path in targets:
            self._append(path, record + "\n")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        run_id: str | None = None,
        line: int | None = None,
        error_code: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Events from the global log matching every given filter.

        Results are most recent first and capped at *limit* (at most 2000).
        ``line`` matches events attributed to that document line, which in
        practice means ``line_error`` events.
        """
        wanted_context = {
            key: value
            for key, value in (("run_id", run_id), ("line", line))
            if value is not None
        }

        def matches(evt: dict[str, Any]) -> bool:
            if level and evt.get("level") != level:
                return False
            if event_type and evt.get("event_type") != event_type:
                return False
            if error_code and evt.get("error_code") != error_code:
                return False
            context = evt.get("context") or {}
            return all(context.get(k) == v for k, v in wanted_context.items())

        found = [evt for evt in reversed(self._read(self.global_log)) if matches(evt)]
        return found[: min(limit, _MAX_QUERY_LIMIT)]

    def read_run_log(self, run_id: str) -> list[dict[str, Any]]:
        """All events of one document run, oldest first."""
        path = self.run_log_path(run_id)
        return self._read(path) if path is not None else []

    def read_run(self, run_id: str) -> RunLog:
        """One document run's events, with line errors grouped by line."""
        run = RunLog(run_id=run_id, events=self.read_run_log(run_id))
        for evt in run.events:
            kind = evt.get("event_type")
            if kind == EventType.line_error.value:
                line = (evt.get("context") or {}).get("line")
                if isinstance(line, int):
                    run.line_errors[line] = evt.get("error_code") or ""
            elif kind in _OUTCOME_TYPES:
                run.outcome = evt
        run.line_errors = dict(sorted(run.line_errors.items()))
        return run

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _append(self, path: Path, record: str) -> None:
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
        try:
            with _flocked(fd, exclusive=True):
                os.write(fd, record.encode("utf-8"))
                if self._fsync:
                    os.fsync(fd)
        finally:
            os.close(fd)

    def _read(self, path: Path) -> list[dict[str, Any]]:
        """Parse the tail of an NDJSON log; corrupt lines are skipped."""
        if not path.exists():
            return []
        with open(path, "rb") as f:
            with _flocked(f.fileno(), exclusive=False):
                size = os.fstat(f.fileno()).st_size
                start = max(0, size - self._tail_bytes)
                f.seek(start)
                data = f.read()
        if start:
            # Starting mid-file: the first line is almost surely partial.
            data = data.partition(b"\n")[2]

        events: list[dict[str, Any]] = []
        for raw in data.decode("utf-8", errors="replace").splitlines():
            if not raw.strip():
                continue
            try:
                events.append(json.loads(raw))
            except json.JSONDecodeError:
                continue
        return events


@contextmanager
def _flocked(fd: int, *, exclusive: bool) -> Iterator[None]:
    if fcntl is None:
        yield
        return
    fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
