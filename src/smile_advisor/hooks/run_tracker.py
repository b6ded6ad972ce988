"""Per-run decision trace using ContextVars.

Every pipeline run activates its own ``RunTrace``; stage code records
decisions with ``record()`` and times itself with ``track_stage()``. Both
are no-ops when no run is active, so engine components stay usable on
their own.

Usage::

    trace = start_run(session_id="s-1")
    with track_stage("tag_extraction") as stage:
        stage.metrics["tag_count"] = 12
    record("scenario_scoring", "scenario_selected", scenario="S03")
    trace = end_run()
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generator

import structlog

from smile_advisor.models import TraceEvent

DEFAULT_MAX_STRING_LENGTH = 1000
REDACTED = "[REDACTED]"
_SENSITIVE_KEYS = ("password", "token", "secret", "api_key")


@dataclass
class RunTrace:
    """Decision trace of one pipeline run."""

    run_id: str
    session_id: str
    started_at: datetime
    max_string_length: int = DEFAULT_MAX_STRING_LENGTH
    events: list[TraceEvent] = field(default_factory=list)

    def add(
        self,
        stage: str,
        action: str,
        data: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> TraceEvent:
        event = TraceEvent(
            stage=stage,
            action=action,
            duration_ms=duration_ms,
            data=sanitize(data or {}, self.max_string_length),
        )
        self.events.append(event)
        return event


@dataclass
class StageTimer:
    """Handed out by ``track_stage``; callers attach metrics before the block exits."""

    stage: str
    started: float = field(default_factory=time.perf_counter)
    metrics: dict[str, Any] = field(default_factory=dict)
    duration_ms: float | None = None


_current_run: ContextVar[RunTrace | None] = ContextVar("smile_current_run", default=None)
_run_tokens: ContextVar[Token | None] = ContextVar("smile_run_token", default=None)


def sanitize(value: Any, max_length: int = DEFAULT_MAX_STRING_LENGTH) -> Any:
    """Redact credential-like keys and truncate long strings, recursively."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            if any(marker in str(key).lower() for marker in _SENSITIVE_KEYS):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = sanitize(item, max_length)
        return cleaned
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize(item, max_length) for item in value]
    if isinstance(value, str) and len(value) > max_length:
        return value[:max_length] + "...[truncated]"
    return value


def get_current_run() -> RunTrace | None:
    """Get the active RunTrace, or None if no run is active."""
    return _current_run.get()


def start_run(
    session_id: str = "",
    run_id: str | None = None,
    max_string_length: int = DEFAULT_MAX_STRING_LENGTH,
) -> RunTrace:
    """Create and activate a new RunTrace for the current context."""
    trace = RunTrace(
        run_id=run_id or uuid.uuid4().hex[:12],
        session_id=session_id,
        started_at=datetime.now(timezone.utc),
        max_string_length=max_string_length,
    )
    _run_tokens.set(_current_run.set(trace))
    structlog.contextvars.bind_contextvars(run_id=trace.run_id, session_id=session_id)
    return trace


def end_run() -> RunTrace | None:
    """Deactivate the current run and return its trace. Returns None if no run is active."""
    trace = _current_run.get()
    if trace is None:
        return None

    token = _run_tokens.get()
    if token is not None:
        _current_run.reset(token)
        _run_tokens.set(None)
    else:
        _current_run.set(None)

    structlog.contextvars.unbind_contextvars("run_id", "session_id")
    return trace


def record(stage: str, action: str, **data: Any) -> TraceEvent | None:
    """Append a decision to the active run's trace."""
    trace = _current_run.get()
    if trace is None:
        return None
    return trace.add(stage, action, data)


@contextmanager
def track_stage(name: str) -> Generator[StageTimer, None, None]:
    """Time a stage and record a ``completed`` trace event with its metrics.

    A stage that raises records ``failed`` instead, then re-raises.
    """
    timer = StageTimer(stage=name)
    structlog.contextvars.bind_contextvars(stage=name)
    action = "completed"
    try:
        yield timer
    except BaseException:
        action = "failed"
        raise
    finally:
        timer.duration_ms = round((time.perf_counter() - timer.started) * 1000, 3)
        trace = _current_run.get()
        if trace is not None:
            trace.add(name, action, timer.metrics, duration_ms=timer.duration_ms)
        structlog.contextvars.unbind_contextvars("stage")
