"""Run-level hooks: structured logging setup and the per-run decision trace."""

from __future__ import annotations

from smile_advisor.hooks.logging_config import setup_logging
from smile_advisor.hooks.run_tracker import (
    RunTrace,
    end_run,
    get_current_run,
    record,
    sanitize,
    start_run,
    track_stage,
)

__all__ = [
    "RunTrace",
    "end_run",
    "get_current_run",
    "record",
    "sanitize",
    "setup_logging",
    "start_run",
    "track_stage",
]
