"""Tests for the per-run decision trace."""

from __future__ import annotations

import pytest

from smile_advisor.hooks.run_tracker import (
    REDACTED,
    end_run,
    get_current_run,
    record,
    sanitize,
    start_run,
    track_stage,
)


@pytest.fixture(autouse=True)
def _no_active_run():
    end_run()
    yield
    end_run()


class TestSanitize:
    def test_redacts_sensitive_keys_recursively(self) -> None:
        data = {"api_key": "sk-1", "nested": {"Password": "x", "ok": 1}, "items": [{"token": "t"}]}
        assert sanitize(data) == {
            "api_key": REDACTED,
            "nested": {"Password": REDACTED, "ok": 1},
            "items": [{"token": REDACTED}],
        }

    def test_truncates_long_strings(self) -> None:
        assert sanitize("abcdef", max_length=3) == "abc...[truncated]"
        assert sanitize("abc", max_length=3) == "abc"

    def test_sets_become_lists(self) -> None:
        assert sanitize({"tags": ("a", "b")}) == {"tags": ["a", "b"]}


class TestRunTrace:
    def test_noop_without_active_run(self) -> None:
        assert get_current_run() is None
        assert record("stage", "action", x=1) is None
        with track_stage("stage") as timer:
            timer.metrics["x"] = 1
        assert timer.duration_ms is not None
        assert end_run() is None

    def test_records_events_in_order(self) -> None:
        trace = start_run(session_id="s-1", run_id="run-1")
        assert get_current_run() is trace
        with track_stage("tag_extraction") as timer:
            timer.metrics["tag_count"] = 3
        record("scenario_scoring", "scenario_selected", scenario="S03")
        assert end_run() is trace
        assert get_current_run() is None

        assert [(e.stage, e.action) for e in trace.events] == [
            ("tag_extraction", "completed"),
            ("scenario_scoring", "scenario_selected"),
        ]
        assert trace.events[0].data == {"tag_count": 3}
        assert trace.events[0].duration_ms is not None
        assert trace.events[1].data == {"scenario": "S03"}

    def test_failed_stage_recorded_and_reraised(self) -> None:
        trace = start_run(session_id="s-1")
        with pytest.raises(ValueError):
            with track_stage("composition"):
                raise ValueError("boom")
        end_run()
        assert [(e.stage, e.action) for e in trace.events] == [("composition", "failed")]

    def test_trace_data_is_sanitized(self) -> None:
        trace = start_run(session_id="s-1", max_string_length=5)
        record("evaluation", "called", api_key="sk-123", summary="a long summary")
        end_run()
        assert trace.events[0].data == {"api_key": REDACTED, "summary": "a lon...[truncated]"}

    def test_generated_run_id(self) -> None:
        trace = start_run()
        end_run()
        assert len(trace.run_id) == 12
