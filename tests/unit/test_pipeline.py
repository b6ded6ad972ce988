"""End-to-end tests for the report pipeline."""

from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import ValidationError

from smile_advisor.content.memory_backend import MemoryContentRepository
from smile_advisor.core.config import AppSettings, CompositionConfig
from smile_advisor.models import IntakeData, ProgressEvent, QuestionAnswer, StageStatus
from smile_advisor.pipeline.audit import ERROR_SCENARIO_ID
from smile_advisor.pipeline.orchestrator import CANCELLED, STAGES, ReportPipeline
from smile_advisor.qa.models import QAOutcome
from tests.fakes.fake_content_repository import (
    BrokenContentRepository,
    RecordingContentRepository,
    StalledContentRepository,
)
from tests.fakes.fake_evaluator import FakeEvaluator


def _stages(events: list[ProgressEvent]) -> list[tuple[str, str]]:
    return [(e.stage_name, e.status.value) for e in events]


class TestReportPipeline:
    @pytest.mark.asyncio
    async def test_pass_with_static_sections_only(self, catalog, posterior_intake) -> None:
        result = await ReportPipeline(catalog, MemoryContentRepository()).run(posterior_intake)
        assert result.success
        assert result.outcome == QAOutcome.PASS
        assert result.error is None
        assert [s.section_number for s in result.report.sections] == [1, 11]

        audit = result.audit
        assert audit.session_id == "sess-posterior"
        assert audit.report_delivered
        assert audit.final_outcome == QAOutcome.PASS
        assert audit.scenario_match.matched_scenario == "S03"
        assert audit.tone_selection.selected_tone == "TP-01"
        assert audit.qa_result.outcome == QAOutcome.PASS
        assert audit.composed_report == result.report

    @pytest.mark.asyncio
    async def test_authored_content(self, catalog, content_repository, posterior_intake) -> None:
        result = await ReportPipeline(catalog, content_repository).run(posterior_intake)
        assert result.outcome == QAOutcome.PASS
        report = result.report
        assert report.section(2).content.startswith("Sam, you are missing")
        assert report.section(8).content == "Treatment usually takes 3-5 appointments."
        warnings = result.audit.qa_result.validation.warnings
        assert {w.section_number for w in warnings} == {3, 4}

    @pytest.mark.asyncio
    async def test_progress_events_in_stage_order(self, catalog, posterior_intake) -> None:
        events: list[ProgressEvent] = []
        await ReportPipeline(catalog, MemoryContentRepository()).run(posterior_intake, on_progress=events.append)

        expected = [(name, status) for name in STAGES for status in ("started", "completed")]
        assert _stages(events) == expected
        assert [e.stage_index for e in events[::2]] == list(range(1, 10))
        completed = [e for e in events if e.status == StageStatus.COMPLETED]
        assert all(e.duration_ms is not None for e in completed)
        assert completed[3].metrics["scenario"] == "S03"

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, catalog, posterior_intake) -> None:
        seen: list[str] = []

        async def on_progress(event: ProgressEvent) -> None:
            await asyncio.sleep(0)
            seen.append(event.stage_name)

        await ReportPipeline(catalog, MemoryContentRepository()).run(posterior_intake, on_progress=on_progress)
        assert len(seen) == 2 * len(STAGES)

    @pytest.mark.asyncio
    async def test_failing_progress_callback_does_not_break_run(self, catalog, posterior_intake) -> None:
        def on_progress(event: ProgressEvent) -> None:
            raise RuntimeError("listener gone")

        result = await ReportPipeline(catalog, MemoryContentRepository()).run(posterior_intake, on_progress=on_progress)
        assert result.outcome == QAOutcome.PASS

    @pytest.mark.asyncio
    async def test_invalid_intake_blocks_before_tagging(self, catalog) -> None:
        events: list[ProgressEvent] = []
        intake = IntakeData(
            session_id="sess-invalid",
            answers=[QuestionAnswer(question_id="Q6a", answer="one_missing")],
        )
        result = await ReportPipeline(catalog, MemoryContentRepository()).run(intake, on_progress=events.append)

        assert not result.success
        assert result.outcome == QAOutcome.BLOCK
        assert result.report is None
        assert result.error.startswith("Input validation failed: Q5:")
        assert _stages(events) == [("input_validation", "started"), ("input_validation", "error")]
        assert result.audit.scenario_match.matched_scenario == ERROR_SCENARIO_ID
        assert result.audit.intake == intake
        assert result.audit.tags == []

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, catalog, posterior_intake) -> None:
        events: list[ProgressEvent] = []
        cancel = asyncio.Event()
        cancel.set()
        result = await ReportPipeline(catalog, MemoryContentRepository()).run(
            posterior_intake, on_progress=events.append, cancel_event=cancel
        )
        assert result.outcome == QAOutcome.BLOCK
        assert result.error == CANCELLED
        assert events == []

    @pytest.mark.asyncio
    async def test_cancelled_between_stages(self, catalog, posterior_intake) -> None:
        cancel = asyncio.Event()
        events: list[ProgressEvent] = []

        def on_progress(event: ProgressEvent) -> None:
            events.append(event)
            if event.stage_name == "tone_selection" and event.status == StageStatus.COMPLETED:
                cancel.set()

        result = await ReportPipeline(catalog, MemoryContentRepository()).run(
            posterior_intake, on_progress=on_progress, cancel_event=cancel
        )
        assert result.error == CANCELLED
        assert not result.success
        assert events[-1].stage_name == "tone_selection"
        assert result.audit.tone_selection is not None
        assert result.audit.content_selections == []
        assert result.audit.composed_report is None

    @pytest.mark.asyncio
    async def test_repository_failure_is_contained(self, catalog, posterior_intake) -> None:
        events: list[ProgressEvent] = []
        result = await ReportPipeline(catalog, BrokenContentRepository()).run(
            posterior_intake, on_progress=events.append
        )
        assert result.outcome == QAOutcome.BLOCK
        assert result.error == "RuntimeError: content store offline"
        audit = result.audit
        assert audit.error == result.error
        assert audit.intake == posterior_intake
        assert audit.tags
        assert audit.driver_state.value_of("clinical_priority") == "elective"
        assert audit.scenario_match.matched_scenario == "S03"
        assert audit.tone_selection.selected_tone == "TP-01"
        assert audit.content_selections
        assert audit.composed_report is None
        assert audit.qa_result is None
        assert events[-1].stage_name == "scenario_content"
        assert events[-1].status == StageStatus.ERROR
        assert events[-1].message == "content store offline"

    @pytest.mark.asyncio
    async def test_missing_required_content_policy(self, catalog, posterior_intake) -> None:
        settings = AppSettings(composition=CompositionConfig(fail_on_missing_required_content=True))
        result = await ReportPipeline(catalog, MemoryContentRepository(), settings).run(posterior_intake)
        assert result.outcome == QAOutcome.BLOCK
        assert result.report is None
        assert result.audit.qa_result.reasons[0] == "Required content missing for sections [2, 10]"
        assert result.audit.composed_report is not None

    @pytest.mark.asyncio
    async def test_acute_presentation(self, catalog, content_repository, acute_intake) -> None:
        result = await ReportPipeline(catalog, content_repository).run(acute_intake)
        assert result.success
        audit = result.audit
        assert audit.scenario_match.matched_scenario == "S12"
        assert audit.scenario_match.safety_override
        assert audit.tone_selection.selected_tone == "TP-04"
        assert set(result.report.suppressed_sections) == {5, 6, 7, 8, 9}
        assert [s.section_number for s in result.report.sections] == [0, 1, 2, 3, 4, 10, 11]
        assert "A_BLOCK_TREATMENT_OPTIONS" in result.report.section(0).sources

    @pytest.mark.asyncio
    async def test_decision_trace(self, catalog, posterior_intake) -> None:
        result = await ReportPipeline(catalog, MemoryContentRepository()).run(posterior_intake)
        trace = [(e.stage, e.action) for e in result.audit.decision_trace]
        assert trace[0] == ("input_validation", "validated")
        assert ("scenario_scoring", "scenario_selected") in trace
        assert ("tone_selection", "tone_selected") in trace
        assert [stage for stage, action in trace if action == "completed"] == list(STAGES)
        selected = next(e for e in result.audit.decision_trace if e.action == "scenario_selected")
        assert selected.data["scenario"] == "S03"

    @pytest.mark.asyncio
    async def test_scenario_content_requested_in_selected_tone(self, catalog, acute_intake) -> None:
        repo = RecordingContentRepository()
        await ReportPipeline(catalog, repo).run(acute_intake)
        assert repo.scenario_lookups == [("S12", "TP-04", "en")]
        assert ("STATIC_NEXT_STEPS", "TP-06", "en") in repo.block_lookups

    @pytest.mark.asyncio
    async def test_evaluation_attached_to_audit(self, catalog, posterior_intake) -> None:
        evaluator = FakeEvaluator(score=8.5)
        result = await ReportPipeline(catalog, MemoryContentRepository(), evaluator=evaluator).run(posterior_intake)
        assert result.outcome == QAOutcome.PASS
        assert result.audit.qa_result.evaluation.overall_score == 8.5
        assert len(evaluator.calls) == 1

    @pytest.mark.asyncio
    async def test_deterministic(self, catalog, content_repository, posterior_intake) -> None:
        pipeline = ReportPipeline(catalog, content_repository)
        first = await pipeline.run(posterior_intake)
        second = await pipeline.run(posterior_intake)
        assert first.report.model_dump(exclude={"composed_at"}) == second.report.model_dump(exclude={"composed_at"})
        assert first.audit.run_id != second.audit.run_id

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, catalog, posterior_intake) -> None:
        repo = StalledContentRepository()
        events: list[ProgressEvent] = []
        task = asyncio.create_task(ReportPipeline(catalog, repo).run(posterior_intake, on_progress=events.append))
        await repo.entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert _stages(events)[-1] == ("scenario_content", "error")
        assert events[-1].message == CANCELLED


class TestAuditRecord:
    @pytest.mark.asyncio
    async def test_audit_keeps_its_own_report_copy(self, catalog, content_repository, posterior_intake) -> None:
        result = await ReportPipeline(catalog, content_repository).run(posterior_intake)
        assert result.report is not result.audit.composed_report
        sections = [s.section_number for s in result.audit.composed_report.sections]

        result.report.sections.clear()
        assert [s.section_number for s in result.audit.composed_report.sections] == sections

    @pytest.mark.asyncio
    async def test_audit_and_qa_result_are_frozen(self, catalog, posterior_intake) -> None:
        result = await ReportPipeline(catalog, MemoryContentRepository()).run(posterior_intake)
        with pytest.raises(ValidationError):
            result.audit.final_outcome = QAOutcome.BLOCK
        with pytest.raises(ValidationError):
            result.audit.qa_result.outcome = QAOutcome.BLOCK
        with pytest.raises(ValidationError):
            result.audit.qa_result.validation.checked_at = "never"
        assert result.audit.qa_result.outcome == QAOutcome.PASS

    @pytest.mark.asyncio
    async def test_serialized_audit_carries_qa_verdict(self, catalog, content_repository, posterior_intake) -> None:
        result = await ReportPipeline(catalog, content_repository).run(posterior_intake)
        qa = json.loads(result.model_dump_json())["audit"]["qa_result"]

        assert qa["outcome"] == "PASS"
        assert qa["can_deliver"] is True
        assert qa["requires_review"] is False
        assert qa["validation"]["valid"] is True
        assert qa["semantic"]["clean"] is True
        assert qa["semantic"]["critical_count"] == 0
        assert qa["semantic"]["warning_count"] == 0
