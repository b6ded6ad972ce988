"""Audit record builders for complete, partial and failed runs."""

from __future__ import annotations

from dataclasses import dataclass, field

from smile_advisor.hooks.run_tracker import RunTrace
from smile_advisor.models import (
    AuditRecord,
    ComposedReport,
    ConfidenceLevel,
    ContentSelectionResult,
    DriverState,
    IntakeData,
    ScenarioMatchResult,
    TagExtractionResult,
    ToneSelectionResult,
)
from smile_advisor.qa.models import QAGateResult, QAOutcome

ERROR_SCENARIO_ID = "ERROR"


@dataclass
class RunArtifacts:
    """Everything a run has produced so far. Later stages fill in more fields."""

    intake: IntakeData
    tags: TagExtractionResult | None = None
    driver_state: DriverState | None = None
    match: ScenarioMatchResult | None = None
    tone: ToneSelectionResult | None = None
    selection: ContentSelectionResult | None = None
    scenario_sections: dict[str, str] = field(default_factory=dict)
    report: ComposedReport | None = None
    qa: QAGateResult | None = None


def unscored_match(reason: str) -> ScenarioMatchResult:
    """Stand-in scenario match for runs that stopped before (or failed during) scoring."""
    return ScenarioMatchResult(
        matched_scenario=ERROR_SCENARIO_ID,
        scenario_name="No scenario selected",
        confidence=ConfidenceLevel.FALLBACK,
        fallback_used=True,
        fallback_reason=reason,
    )


def build_audit(
    artifacts: RunArtifacts,
    trace: RunTrace,
    *,
    outcome: QAOutcome,
    delivered: bool,
    error: str | None = None,
) -> AuditRecord:
    """Snapshot the artifacts. Intake, report and QA result are deep-copied so the audit never shares them."""
    return AuditRecord(
        session_id=artifacts.intake.session_id,
        run_id=trace.run_id,
        intake=artifacts.intake.model_copy(deep=True),
        tags=list(artifacts.tags.tags) if artifacts.tags is not None else [],
        driver_state=artifacts.driver_state,
        scenario_match=artifacts.match or unscored_match(error or "Run stopped before scenario scoring"),
        tone_selection=artifacts.tone,
        content_selections=list(artifacts.selection.selections) if artifacts.selection is not None else [],
        composed_report=artifacts.report.model_copy(deep=True) if artifacts.report is not None else None,
        qa_result=artifacts.qa.model_copy(deep=True) if artifacts.qa is not None else None,
        decision_trace=list(trace.events),
        final_outcome=outcome,
        report_delivered=delivered,
        error=error,
    )
