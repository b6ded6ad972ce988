"""Pydantic v2 models for every artifact a pipeline run produces.

Reference data (scenarios, rule tables) lives in ``smile_advisor.catalog.models``;
QA result types live in ``smile_advisor.qa.models``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from smile_advisor.qa.models import QAGateResult, QAOutcome

SECTION_NUMBERS: tuple[int, ...] = tuple(range(12))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentType(str, Enum):
    """Kind of content block a selection refers to."""

    SCENARIO = "scenario"
    A_BLOCK = "a_block"
    B_BLOCK = "b_block"
    MODULE = "module"
    STATIC = "static"


class ConfidenceLevel(str, Enum):
    """Strength of a scenario match."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    FALLBACK = "FALLBACK"


class DriverLayer(str, Enum):
    """Driver layer: L1 safety, L2 personalization, L3 narrative."""

    L1 = "L1"
    L2 = "L2"
    L3 = "L3"


class StageStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    ERROR = "error"


# ── Intake ────────────────────────────────────────────────────────────


class QuestionAnswer(BaseModel):
    """One answered questionnaire item."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    answer: Union[str, list[str]]
    skipped: bool = False

    @field_validator("answer", mode="before")
    @classmethod
    def _coerce_scalars(cls, value: Any) -> Any:
        # numeric scale answers arrive as JSON numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return value

    def values(self) -> list[str]:
        """Return the answer as a list of raw string values."""
        if isinstance(self.answer, list):
            return [str(v) for v in self.answer]
        return [str(self.answer)]

    def is_empty(self) -> bool:
        return self.skipped or not any(v.strip() for v in self.values())


class IntakeData(BaseModel):
    """A complete questionnaire submission."""

    session_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    language: Literal["en", "nl"] = "en"
    answers: list[QuestionAnswer] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)

    def answer_for(self, question_id: str) -> QuestionAnswer | None:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None


# ── Tags and drivers ──────────────────────────────────────────────────


class ExtractedTag(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: str
    source_question: str
    source_answer: str


class TagExtractionResult(BaseModel):
    session_id: str
    tags: list[ExtractedTag] = Field(default_factory=list)
    missing_questions: list[str] = Field(default_factory=list)

    @property
    def tag_set(self) -> set[str]:
        return {t.tag for t in self.tags}


class DriverValue(BaseModel):
    """A driver bound to exactly one resolved value, with provenance."""

    driver_id: str
    layer: DriverLayer
    value: str
    source: Literal["derived", "fallback"]
    source_tags: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class DriverConflict(BaseModel):
    driver_id: str
    conflicting_values: list[str]
    resolved_value: str
    resolution_reason: str


class DriverState(BaseModel):
    """Resolved value for every catalog driver plus conflict/fallback logs."""

    session_id: str
    drivers: dict[str, DriverValue] = Field(default_factory=dict)
    conflicts: list[DriverConflict] = Field(default_factory=list)
    fallbacks_applied: list[str] = Field(default_factory=list)

    def value_of(self, driver_id: str) -> str | None:
        driver = self.drivers.get(driver_id)
        return driver.value if driver is not None else None


# ── Scenario matching and tone ────────────────────────────────────────


class ScenarioScore(BaseModel):
    scenario_id: str
    score: float = 0.0
    max_possible: float = 0.0
    matched_criteria: list[str] = Field(default_factory=list)
    excluded: bool = False
    exclusion_reason: str = ""


class ScenarioMatchResult(BaseModel):
    """Winning scenario, its confidence tier and the ranked candidate list."""

    matched_scenario: str
    scenario_name: str = ""
    score: float = 0.0
    confidence: ConfidenceLevel
    all_scores: list[ScenarioScore] = Field(default_factory=list)
    fallback_used: bool = False
    fallback_reason: str | None = None
    safety_override: bool = False


class ToneSelectionResult(BaseModel):
    selected_tone: str
    reason: str
    evaluated_triggers: list[dict[str, Any]] = Field(default_factory=list)


# ── Content selection and composition ────────────────────────────────


class ContentSelection(BaseModel):
    """A content block bound to a report section. Suppressed entries are kept for audit."""

    content_id: str
    content_type: ContentType
    target_section: int = Field(ge=0, le=11)
    tone: str
    priority: int = 10
    suppressed: bool = False
    suppression_reason: str | None = None


class ContentSelectionResult(BaseModel):
    selections: list[ContentSelection] = Field(default_factory=list)
    suppressed_sections: list[int] = Field(default_factory=list)

    def for_section(self, section_number: int) -> list[ContentSelection]:
        return [s for s in self.selections if s.target_section == section_number]


class ReportSection(BaseModel):
    section_number: int = Field(ge=0, le=11)
    section_name: str
    content: str
    sources: list[str] = Field(default_factory=list)
    word_count: int = 0


class ComposedReport(BaseModel):
    """The assembled report. Each section number is either rendered or suppressed."""

    session_id: str
    scenario_id: str
    tone: str
    language: str
    confidence: ConfidenceLevel
    sections: list[ReportSection] = Field(default_factory=list)
    total_word_count: int = 0
    warnings_included: bool = False
    suppressed_sections: list[int] = Field(default_factory=list)
    placeholders_resolved: int = 0
    placeholders_unresolved: int = 0
    unresolved_placeholders: list[str] = Field(default_factory=list)
    composed_at: datetime = Field(default_factory=_utcnow)

    def section(self, section_number: int) -> ReportSection | None:
        for section in self.sections:
            if section.section_number == section_number:
                return section
        return None

    def render(self) -> str:
        """Plain-text rendering: headed sections joined by blank lines."""
        return "\n\n".join(f"## {s.section_name}\n\n{s.content}" for s in self.sections)


# ── Progress, trace and audit ─────────────────────────────────────────


class ProgressEvent(BaseModel):
    """Emitted once per stage transition, strictly in pipeline order."""

    stage_index: int
    stage_name: str
    status: StageStatus
    message: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    metrics: dict[str, Any] = Field(default_factory=dict)
    duration_ms: float | None = None


class TraceEvent(BaseModel):
    stage: str
    action: str
    timestamp: datetime = Field(default_factory=_utcnow)
    duration_ms: float | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class AuditRecord(BaseModel):
    """Immutable snapshot of every intermediate artifact of one run."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    run_id: str
    created_at: datetime = Field(default_factory=_utcnow)
    intake: IntakeData | None = None
    tags: list[ExtractedTag] = Field(default_factory=list)
    driver_state: DriverState | None = None
    scenario_match: ScenarioMatchResult
    tone_selection: ToneSelectionResult | None = None
    content_selections: list[ContentSelection] = Field(default_factory=list)
    composed_report: ComposedReport | None = None
    qa_result: QAGateResult | None = None
    decision_trace: list[TraceEvent] = Field(default_factory=list)
    final_outcome: QAOutcome
    report_delivered: bool = False
    error: str | None = None


class PipelineResult(BaseModel):
    success: bool
    outcome: QAOutcome
    report: ComposedReport | None = None
    audit: AuditRecord
    error: str | None = None
