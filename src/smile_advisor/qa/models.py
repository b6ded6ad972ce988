"""QA data models: structural issues, semantic violations, and gate results.

All models are frozen; derived verdict flags are computed fields so they are
part of every serialized result.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class QAOutcome(str, Enum):
    """Final delivery decision."""

    PASS = "PASS"
    FLAG = "FLAG"
    BLOCK = "BLOCK"


class IssueSeverity(str, Enum):
    """Severity of a structural validation issue."""

    ERROR = "error"
    WARNING = "warning"


class ViolationSeverity(str, Enum):
    """Severity of a semantic leakage violation."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"


class CheckCategory(str, Enum):
    """Structural check category run by the composition validator."""

    STRUCTURE = "structure"
    WORD_COUNTS = "word_counts"
    CARDINALITY = "cardinality"
    SUPPRESSION = "suppression"
    PLACEHOLDERS = "placeholders"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ValidationIssue(BaseModel):
    """A single structural issue found in a composed report."""

    model_config = ConfigDict(frozen=True)

    code: str
    severity: IssueSeverity
    category: CheckCategory
    message: str
    section_number: int | None = None


class ValidationResult(BaseModel):
    """Structural validation outcome: errors block, warnings flag."""

    model_config = ConfigDict(frozen=True)

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    checked_at: str = Field(default_factory=_utcnow_iso)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> ValidationResult:
        return cls(
            errors=[i for i in issues if i.severity == IssueSeverity.ERROR],
            warnings=[i for i in issues if i.severity == IssueSeverity.WARNING],
        )


class SemanticViolation(BaseModel):
    """A phrase or pattern that breaks tone or safety boundaries."""

    model_config = ConfigDict(frozen=True)

    phrase: str
    rule: str
    severity: ViolationSeverity
    section_number: int
    position: int


class SemanticLeakageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    violations: list[SemanticViolation] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def critical_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == ViolationSeverity.CRITICAL)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def warning_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == ViolationSeverity.WARNING)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def clean(self) -> bool:
        return not self.violations


class EvaluationResult(BaseModel):
    """Advisory quality score. Informational only."""

    model_config = ConfigDict(frozen=True)

    overall_score: float
    dimension_scores: dict[str, float] = Field(default_factory=dict)
    summary: str = ""
    model: str = ""
    evaluated_at: str = Field(default_factory=_utcnow_iso)


class QAGateResult(BaseModel):
    """Merged structural and semantic outcome for one composed report."""

    model_config = ConfigDict(frozen=True)

    outcome: QAOutcome
    validation: ValidationResult
    semantic: SemanticLeakageResult
    reasons: list[str] = Field(default_factory=list)
    evaluation: EvaluationResult | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_deliver(self) -> bool:
        return self.outcome != QAOutcome.BLOCK

    @computed_field  # type: ignore[prop-decorator]
    @property
    def requires_review(self) -> bool:
        return self.outcome == QAOutcome.FLAG
