"""Intake validation: question ids, answer values, types, required and conditional questions.

Errors block the pipeline; warnings are recorded and the offending answer is
left out of the sanitized intake handed to tag extraction.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Literal

from pydantic import BaseModel, Field

from smile_advisor.catalog.models import Catalog, QuestionSpec
from smile_advisor.engine.tag_extractor import normalize_answer
from smile_advisor.exceptions import IntakeValidationError
from smile_advisor.models import IntakeData, QuestionAnswer

log = logging.getLogger(__name__)

_NUMERIC_RE = re.compile(r"^\d+(?:\.\d+)?$")


class IntakeIssue(BaseModel):
    code: str
    message: str
    severity: Literal["error", "warning"]
    question_id: str | None = None
    expected: list[str] = Field(default_factory=list)
    received: Any = None


class IntakeValidationResult(BaseModel):
    valid: bool
    errors: list[IntakeIssue] = Field(default_factory=list)
    warnings: list[IntakeIssue] = Field(default_factory=list)
    sanitized: IntakeData | None = None

    @property
    def error_question_ids(self) -> list[str]:
        return list(dict.fromkeys(e.question_id for e in self.errors if e.question_id))

    def summary(self) -> str:
        """One-line description of the blocking issues."""
        if self.valid:
            return "Validation passed"
        parts = [f"{e.question_id}: {e.message}" if e.question_id else e.message for e in self.errors]
        return "Input validation failed: " + "; ".join(parts)


def canonical_value(raw: str) -> str:
    """Normalized answer; integral numbers lose a trailing ``.0``."""
    stripped = raw.strip()
    if not _NUMERIC_RE.match(stripped):
        return normalize_answer(raw)
    number = float(stripped)
    return str(int(number)) if number.is_integer() else stripped


class IntakeValidator:
    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def validate(self, intake: IntakeData) -> IntakeValidationResult:
        """Validate and return a result. Never raises."""
        errors: list[IntakeIssue] = []
        warnings: list[IntakeIssue] = []
        dropped: set[int] = set()

        def _report(issue: IntakeIssue) -> None:
            (errors if issue.severity == "error" else warnings).append(issue)

        if not intake.session_id.strip():
            errors.append(
                IntakeIssue(code="MISSING_SESSION_ID", message="Intake is missing session_id", severity="error")
            )

        answered = {a.question_id: a for a in intake.answers if not a.is_empty()}
        for question_id, spec in self._catalog.questions.items():
            if spec.required and question_id not in answered:
                label = "Required (critical L1)" if spec.critical else "Required"
                errors.append(
                    IntakeIssue(
                        code="MISSING_REQUIRED_QUESTION",
                        question_id=question_id,
                        message=f"{label} question {question_id} ({spec.name}) not answered",
                        severity="error",
                    )
                )

        for index, answer in enumerate(intake.answers):
            spec = self._catalog.questions.get(answer.question_id)
            if spec is None:
                warnings.append(
                    IntakeIssue(
                        code="INVALID_QUESTION_ID",
                        question_id=answer.question_id,
                        message=f"Unknown question {answer.question_id}",
                        severity="warning",
                    )
                )
                dropped.add(index)
                continue
            if answer.is_empty():
                continue

            issues = self._check_answer(spec, answer)
            for issue in issues:
                _report(issue)
            if issues:
                dropped.add(index)
                continue

            dependency = spec.depends_on
            if dependency is not None:
                parent = answered.get(dependency.question_id)
                parent_values = {canonical_value(v) for v in parent.values()} if parent is not None else set()
                if not parent_values & dependency.values:
                    warnings.append(
                        IntakeIssue(
                            code="CONDITIONAL_DEPENDENCY_NOT_MET",
                            question_id=spec.question_id,
                            message=(
                                f"{spec.question_id} only applies when {dependency.question_id} is one of "
                                f"{sorted(dependency.values)}; answer ignored"
                            ),
                            severity="warning",
                            expected=sorted(dependency.values),
                            received=sorted(parent_values),
                        )
                    )
                    dropped.add(index)

        result = IntakeValidationResult(valid=not errors, errors=errors, warnings=warnings)
        if result.valid:
            kept = [a for i, a in enumerate(intake.answers) if i not in dropped]
            result.sanitized = intake.model_copy(update={"answers": kept})
        log.info(
            "Validated intake %s: %d errors, %d warnings",
            intake.session_id,
            len(errors),
            len(warnings),
        )
        return result

    def validate_or_raise(self, intake: IntakeData) -> IntakeData:
        """Return the sanitized intake or raise IntakeValidationError with the blocking issues."""
        result = self.validate(intake)
        if not result.valid:
            raise IntakeValidationError(result.summary(), result.errors)
        return result.sanitized or intake

    @staticmethod
    def _check_answer(spec: QuestionSpec, answer: QuestionAnswer) -> list[IntakeIssue]:
        severity: Literal["error", "warning"] = "error" if spec.critical else "warning"
        is_list = isinstance(answer.answer, list)

        if is_list != spec.multi_select:
            expected = "a list of values" if spec.multi_select else "a single value"
            return [
                IntakeIssue(
                    code="TYPE_MISMATCH",
                    question_id=spec.question_id,
                    message=f"{spec.question_id} expects {expected}",
                    severity=severity,
                    received=answer.answer,
                )
            ]

        if not spec.allowed_values:
            return []
        allowed = set(spec.allowed_values)
        invalid = [v for v in answer.values() if canonical_value(v) not in allowed]
        if not invalid:
            return []
        return [
            IntakeIssue(
                code="INVALID_ANSWER_VALUE",
                question_id=spec.question_id,
                message=f"{spec.question_id} has invalid value(s) {invalid}",
                severity=severity,
                expected=list(spec.allowed_values),
                received=invalid,
            )
        ]
