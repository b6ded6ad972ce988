"""Tests for intake validation and sanitizing."""

from __future__ import annotations

import pytest

from smile_advisor.exceptions import IntakeValidationError
from smile_advisor.intake.validator import IntakeValidator, canonical_value
from smile_advisor.models import IntakeData, QuestionAnswer


def _intake(*answers: QuestionAnswer, session_id: str = "sess-intake") -> IntakeData:
    base = [
        QuestionAnswer(question_id="Q5", answer="no_aesthetic_only"),
        QuestionAnswer(question_id="Q6a", answer="one_missing"),
    ]
    return IntakeData(session_id=session_id, answers=[*base, *answers])


def _codes(issues) -> list[str]:
    return [i.code for i in issues]


class TestCanonicalValue:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("7", "7"), ("7.0", "7"), (" 7.5 ", "7.5"), ("No Aesthetic Only", "no_aesthetic_only"), ("45_60", "45_60")],
    )
    def test_canonical(self, raw: str, expected: str) -> None:
        assert canonical_value(raw) == expected


class TestIntakeValidator:
    def test_complete_intake_is_valid(self, catalog, posterior_intake) -> None:
        result = IntakeValidator(catalog).validate(posterior_intake)
        assert result.valid
        assert result.errors == []
        assert result.warnings == []
        assert result.sanitized.answers == posterior_intake.answers
        assert result.summary() == "Validation passed"

    def test_missing_required_critical_question(self, catalog) -> None:
        intake = IntakeData(session_id="s", answers=[QuestionAnswer(question_id="Q6a", answer="one_missing")])
        result = IntakeValidator(catalog).validate(intake)
        assert not result.valid
        assert result.sanitized is None
        assert _codes(result.errors) == ["MISSING_REQUIRED_QUESTION"]
        assert result.errors[0].message == (
            "Required (critical L1) question Q5 (Pain, infection or loose teeth) not answered"
        )
        assert result.error_question_ids == ["Q5"]
        assert result.summary().startswith("Input validation failed: Q5: Required (critical L1)")

    def test_skipped_required_question_counts_as_missing(self, catalog) -> None:
        intake = IntakeData(
            session_id="s",
            answers=[
                QuestionAnswer(question_id="Q5", answer="no_aesthetic_only"),
                QuestionAnswer(question_id="Q6a", answer="one_missing", skipped=True),
            ],
        )
        result = IntakeValidator(catalog).validate(intake)
        assert result.error_question_ids == ["Q6a"]
        assert result.errors[0].message == "Required question Q6a (Current dental status) not answered"

    def test_blank_session_id(self, catalog) -> None:
        result = IntakeValidator(catalog).validate(_intake(session_id="  "))
        assert _codes(result.errors) == ["MISSING_SESSION_ID"]

    def test_unknown_question_is_dropped(self, catalog) -> None:
        result = IntakeValidator(catalog).validate(_intake(QuestionAnswer(question_id="Q99", answer="x")))
        assert result.valid
        assert _codes(result.warnings) == ["INVALID_QUESTION_ID"]
        assert [a.question_id for a in result.sanitized.answers] == ["Q5", "Q6a"]

    def test_invalid_value_severity_follows_criticality(self, catalog) -> None:
        result = IntakeValidator(catalog).validate(_intake(QuestionAnswer(question_id="Q14", answer="hourly")))
        assert result.valid
        assert _codes(result.warnings) == ["INVALID_ANSWER_VALUE"]
        assert result.warnings[0].received == ["hourly"]
        assert "Q14" not in {a.question_id for a in result.sanitized.answers}

        result = IntakeValidator(catalog).validate(_intake(QuestionAnswer(question_id="Q13", answer="maybe")))
        assert not result.valid
        assert _codes(result.errors) == ["INVALID_ANSWER_VALUE"]
        assert "yes_pregnant" in result.errors[0].expected

    def test_values_are_normalized_before_checking(self, catalog) -> None:
        intake = IntakeData(
            session_id="s",
            answers=[
                QuestionAnswer(question_id="Q5", answer=" No Aesthetic Only "),
                QuestionAnswer(question_id="Q6a", answer="ONE_MISSING"),
                QuestionAnswer(question_id="Q2", answer=7.0),
            ],
        )
        result = IntakeValidator(catalog).validate(intake)
        assert result.valid
        assert result.warnings == []

    def test_type_mismatch(self, catalog) -> None:
        result = IntakeValidator(catalog).validate(_intake(QuestionAnswer(question_id="Q3", answer="missing_damaged")))
        assert result.valid
        assert _codes(result.warnings) == ["TYPE_MISMATCH"]
        assert result.warnings[0].message == "Q3 expects a list of values"

        result = IntakeValidator(catalog).validate(_intake(QuestionAnswer(question_id="Q17", answer=["no"])))
        assert not result.valid
        assert result.errors[0].message == "Q17 expects a single value"

    def test_conditional_question_dropped_when_parent_does_not_match(self, catalog) -> None:
        intake = _intake(
            QuestionAnswer(question_id="Q2", answer=8),
            QuestionAnswer(question_id="Q2a", answer="esthetics"),
        )
        result = IntakeValidator(catalog).validate(intake)
        assert result.valid
        assert _codes(result.warnings) == ["CONDITIONAL_DEPENDENCY_NOT_MET"]
        assert result.warnings[0].received == ["8"]
        assert "Q2a" not in {a.question_id for a in result.sanitized.answers}

    def test_conditional_question_kept_when_parent_matches(self, catalog) -> None:
        intake = _intake(
            QuestionAnswer(question_id="Q2", answer=3),
            QuestionAnswer(question_id="Q2a", answer="esthetics"),
        )
        result = IntakeValidator(catalog).validate(intake)
        assert result.warnings == []
        assert "Q2a" in {a.question_id for a in result.sanitized.answers}

    def test_conditional_question_without_parent(self, catalog) -> None:
        result = IntakeValidator(catalog).validate(_intake(QuestionAnswer(question_id="Q2a", answer="both")))
        assert _codes(result.warnings) == ["CONDITIONAL_DEPENDENCY_NOT_MET"]
        assert result.warnings[0].received == []

    def test_validate_or_raise(self, catalog, posterior_intake) -> None:
        validator = IntakeValidator(catalog)
        assert validator.validate_or_raise(posterior_intake).session_id == "sess-posterior"

        with pytest.raises(IntakeValidationError) as exc_info:
            validator.validate_or_raise(IntakeData(session_id="s"))
        assert {i.question_id for i in exc_info.value.issues} == {"Q5", "Q6a"}
