"""Tests for per-question tag extraction."""

from __future__ import annotations

import pytest

from smile_advisor.engine.tag_extractor import TagExtractor, normalize_answer
from smile_advisor.models import IntakeData, QuestionAnswer


def _intake(*answers: QuestionAnswer) -> IntakeData:
    return IntakeData(session_id="s-tags", answers=list(answers))


class TestNormalizeAnswer:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("  Yes Pain ", "yes_pain"),
            ("No-Aesthetic Only", "noaesthetic_only"),
            ("7.0", "70"),
            ("a.b-c!", "abc"),
            ("30_45", "30_45"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_answer(raw) == expected


class TestTagExtractor:
    def test_full_intake(self, catalog, posterior_intake) -> None:
        result = TagExtractor(catalog).extract(posterior_intake)
        tags = result.tag_set
        assert {"motivation_functional", "satisfaction_moderate", "status_single_missing"} <= tags
        assert {"location_posterior", "budget_flexible", "smoking_no", "hygiene_good"} <= tags
        assert result.missing_questions == []

    def test_answer_is_normalized_before_lookup(self, catalog) -> None:
        result = TagExtractor(catalog).extract(_intake(QuestionAnswer(question_id="Q5", answer=" Yes Pain ")))
        assert [t.tag for t in result.tags] == ["acute_pain"]
        assert result.tags[0].source_answer == "yes_pain"
        assert result.tags[0].source_question == "Q5"

    @pytest.mark.parametrize(
        ("answer", "expected"),
        [(2, ["satisfaction_low"]), ("5", ["satisfaction_moderate"]), ("7.0", ["satisfaction_high"]), (11, [])],
    )
    def test_numeric_ranges(self, catalog, answer: object, expected: list[str]) -> None:
        result = TagExtractor(catalog).extract(_intake(QuestionAnswer(question_id="Q2", answer=answer)))
        assert [t.tag for t in result.tags] == expected

    def test_decimal_range_answer_keeps_point_in_provenance(self, catalog) -> None:
        result = TagExtractor(catalog).extract(_intake(QuestionAnswer(question_id="Q2", answer=" 6.5 ")))
        assert [t.tag for t in result.tags] == []
        result = TagExtractor(catalog).extract(_intake(QuestionAnswer(question_id="Q2", answer="3.0")))
        assert [(t.tag, t.source_answer) for t in result.tags] == [("satisfaction_low", "3.0")]

    def test_multi_select_answer_maps_every_value(self, catalog) -> None:
        answer = QuestionAnswer(question_id="Q6d", answer=["severe_discolouration", "bruxism"])
        tags = [t.tag for t in TagExtractor(catalog).extract(_intake(answer)).tags]
        assert tags == ["tooth_health_discolored", "issue_discoloration", "tooth_health_bruxism"]

    def test_single_select_uses_first_value_only(self, catalog) -> None:
        answer = QuestionAnswer(question_id="Q5", answer=["yes_pain", "yes_infection"])
        assert [t.tag for t in TagExtractor(catalog).extract(_intake(answer)).tags] == ["acute_pain"]

    def test_unknown_question_and_value_ignored(self, catalog) -> None:
        result = TagExtractor(catalog).extract(
            _intake(
                QuestionAnswer(question_id="Q99", answer="whatever"),
                QuestionAnswer(question_id="Q7", answer="baroque"),
            )
        )
        assert result.tags == []

    def test_skipped_answer_counts_as_missing(self, catalog) -> None:
        result = TagExtractor(catalog).extract(
            _intake(
                QuestionAnswer(question_id="Q5", answer="yes_pain", skipped=True),
                QuestionAnswer(question_id="Q6a", answer="no_missing"),
            )
        )
        assert [t.tag for t in result.tags] == ["status_no_missing"]
        assert result.missing_questions == ["Q5"]
