"""Tests for the structural check categories and the composition validator."""

from __future__ import annotations

import pytest

from smile_advisor.qa.checks.cardinality import check_cardinality
from smile_advisor.qa.checks.placeholders import check_placeholders
from smile_advisor.qa.checks.structure import check_structure
from smile_advisor.qa.checks.suppression import check_suppression
from smile_advisor.qa.checks.word_counts import check_word_counts
from smile_advisor.qa.models import CheckCategory, IssueSeverity
from smile_advisor.qa.validator import CompositionValidator
from tests.fakes.reports import build_report, default_sections, words


def _codes(issues) -> list[str]:
    return [i.code for i in issues]


class TestStructure:
    def test_valid_report(self, catalog) -> None:
        assert check_structure(build_report(), catalog) == []

    def test_missing_required_section(self, catalog) -> None:
        sections = default_sections()
        del sections[2]
        report = build_report(sections, suppressed=[0, 3, 4, 5, 6, 7, 8, 9])
        issues = check_structure(report, catalog)
        assert _codes(issues) == ["MISSING_REQUIRED_SECTION"]
        assert issues[0].section_number == 2
        assert issues[0].severity == IssueSeverity.ERROR

    def test_suppressed_required_section_is_accounted_for(self, catalog) -> None:
        sections = default_sections()
        del sections[2]
        assert check_structure(build_report(sections), catalog) == []

    def test_rendered_and_suppressed(self, catalog) -> None:
        report = build_report(suppressed=[0, 2, 3, 4, 5, 6, 7, 8, 9])
        assert _codes(check_structure(report, catalog)) == ["SECTION_PRESENT_AND_SUPPRESSED"]

    def test_unaccounted_section(self, catalog) -> None:
        report = build_report(suppressed=[0, 3, 4, 6, 7, 8, 9])
        issues = check_structure(report, catalog)
        assert _codes(issues) == ["SECTION_UNACCOUNTED"]
        assert issues[0].section_number == 5

    def test_empty_body_and_duplicate(self, catalog) -> None:
        report = build_report({**default_sections(), 11: "   "})
        report.sections.append(report.sections[0].model_copy())
        codes = _codes(check_structure(report, catalog))
        assert "EMPTY_SECTION" in codes
        assert "DUPLICATE_SECTION" in codes


class TestWordCounts:
    def test_within_bands(self, catalog) -> None:
        assert check_word_counts(build_report(), catalog) == []

    def test_below_min_and_above_max(self, catalog) -> None:
        report = build_report({**default_sections(), 0: words(250), 1: words(10), 5: words(3)})
        issues = check_word_counts(report, catalog)
        assert [(i.code, i.section_number) for i in issues] == [
            ("WORD_COUNT_ABOVE_MAX", 0),
            ("WORD_COUNT_BELOW_MIN", 1),
        ]
        assert all(i.severity == IssueSeverity.WARNING for i in issues)
        assert issues[1].message == "Section 1 has 10 words (min 50)"


class TestCardinality:
    def test_option_comparison_and_duplicate_limits(self, catalog) -> None:
        sections = {**default_sections(), 3: words(100), 4: words(60), 5: words(30), 6: words(30)}
        report = build_report(
            sections,
            sources={
                3: ["B_CTX_SINGLE_TOOTH", "TM_RISK_SMOKING"],
                4: ["B_CTX_SINGLE_TOOTH"],
                5: ["B_OPT_IMPLANT", "B_OPT_BRIDGE", "B_OPT_PARTIAL_DENTURE"],
                6: ["B_COMPARE_IMPLANT_VS_BRIDGE", "B_COMPARE_FIXED_VS_REMOVABLE"],
                10: ["B_RISKLANG_STANDARD", "TM_RISK_SMOKING"],
            },
        )
        issues = check_cardinality(report, catalog)
        assert _codes(issues) == ["TOO_MANY_OPTION_BLOCKS", "TOO_MANY_COMPARISONS", "DUPLICATE_BLOCK"]
        assert issues[2].message == "Block B_CTX_SINGLE_TOOTH used in sections [3, 4]"

    def test_modules_may_repeat(self, catalog) -> None:
        report = build_report(sources={2: ["TM_ANXIETY_SEVERE"], 10: ["TM_ANXIETY_SEVERE"]})
        assert check_cardinality(report, catalog) == []


class TestSuppression:
    def test_rendered_suppressed_section_is_error(self, catalog) -> None:
        report = build_report({**default_sections(), 5: words(30)})
        issues = check_suppression(report, catalog, {"clinical_priority": "urgent"})
        assert _codes(issues) == ["SUPPRESSION_VIOLATION"]
        assert "SUPPRESS_URGENT" in issues[0].message

    def test_no_active_rule(self, catalog) -> None:
        report = build_report({**default_sections(), 5: words(30)})
        assert check_suppression(report, catalog, {"clinical_priority": "elective"}) == []


class TestPlaceholders:
    def test_unresolved_token_is_warning(self) -> None:
        report = build_report({**default_sections(), 2: f"{words(110)} {{CODE}} and {{CODE}}"})
        issues = check_placeholders(report)
        assert _codes(issues) == ["UNRESOLVED_PLACEHOLDER"]
        assert issues[0].severity == IssueSeverity.WARNING
        assert issues[0].section_number == 2

    def test_strict_mode_is_error(self) -> None:
        report = build_report(unresolved=["CODE"])
        issues = check_placeholders(report, strict=True)
        assert [i.severity for i in issues] == [IssueSeverity.ERROR]
        assert issues[0].section_number is None


class TestCompositionValidator:
    def test_valid(self, catalog) -> None:
        result = CompositionValidator(catalog).validate(build_report())
        assert result.valid
        assert result.warnings == []

    def test_sorts_errors_and_warnings(self, catalog) -> None:
        report = build_report({**default_sections(), 1: words(10)}, suppressed=[0, 2, 3, 4, 6, 7, 8, 9])
        result = CompositionValidator(catalog).validate(report)
        assert not result.valid
        assert _codes(result.errors) == ["SECTION_PRESENT_AND_SUPPRESSED", "SECTION_UNACCOUNTED"]
        assert _codes(result.warnings) == ["WORD_COUNT_BELOW_MIN"]

    def test_crashing_check_becomes_error(self, catalog, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(report, catalog):
            raise RuntimeError("boom")

        monkeypatch.setattr("smile_advisor.qa.validator.check_word_counts", boom)
        result = CompositionValidator(catalog).validate(build_report())
        assert len(result.errors) == 1
        failed = result.errors[0]
        assert failed.code == "CHECK_FAILED"
        assert failed.category == CheckCategory.WORD_COUNTS
        assert failed.message == "word_counts check failed: boom"
