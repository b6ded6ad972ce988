"""Word-count bands per section. Out-of-band sections are flagged, never blocked."""

from __future__ import annotations

from smile_advisor.catalog.models import Catalog
from smile_advisor.models import ComposedReport
from smile_advisor.qa.models import CheckCategory, IssueSeverity, ValidationIssue


def check_word_counts(report: ComposedReport, catalog: Catalog) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for section in report.sections:
        spec = catalog.sections.get(section.section_number)
        if spec is None:
            continue
        if spec.min_words and section.word_count < spec.min_words:
            issues.append(
                ValidationIssue(
                    code="WORD_COUNT_BELOW_MIN",
                    severity=IssueSeverity.WARNING,
                    category=CheckCategory.WORD_COUNTS,
                    message=f"Section {section.section_number} has {section.word_count} words (min {spec.min_words})",
                    section_number=section.section_number,
                )
            )
        elif section.word_count > spec.max_words:
            issues.append(
                ValidationIssue(
                    code="WORD_COUNT_ABOVE_MAX",
                    severity=IssueSeverity.WARNING,
                    category=CheckCategory.WORD_COUNTS,
                    message=f"Section {section.section_number} has {section.word_count} words (max {spec.max_words})",
                    section_number=section.section_number,
                )
            )
    return issues
