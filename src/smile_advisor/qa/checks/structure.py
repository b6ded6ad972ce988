"""Structure checks: every section is accounted for exactly once."""

from __future__ import annotations

from collections import Counter

from smile_advisor.catalog.models import Catalog
from smile_advisor.models import ComposedReport
from smile_advisor.qa.models import CheckCategory, IssueSeverity, ValidationIssue


def check_structure(report: ComposedReport, catalog: Catalog) -> list[ValidationIssue]:
    """Required sections present or suppressed, no overlap, no gaps, no empty bodies."""
    issues: list[ValidationIssue] = []
    counts = Counter(s.section_number for s in report.sections)
    present = set(counts)
    suppressed = set(report.suppressed_sections)

    for number, count in sorted(counts.items()):
        if count > 1:
            issues.append(_error("DUPLICATE_SECTION", f"Section {number} rendered {count} times", number))

    for number in catalog.required_sections:
        if number not in present and number not in suppressed:
            issues.append(_error("MISSING_REQUIRED_SECTION", f"Required section {number} is missing", number))

    for number in sorted(present & suppressed):
        issues.append(
            _error("SECTION_PRESENT_AND_SUPPRESSED", f"Section {number} is both rendered and suppressed", number)
        )

    for number in sorted(set(catalog.sections) - present - suppressed - set(catalog.required_sections)):
        issues.append(
            _error("SECTION_UNACCOUNTED", f"Section {number} is neither rendered nor suppressed", number)
        )

    for section in report.sections:
        if not section.content.strip():
            number = section.section_number
            issues.append(_error("EMPTY_SECTION", f"Section {number} has no content", number))

    return issues


def _error(code: str, message: str, section_number: int) -> ValidationIssue:
    return ValidationIssue(
        code=code,
        severity=IssueSeverity.ERROR,
        category=CheckCategory.STRUCTURE,
        message=message,
        section_number=section_number,
    )
