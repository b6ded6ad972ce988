"""Suppression check: sections blocked by an active safety rule must not render."""

from __future__ import annotations

from typing import Iterable, Mapping

from smile_advisor.catalog.models import Catalog
from smile_advisor.engine.triggers import SuppressionSet
from smile_advisor.models import ComposedReport
from smile_advisor.qa.models import CheckCategory, IssueSeverity, ValidationIssue


def check_suppression(
    report: ComposedReport,
    catalog: Catalog,
    driver_values: Mapping[str, str],
    tags: Iterable[str] = (),
) -> list[ValidationIssue]:
    suppression = SuppressionSet(catalog.suppression_rules, driver_values, set(tags))
    suppressed = set(report.suppressed_sections)
    issues: list[ValidationIssue] = []
    for section in report.sections:
        number = section.section_number
        if number in suppression.sections and number not in suppressed:
            issues.append(
                ValidationIssue(
                    code="SUPPRESSION_VIOLATION",
                    severity=IssueSeverity.ERROR,
                    category=CheckCategory.SUPPRESSION,
                    message=f"Section {number} rendered despite {suppression.section_reason(number)}",
                    section_number=number,
                )
            )
    return issues
