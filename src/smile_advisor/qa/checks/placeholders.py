"""Placeholder check: unresolved tokens are a warning, or an error in strict mode."""

from __future__ import annotations

from smile_advisor.composition.placeholders import find_placeholders
from smile_advisor.models import ComposedReport
from smile_advisor.qa.models import CheckCategory, IssueSeverity, ValidationIssue


def check_placeholders(report: ComposedReport, *, strict: bool = False) -> list[ValidationIssue]:
    severity = IssueSeverity.ERROR if strict else IssueSeverity.WARNING
    issues: list[ValidationIssue] = []
    reported: set[str] = set()
    for section in report.sections:
        for token in find_placeholders(section.content):
            if token in reported:
                continue
            reported.add(token)
            issues.append(
                ValidationIssue(
                    code="UNRESOLVED_PLACEHOLDER",
                    severity=severity,
                    category=CheckCategory.PLACEHOLDERS,
                    message=f"Unresolved placeholder {{{token}}} in section {section.section_number}",
                    section_number=section.section_number,
                )
            )
    for token in report.unresolved_placeholders:
        if token not in reported:
            reported.add(token)
            issues.append(
                ValidationIssue(
                    code="UNRESOLVED_PLACEHOLDER",
                    severity=severity,
                    category=CheckCategory.PLACEHOLDERS,
                    message=f"Unresolved placeholder {{{token}}}",
                )
            )
    return issues
