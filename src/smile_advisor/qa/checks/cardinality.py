"""Cardinality checks: option and comparison limits, duplicated blocks."""

from __future__ import annotations

from collections import defaultdict

from smile_advisor.catalog.models import Catalog
from smile_advisor.models import ComposedReport
from smile_advisor.qa.models import CheckCategory, IssueSeverity, ValidationIssue

OPTIONS_SECTION = 5
COMPARISON_SECTION = 6
MAX_COMPARISONS = 1
MODULE_PREFIX = "TM_"


def check_cardinality(report: ComposedReport, catalog: Catalog) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    composition = catalog.composition
    option_prefix = str(composition.get("option_block_prefix", "B_OPT_"))
    max_options = int(composition.get("max_option_blocks", 2))

    options = report.section(OPTIONS_SECTION)
    if options is not None:
        count = sum(1 for s in options.sources if s.startswith(option_prefix))
        if count > max_options:
            issues.append(
                _warning(
                    "TOO_MANY_OPTION_BLOCKS",
                    f"{count} option blocks in section {OPTIONS_SECTION} (max {max_options})",
                    OPTIONS_SECTION,
                )
            )

    comparison = report.section(COMPARISON_SECTION)
    if comparison is not None:
        count = sum(1 for s in comparison.sources if s.startswith("B_COMPARE_"))
        if count > MAX_COMPARISONS:
            issues.append(
                _warning(
                    "TOO_MANY_COMPARISONS",
                    f"{count} comparison blocks in section {COMPARISON_SECTION} (max {MAX_COMPARISONS})",
                    COMPARISON_SECTION,
                )
            )

    # Modules may legitimately repeat across sections; blocks may not.
    seen: dict[str, list[int]] = defaultdict(list)
    for section in report.sections:
        for source in section.sources:
            if not source.startswith(MODULE_PREFIX):
                seen[source].append(section.section_number)
    for source, numbers in sorted(seen.items()):
        if len(numbers) > 1:
            issues.append(_warning("DUPLICATE_BLOCK", f"Block {source} used in sections {numbers}", numbers[0]))

    return issues


def _warning(code: str, message: str, section_number: int) -> ValidationIssue:
    return ValidationIssue(
        code=code,
        severity=IssueSeverity.WARNING,
        category=CheckCategory.CARDINALITY,
        message=message,
        section_number=section_number,
    )
