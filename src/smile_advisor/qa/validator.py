"""Composition validator: dispatches a composed report to each structural check category."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from smile_advisor.catalog.models import Catalog
from smile_advisor.models import ComposedReport
from smile_advisor.qa.checks.cardinality import check_cardinality
from smile_advisor.qa.checks.placeholders import check_placeholders
from smile_advisor.qa.checks.structure import check_structure
from smile_advisor.qa.checks.suppression import check_suppression
from smile_advisor.qa.checks.word_counts import check_word_counts
from smile_advisor.qa.models import CheckCategory, IssueSeverity, ValidationIssue, ValidationResult

log = logging.getLogger(__name__)


class CompositionValidator:
    """Validates a ComposedReport's structure.

    Validation is pure computation. Each category runs independently; a
    category that raises is reported as an error issue so a broken check
    can never let a report through unexamined.
    """

    def __init__(self, catalog: Catalog, *, strict_placeholders: bool = False) -> None:
        self._catalog = catalog
        self._strict_placeholders = strict_placeholders

    def validate(
        self,
        report: ComposedReport,
        *,
        driver_values: Mapping[str, str] | None = None,
        tags: Iterable[str] = (),
    ) -> ValidationResult:
        collected: list[ValidationIssue] = []
        tag_list = list(tags)

        dispatchers = [
            (CheckCategory.STRUCTURE, lambda: check_structure(report, self._catalog)),
            (CheckCategory.WORD_COUNTS, lambda: check_word_counts(report, self._catalog)),
            (CheckCategory.CARDINALITY, lambda: check_cardinality(report, self._catalog)),
            (
                CheckCategory.SUPPRESSION,
                lambda: check_suppression(report, self._catalog, driver_values or {}, tag_list),
            ),
            (
                CheckCategory.PLACEHOLDERS,
                lambda: check_placeholders(report, strict=self._strict_placeholders),
            ),
        ]

        for category, dispatcher in dispatchers:
            try:
                issues = dispatcher()
            except Exception as exc:
                log.exception("Validation category %s failed", category.value)
                issues = [
                    ValidationIssue(
                        code="CHECK_FAILED",
                        severity=IssueSeverity.ERROR,
                        category=category,
                        message=f"{category.value} check failed: {exc}",
                    )
                ]
            collected.extend(issues)

        result = ValidationResult.from_issues(collected)

        log.debug(
            "Validated report %s: %d errors, %d warnings",
            report.session_id,
            len(result.errors),
            len(result.warnings),
        )
        return result
