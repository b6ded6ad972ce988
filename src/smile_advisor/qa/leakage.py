"""Semantic leakage detection: banned claims, prices, diagnoses and tone drift.

Global patterns come from the catalog's leakage table. On top of those each
section is checked against the banned phrases of the tone it was written
in (the closing section always uses the closing tone).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from smile_advisor.catalog.models import Catalog, LeakagePattern
from smile_advisor.models import ComposedReport
from smile_advisor.qa.models import SemanticLeakageResult, SemanticViolation, ViolationSeverity

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CompiledRule:
    regex: re.Pattern[str]
    rule: str
    severity: ViolationSeverity


def compile_phrase(phrase: str) -> re.Pattern[str]:
    """Case-insensitive, word-bounded literal phrase."""
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)", re.IGNORECASE)


def _compile(pattern: LeakagePattern) -> _CompiledRule:
    regex = re.compile(pattern.pattern, re.IGNORECASE) if pattern.regex else compile_phrase(pattern.pattern)
    return _CompiledRule(regex=regex, rule=pattern.rule, severity=ViolationSeverity(pattern.severity))


class SemanticLeakageDetector:
    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog
        self._global = [_compile(p) for p in catalog.leakage_patterns]
        self._by_tone: dict[str, list[_CompiledRule]] = {
            tone.tone_id: [
                _CompiledRule(
                    regex=compile_phrase(phrase),
                    rule=f"Tone {tone.tone_id} ({tone.name}): banned phrase",
                    severity=ViolationSeverity.WARNING,
                )
                for phrase in tone.banned_phrases
            ]
            for tone in catalog.tones
        }

    def detect(self, report: ComposedReport) -> SemanticLeakageResult:
        violations: list[SemanticViolation] = []
        for section in report.sections:
            spec = self._catalog.sections.get(section.section_number)
            tone = spec.tone_override if spec is not None and spec.tone_override else report.tone
            for rule in (*self._global, *self._by_tone.get(tone, ())):
                for match in rule.regex.finditer(section.content):
                    violations.append(
                        SemanticViolation(
                            phrase=match.group(0),
                            rule=rule.rule,
                            severity=rule.severity,
                            section_number=section.section_number,
                            position=match.start(),
                        )
                    )

        violations.sort(key=lambda v: (v.section_number, v.position))
        result = SemanticLeakageResult(violations=violations)
        if result.violations:
            log.info(
                "Semantic leakage in %s: %d critical, %d warning",
                report.session_id,
                result.critical_count,
                result.warning_count,
            )
        return result
