"""Generic trigger matching shared by every content-selection table."""

from __future__ import annotations

from typing import Iterable, Iterator, Mapping

from smile_advisor.catalog.models import BlockPattern, SuppressionRule, TriggerRule


def matching_rules(
    rules: Iterable[TriggerRule],
    driver_values: Mapping[str, str],
    tags: set[str],
) -> Iterator[tuple[TriggerRule, str]]:
    """Yield ``(rule, reason)`` for every rule whose predicate matches, in table order."""
    for rule in rules:
        if rule.predicate.matches(driver_values, tags):
            yield rule, rule.predicate.describe(driver_values, tags)


class SuppressionSet:
    """Sections and block patterns blocked by active safety rules, computed once per run."""

    def __init__(self, rules: Iterable[SuppressionRule], driver_values: Mapping[str, str], tags: set[str]) -> None:
        self.active: list[tuple[SuppressionRule, str]] = [
            (rule, rule.predicate.describe(driver_values, tags))
            for rule in rules
            if rule.predicate.matches(driver_values, tags)
        ]
        self.sections: set[int] = set()
        self._patterns: list[tuple[BlockPattern, str]] = []
        for rule, reason in self.active:
            self.sections |= set(rule.sections)
            self._patterns.extend((pattern, f"{rule.rule_id} ({reason})") for pattern in rule.block_patterns)

    def block_reason(self, content_id: str) -> str | None:
        for pattern, reason in self._patterns:
            if pattern.matches(content_id):
                return f"Blocked by {reason}"
        return None

    def section_reason(self, section_number: int) -> str | None:
        for rule, reason in self.active:
            if section_number in rule.sections:
                return f"Section {section_number} suppressed by {rule.rule_id} ({reason})"
        return None

    def reason_for(self, content_id: str, section_number: int) -> str | None:
        return self.section_reason(section_number) or self.block_reason(content_id)
