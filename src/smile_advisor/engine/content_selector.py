"""Content selection: driver state + scenario match -> content blocks per report section.

Steps, in order:

1. compute the suppression set from safety-critical driver values (once);
2. warning/safety blocks (section 0) by trigger, sorted by urgency;
3. the scenario-sourced personal summary (section 2);
4. contextual, option, comparison, trade-off, process, cost and risk blocks;
5. scenario-specific nuance and cost blocks;
6. reusable text modules for each section they target;
7. the two static sections, next-steps always in the closing tone.

Suppressed selections are flagged and kept, never dropped.
"""

from __future__ import annotations

import logging
from typing import Iterable

from smile_advisor.catalog.models import Catalog
from smile_advisor.engine.triggers import SuppressionSet, matching_rules
from smile_advisor.models import (
    ContentSelection,
    ContentSelectionResult,
    ContentType,
    DriverState,
    ScenarioMatchResult,
)

log = logging.getLogger(__name__)

SCENARIO_SECTION = 2
SCENARIO_PRIORITY = 1
SCENARIO_BLOCK_PRIORITY = 5
STATIC_PRIORITY = 1


class ContentSelector:
    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def select(
        self,
        driver_state: DriverState,
        match: ScenarioMatchResult,
        tone: str,
        tags: Iterable[str],
    ) -> ContentSelectionResult:
        tag_set = set(tags)
        values = {d: v.value for d, v in driver_state.drivers.items()}
        suppression = SuppressionSet(self._catalog.suppression_rules, values, tag_set)
        if suppression.active:
            log.info(
                "Active suppression rules: %s -> sections %s",
                [rule.rule_id for rule, _ in suppression.active],
                sorted(suppression.sections),
            )

        selections: list[ContentSelection] = []

        # Warnings: block-pattern suppression only, section 0 always renders.
        warnings = [
            self._selection(
                rule.target, ContentType.A_BLOCK, 0, tone, rule.priority, suppression.block_reason(rule.target)
            )
            for rule, _ in matching_rules(self._catalog.a_block_rules, values, tag_set)
        ]
        selections.extend(sorted(warnings, key=lambda s: s.priority))

        selections.append(
            self._selection(
                match.matched_scenario,
                ContentType.SCENARIO,
                SCENARIO_SECTION,
                tone,
                SCENARIO_PRIORITY,
                suppression.section_reason(SCENARIO_SECTION),
            )
        )

        for rule, _ in matching_rules(self._catalog.b_block_rules, values, tag_set):
            for section in rule.sections:
                selections.append(
                    self._selection(
                        rule.target,
                        ContentType.B_BLOCK,
                        section,
                        tone,
                        rule.priority,
                        suppression.reason_for(rule.target, section),
                    )
                )

        if not match.fallback_used:
            for section, prefix in sorted(self._catalog.scenario_block_prefixes.items()):
                content_id = f"{prefix}{match.matched_scenario}"
                selections.append(
                    self._selection(
                        content_id,
                        ContentType.B_BLOCK,
                        section,
                        tone,
                        SCENARIO_BLOCK_PRIORITY,
                        suppression.reason_for(content_id, section),
                    )
                )

        for rule, _ in matching_rules(self._catalog.module_rules, values, tag_set):
            for section in rule.sections:
                selections.append(
                    self._selection(
                        rule.target,
                        ContentType.MODULE,
                        section,
                        tone,
                        rule.priority,
                        suppression.reason_for(rule.target, section),
                    )
                )

        static_blocks = self._catalog.composition.get("static_blocks", {})
        for section in sorted(static_blocks):
            selections.append(
                self._selection(
                    str(static_blocks[section]), ContentType.STATIC, int(section), tone, STATIC_PRIORITY, None
                )
            )

        result = ContentSelectionResult(selections=selections, suppressed_sections=sorted(suppression.sections))
        log.debug(
            "Selected %d content blocks (%d suppressed)",
            len(selections),
            sum(1 for s in selections if s.suppressed),
        )
        return result

    def _selection(
        self,
        content_id: str,
        content_type: ContentType,
        section: int,
        tone: str,
        priority: int,
        suppression_reason: str | None,
    ) -> ContentSelection:
        spec = self._catalog.sections.get(section)
        if spec is not None and spec.tone_override:
            tone = spec.tone_override
        return ContentSelection(
            content_id=content_id,
            content_type=content_type,
            target_section=section,
            tone=tone,
            priority=priority,
            suppressed=suppression_reason is not None,
            suppression_reason=suppression_reason,
        )
