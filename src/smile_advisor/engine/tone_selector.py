"""Tone selection: first tone profile (by priority) whose trigger drivers match."""

from __future__ import annotations

import logging

from smile_advisor.catalog.models import Catalog
from smile_advisor.models import DriverState, ToneSelectionResult

log = logging.getLogger(__name__)


class ToneSelector:
    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def select(self, driver_state: DriverState) -> ToneSelectionResult:
        evaluated: list[dict] = []
        for tone in self._catalog.tones:
            if not tone.triggers:
                continue
            matched_driver = next(
                (
                    driver_id
                    for driver_id, values in sorted(tone.triggers.items())
                    if driver_state.value_of(driver_id) in values
                ),
                None,
            )
            evaluated.append({"tone": tone.tone_id, "matched": matched_driver is not None, "driver": matched_driver})
            if matched_driver is not None:
                return ToneSelectionResult(
                    selected_tone=tone.tone_id,
                    reason=f"Triggered by {matched_driver}: {driver_state.value_of(matched_driver)}",
                    evaluated_triggers=evaluated,
                )

        return ToneSelectionResult(
            selected_tone=self._catalog.default_tone,
            reason="No specific triggers matched, using default tone",
            evaluated_triggers=evaluated,
        )

    def tone_for_section(self, section_number: int, report_tone: str) -> str:
        """Report tone unless the section layout pins its own (next steps is always autonomy-respecting)."""
        spec = self._catalog.sections.get(section_number)
        if spec is not None and spec.tone_override:
            return spec.tone_override
        return report_tone
