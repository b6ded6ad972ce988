"""Driver derivation: tags -> one resolved value per catalog driver.

For each driver the matching rule with the lowest priority number wins
(declaration order breaks priority ties). Disagreeing matches are logged
as conflicts; drivers with no match get their declared fallback.
"""

from __future__ import annotations

import logging
from typing import Iterable, Union

from smile_advisor.catalog.models import Catalog, DerivationRule, DriverDefinition
from smile_advisor.models import (
    DriverConflict,
    DriverLayer,
    DriverState,
    DriverValue,
    ExtractedTag,
)

log = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.5


def derived_confidence(match_count: int) -> float:
    return round(min(1.0, 0.4 + 0.3 * match_count), 2)


class DriverDeriver:
    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def derive(
        self,
        session_id: str,
        tags: Iterable[Union[ExtractedTag, str]],
    ) -> DriverState:
        tag_set = {t.tag if isinstance(t, ExtractedTag) else str(t) for t in tags}

        drivers: dict[str, DriverValue] = {}
        conflicts: list[DriverConflict] = []
        fallbacks: list[str] = []

        for definition in sorted(self._catalog.drivers, key=lambda d: d.driver_id):
            value, conflict = self._derive_one(definition, tag_set)
            drivers[definition.driver_id] = value
            if conflict is not None:
                conflicts.append(conflict)
            if value.source == "fallback":
                fallbacks.append(definition.driver_id)

        # Catalog order for the mapping; logs stay sorted by driver id.
        ordered = {d.driver_id: drivers[d.driver_id] for d in self._catalog.drivers}
        log.debug(
            "Derived %d drivers (%d conflicts, %d fallbacks) for session %s",
            len(ordered),
            len(conflicts),
            len(fallbacks),
            session_id,
        )
        return DriverState(
            session_id=session_id,
            drivers=ordered,
            conflicts=conflicts,
            fallbacks_applied=fallbacks,
        )

    @staticmethod
    def _derive_one(
        definition: DriverDefinition,
        tags: set[str],
    ) -> tuple[DriverValue, DriverConflict | None]:
        layer = DriverLayer(definition.layer)
        matches: list[tuple[DerivationRule, list[str]]] = []
        for rule in definition.rules:
            hits = rule.matched_tags(tags)
            if hits:
                matches.append((rule, hits))

        if not matches:
            return (
                DriverValue(
                    driver_id=definition.driver_id,
                    layer=layer,
                    value=definition.fallback,
                    source="fallback",
                    confidence=FALLBACK_CONFIDENCE,
                ),
                None,
            )

        # sorted() is stable, so declaration order settles equal priorities
        ranked = sorted(matches, key=lambda m: m[0].priority)
        winner, _ = ranked[0]
        supporting = [m for m in ranked if m[0].value == winner.value]
        source_tags = sorted({tag for _, hits in supporting for tag in hits})

        conflict = None
        distinct_values = list(dict.fromkeys(rule.value for rule, _ in ranked))
        if len(distinct_values) > 1:
            conflict = DriverConflict(
                driver_id=definition.driver_id,
                conflicting_values=distinct_values,
                resolved_value=winner.value,
                resolution_reason=f"Priority-based: rule priority {winner.priority} wins",
            )

        return (
            DriverValue(
                driver_id=definition.driver_id,
                layer=layer,
                value=winner.value,
                source="derived",
                source_tags=source_tags,
                confidence=derived_confidence(len(supporting)),
            ),
            conflict,
        )
