"""Scenario scoring: driver state -> best-matching scenario with a confidence tier.

Scoring per candidate:

* every required driver must hold an allowed value, otherwise the scenario
  is excluded (its score is undefined, not zero);
* a match on any excluding-driver condition hard-excludes;
* strong matches add ``STRONG_WEIGHT``, supporting matches ``SUPPORTING_WEIGHT``,
  preferred tags present in the tag set ``PREFERRED_TAG_BONUS`` each.

Ranking is score descending, then scenario priority ascending, then id.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from smile_advisor.catalog.models import Catalog, Scenario
from smile_advisor.models import ConfidenceLevel, DriverState, ScenarioMatchResult, ScenarioScore

log = logging.getLogger(__name__)

STRONG_WEIGHT = 3.0
SUPPORTING_WEIGHT = 1.0
PREFERRED_TAG_BONUS = 0.5

MIN_SCORE = 2.0
HIGH_SCORE, HIGH_MARGIN = 4.0, 2.0
MEDIUM_SCORE, MEDIUM_MARGIN = 3.0, 1.0

# Driver values that route straight to the catalog's safety scenario.
SAFETY_TRIGGERS: Mapping[str, frozenset[str]] = {
    "clinical_priority": frozenset({"urgent"}),
    "medical_constraints": frozenset({"surgical_contraindicated"}),
}


def confidence_for(score: float, margin: float) -> ConfidenceLevel:
    """Tier from the winner's absolute score and its margin over the runner-up."""
    if score >= HIGH_SCORE and margin >= HIGH_MARGIN:
        return ConfidenceLevel.HIGH
    if score >= MEDIUM_SCORE and margin >= MEDIUM_MARGIN:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


class ScenarioScorer:
    def __init__(self, catalog: Catalog, *, min_score: float = MIN_SCORE) -> None:
        self._catalog = catalog
        self._min_score = min_score

    def score(self, driver_state: DriverState, tags: Iterable[str]) -> ScenarioMatchResult:
        tag_set = set(tags)
        values = {d: v.value for d, v in driver_state.drivers.items()}
        fallback = self._catalog.fallback_scenario

        scores = [
            self._score_one(scenario, values, tag_set)
            for scenario in self._catalog.scenarios
            if not scenario.is_fallback
        ]
        survivors = [s for s in scores if not s.excluded]
        survivors.sort(key=lambda s: (-s.score, self._catalog.scenario(s.scenario_id).priority, s.scenario_id))
        excluded = sorted((s for s in scores if s.excluded), key=lambda s: s.scenario_id)
        ranked = survivors + excluded

        override = self._safety_override(values, survivors)
        if override is not None:
            scenario = self._catalog.scenario(override.scenario_id)
            log.info("Safety override: routing session %s to %s", driver_state.session_id, scenario.scenario_id)
            return ScenarioMatchResult(
                matched_scenario=scenario.scenario_id,
                scenario_name=scenario.name,
                score=override.score,
                confidence=ConfidenceLevel.HIGH,
                all_scores=ranked,
                safety_override=True,
            )

        if not survivors:
            return self._fallback(fallback, ranked, "No scenario satisfied its required drivers")

        best = survivors[0]
        if best.score < self._min_score:
            return self._fallback(
                fallback,
                ranked,
                f"Best score {best.score:g} ({best.scenario_id}) below minimum {self._min_score:g}",
            )

        margin = best.score - survivors[1].score if len(survivors) > 1 else best.score
        scenario = self._catalog.scenario(best.scenario_id)
        return ScenarioMatchResult(
            matched_scenario=scenario.scenario_id,
            scenario_name=scenario.name,
            score=best.score,
            confidence=confidence_for(best.score, margin),
            all_scores=ranked,
        )

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _score_one(scenario: Scenario, values: Mapping[str, str], tags: set[str]) -> ScenarioScore:
        result = ScenarioScore(scenario_id=scenario.scenario_id)
        result.max_possible = (
            STRONG_WEIGHT * len(scenario.strong)
            + SUPPORTING_WEIGHT * len(scenario.supporting)
            + PREFERRED_TAG_BONUS * len(scenario.preferred_tags)
        )

        for driver_id, allowed in scenario.required.items():
            if values.get(driver_id) not in allowed:
                result.excluded = True
                result.exclusion_reason = f"required {driver_id}={values.get(driver_id)} not in allow-list"
                return result
            result.matched_criteria.append(f"required:{driver_id}")

        for driver_id, banned in scenario.excluding.items():
            if values.get(driver_id) in banned:
                result.excluded = True
                result.exclusion_reason = f"excluding {driver_id}={values.get(driver_id)}"
                return result

        score = 0.0
        for driver_id, allowed in scenario.strong.items():
            if values.get(driver_id) in allowed:
                score += STRONG_WEIGHT
                result.matched_criteria.append(f"strong:{driver_id}")
        for driver_id, allowed in scenario.supporting.items():
            if values.get(driver_id) in allowed:
                score += SUPPORTING_WEIGHT
                result.matched_criteria.append(f"supporting:{driver_id}")
        for tag in scenario.preferred_tags:
            if tag in tags:
                score += PREFERRED_TAG_BONUS
                result.matched_criteria.append(f"tag:{tag}")

        result.score = score
        return result

    def _safety_override(
        self,
        values: Mapping[str, str],
        survivors: list[ScenarioScore],
    ) -> ScenarioScore | None:
        if not any(values.get(d) in allowed for d, allowed in SAFETY_TRIGGERS.items()):
            return None
        for candidate in survivors:
            if self._catalog.scenario(candidate.scenario_id).is_safety:
                return candidate
        return None

    @staticmethod
    def _fallback(fallback: Scenario, ranked: list[ScenarioScore], reason: str) -> ScenarioMatchResult:
        log.info("Falling back to %s: %s", fallback.scenario_id, reason)
        return ScenarioMatchResult(
            matched_scenario=fallback.scenario_id,
            scenario_name=fallback.name,
            score=0.0,
            confidence=ConfidenceLevel.FALLBACK,
            all_scores=ranked,
            fallback_used=True,
            fallback_reason=reason,
        )
