"""Reference-data models: questions, tag rules, drivers, scenarios, tones and triggers.

All catalog types are frozen dataclasses. A loaded ``Catalog`` is shared
read-only by every pipeline run in the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

# Modules with this priority render before the scenario text of their section.
PREPEND_PRIORITY = 0


class MatchKind(str, Enum):
    """How a block pattern compares against a content id."""

    EXACT = "exact"
    PREFIX = "prefix"


class SourceKind(str, Enum):
    """Source slot in a section's assembly order."""

    STATIC = "static"
    A_BLOCK = "a_block"
    B_BLOCK = "b_block"
    SCENARIO = "scenario"
    MODULE_PREPEND = "module_prepend"
    MODULE_APPEND = "module_append"


# ── Questions and tag rules ───────────────────────────────────────────


@dataclass(frozen=True)
class QuestionDependency:
    question_id: str
    values: frozenset[str]


@dataclass(frozen=True)
class QuestionSpec:
    """Intake metadata for one question."""

    question_id: str
    name: str
    allowed_values: tuple[str, ...] = ()
    multi_select: bool = False
    required: bool = False
    critical: bool = False
    depends_on: QuestionDependency | None = None


@dataclass(frozen=True)
class RangeRule:
    """Inclusive numeric band mapped to tags."""

    low: float
    high: float
    tags: tuple[str, ...]

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high


@dataclass(frozen=True)
class TagRule:
    """Per-question extraction rule: direct mapping, numeric bands, list expansion."""

    question_id: str
    answers: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    ranges: tuple[RangeRule, ...] = ()
    multi_select: bool = False


# ── Drivers ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DerivationRule:
    """Maps a tag condition to a driver value. Lower priority is more specific."""

    value: str
    priority: int
    tags_any: frozenset[str] = frozenset()
    tags_all: frozenset[str] = frozenset()

    def matched_tags(self, tags: set[str]) -> list[str]:
        """Tags that satisfy this rule, or an empty list if it does not match."""
        if self.tags_all and not self.tags_all <= tags:
            return []
        hits = set(self.tags_all)
        if self.tags_any:
            any_hits = self.tags_any & tags
            if not any_hits:
                return []
            hits |= any_hits
        return sorted(hits)


@dataclass(frozen=True)
class DriverDefinition:
    driver_id: str
    layer: str
    values: tuple[str, ...]
    fallback: str
    rules: tuple[DerivationRule, ...] = ()
    description: str = ""


# ── Scenarios ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Scenario:
    """A situational archetype with four tiers of matching criteria."""

    scenario_id: str
    name: str
    priority: int
    is_fallback: bool = False
    is_safety: bool = False
    required: Mapping[str, frozenset[str]] = field(default_factory=dict)
    strong: Mapping[str, frozenset[str]] = field(default_factory=dict)
    supporting: Mapping[str, frozenset[str]] = field(default_factory=dict)
    excluding: Mapping[str, frozenset[str]] = field(default_factory=dict)
    preferred_tags: tuple[str, ...] = ()


# ── Triggers ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Predicate:
    """Matches when any listed driver holds an allowed value or any listed tag is present."""

    drivers: Mapping[str, frozenset[str]] = field(default_factory=dict)
    tags: frozenset[str] = frozenset()

    def matches(self, driver_values: Mapping[str, str], tags: set[str]) -> bool:
        for driver_id, allowed in self.drivers.items():
            if driver_values.get(driver_id) in allowed:
                return True
        return bool(self.tags & tags)

    def describe(self, driver_values: Mapping[str, str], tags: set[str]) -> str:
        """Human-readable reason for a match, used in audit and suppression reasons."""
        for driver_id, allowed in sorted(self.drivers.items()):
            value = driver_values.get(driver_id)
            if value in allowed:
                return f"{driver_id}={value}"
        hits = sorted(self.tags & tags)
        return f"tag {hits[0]}" if hits else ""


@dataclass(frozen=True)
class TriggerRule:
    """A target (content id or tone id) selected when its predicate matches."""

    target: str
    predicate: Predicate
    priority: int = 10
    sections: tuple[int, ...] = ()


@dataclass(frozen=True)
class BlockPattern:
    value: str
    match: MatchKind = MatchKind.EXACT

    def matches(self, content_id: str) -> bool:
        if self.match == MatchKind.PREFIX:
            return content_id.startswith(self.value)
        return content_id == self.value


@dataclass(frozen=True)
class SuppressionRule:
    """Safety rule: when active, blocks content patterns and whole sections."""

    rule_id: str
    predicate: Predicate
    block_patterns: tuple[BlockPattern, ...] = ()
    sections: frozenset[int] = frozenset()


# ── Tones, sections, leakage ──────────────────────────────────────────


@dataclass(frozen=True)
class ToneProfile:
    tone_id: str
    name: str
    priority: int = 100
    triggers: Mapping[str, frozenset[str]] = field(default_factory=dict)
    banned_phrases: tuple[str, ...] = ()


@dataclass(frozen=True)
class SectionSpec:
    """Layout of one report section."""

    number: int
    name: str
    order: tuple[SourceKind, ...]
    scenario_key: str | None = None
    required: bool = False
    tone_override: str | None = None
    min_words: int = 0
    max_words: int = 10_000
    uncertainty_prefix: bool = False


@dataclass(frozen=True)
class LeakagePattern:
    """A banned phrase (word-bounded) or raw regex with its severity and rule text."""

    pattern: str
    rule: str
    severity: str = "WARNING"
    regex: bool = False


# ── Catalog ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Catalog:
    """All reference data for one process. Never mutated after load."""

    version: str
    questions: Mapping[str, QuestionSpec]
    tag_rules: Mapping[str, TagRule]
    drivers: tuple[DriverDefinition, ...]
    scenarios: tuple[Scenario, ...]
    tones: tuple[ToneProfile, ...]
    default_tone: str
    closing_tone: str
    sections: Mapping[int, SectionSpec]
    suppression_rules: tuple[SuppressionRule, ...]
    a_block_rules: tuple[TriggerRule, ...]
    b_block_rules: tuple[TriggerRule, ...]
    module_rules: tuple[TriggerRule, ...]
    scenario_block_prefixes: Mapping[int, str]
    leakage_patterns: tuple[LeakagePattern, ...]
    composition: Mapping[str, Any] = field(default_factory=dict)

    @property
    def fallback_scenario(self) -> Scenario:
        # Load-time validation guarantees exactly one.
        return next(s for s in self.scenarios if s.is_fallback)

    def driver(self, driver_id: str) -> DriverDefinition:
        for definition in self.drivers:
            if definition.driver_id == driver_id:
                return definition
        raise KeyError(f"Driver {driver_id!r} not in catalog")

    def scenario(self, scenario_id: str) -> Scenario:
        for scenario in self.scenarios:
            if scenario.scenario_id == scenario_id:
                return scenario
        raise KeyError(f"Scenario {scenario_id!r} not in catalog")

    def tone(self, tone_id: str) -> ToneProfile:
        for tone in self.tones:
            if tone.tone_id == tone_id:
                return tone
        raise KeyError(f"Tone {tone_id!r} not in catalog")

    @property
    def required_sections(self) -> list[int]:
        return sorted(n for n, spec in self.sections.items() if spec.required)
