"""File-backed catalog loader: reads the YAML rule tables and validates them.

The catalog is loaded once per process and never mutated. Inconsistent data
(unknown driver ids, fallback values outside a driver's value set, anything
other than exactly one fallback scenario) raises ``CatalogError`` at load
time rather than surfacing mid-run.
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

from smile_advisor.catalog.models import (
    BlockPattern,
    Catalog,
    DerivationRule,
    DriverDefinition,
    LeakagePattern,
    MatchKind,
    Predicate,
    QuestionDependency,
    QuestionSpec,
    RangeRule,
    Scenario,
    SectionSpec,
    SourceKind,
    SuppressionRule,
    TagRule,
    ToneProfile,
    TriggerRule,
)
from smile_advisor.exceptions import CatalogError

log = logging.getLogger(__name__)

DEFAULT_CATALOG_DIR = Path(__file__).parent / "data"

_FILES = {
    "questions": "questions",
    "tag_rules": "tag_rules",
    "drivers": "drivers",
    "scenarios": "scenarios",
    "tones": "tones",
    "content": "content_rules",
    "leakage": "leakage_patterns",
}

_RANGE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*-\s*(-?\d+(?:\.\d+)?)\s*$")
_TAG_RE = re.compile(r"^[a-z0-9_]+$")
_MODULE_SLOTS = frozenset({SourceKind.MODULE_PREPEND, SourceKind.MODULE_APPEND})


class CatalogLoader:
    """Loads catalog tables (``.yaml``/``.yml``/``.json``) from a directory."""

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = Path(directory) if directory is not None else DEFAULT_CATALOG_DIR

    def load(self) -> Catalog:
        raw = {key: self._read(stem) for key, stem in _FILES.items()}

        drivers = tuple(self._parse_driver(d) for d in raw["drivers"].get("drivers", []))
        tones_doc = raw["tones"]
        content = raw["content"]

        catalog = Catalog(
            version=str(raw["content"].get("version", "1")),
            questions={q.question_id: q for q in map(self._parse_question, raw["questions"].get("questions", []))},
            tag_rules={
                str(qid): self._parse_tag_rule(str(qid), body)
                for qid, body in (raw["tag_rules"].get("rules") or {}).items()
            },
            drivers=drivers,
            scenarios=tuple(self._parse_scenario(s) for s in raw["scenarios"].get("scenarios", [])),
            tones=tuple(
                sorted(
                    (self._parse_tone(t) for t in tones_doc.get("tones", [])),
                    key=lambda t: (t.priority, t.tone_id),
                )
            ),
            default_tone=str(tones_doc.get("default_tone", "TP-01")),
            closing_tone=str(tones_doc.get("closing_tone", "TP-06")),
            sections={spec.number: spec for spec in map(self._parse_section, content.get("sections", []))},
            suppression_rules=tuple(self._parse_suppression(r) for r in content.get("suppression", [])),
            a_block_rules=tuple(self._parse_trigger(r, default_sections=(0,)) for r in content.get("a_blocks", [])),
            b_block_rules=tuple(self._parse_trigger(r) for r in content.get("b_blocks", [])),
            module_rules=tuple(self._parse_trigger(r, default_priority=2) for r in content.get("modules", [])),
            scenario_block_prefixes={int(k): str(v) for k, v in (content.get("scenario_blocks") or {}).items()},
            leakage_patterns=tuple(self._parse_leakage(p) for p in raw["leakage"].get("patterns", [])),
            composition=content.get("composition") or {},
        )

        validate_catalog(catalog)
        log.info(
            "Loaded catalog %s from %s (%d drivers, %d scenarios, %d tones)",
            catalog.version,
            self._directory,
            len(catalog.drivers),
            len(catalog.scenarios),
            len(catalog.tones),
        )
        return catalog

    # ── File access ─────────────────────────────────────────────────

    def _read(self, stem: str) -> dict[str, Any]:
        for suffix in (".yaml", ".yml", ".json"):
            path = self._directory / f"{stem}{suffix}"
            if path.exists():
                break
        else:
            raise CatalogError(f"Catalog table {stem!r} not found in {self._directory}")

        raw_text = path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw_text) if path.suffix == ".json" else yaml.safe_load(raw_text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise CatalogError(f"Could not parse {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise CatalogError(f"{path} must contain a mapping at the top level")
        return data

    # ── Parsers ─────────────────────────────────────────────────────

    @staticmethod
    def _parse_question(data: dict[str, Any]) -> QuestionSpec:
        dependency = None
        if data.get("depends_on"):
            dep = data["depends_on"]
            dependency = QuestionDependency(
                question_id=str(dep["question"]),
                values=frozenset(str(v) for v in dep.get("values", [])),
            )
        return QuestionSpec(
            question_id=str(data["id"]),
            name=data.get("name", ""),
            allowed_values=tuple(str(v) for v in data.get("values", [])),
            multi_select=bool(data.get("multi_select", False)),
            required=bool(data.get("required", False)),
            critical=bool(data.get("critical", False)),
            depends_on=dependency,
        )

    @staticmethod
    def _parse_tag_rule(question_id: str, data: dict[str, Any]) -> TagRule:
        ranges = []
        for band in data.get("ranges", []):
            match = _RANGE_RE.match(str(band["range"]))
            if not match:
                raise CatalogError(f"Bad range {band['range']!r} for {question_id}")
            ranges.append(
                RangeRule(
                    low=float(match.group(1)),
                    high=float(match.group(2)),
                    tags=tuple(band.get("tags", [])),
                )
            )
        return TagRule(
            question_id=question_id,
            answers={str(k): tuple(v) for k, v in (data.get("answers") or {}).items()},
            ranges=tuple(ranges),
            multi_select=bool(data.get("multi_select", False)),
        )

    @staticmethod
    def _parse_driver(data: dict[str, Any]) -> DriverDefinition:
        rules = tuple(
            DerivationRule(
                value=str(r["value"]),
                priority=int(r.get("priority", 10)),
                tags_any=frozenset(r.get("tags_any", [])),
                tags_all=frozenset(r.get("tags_all", [])),
            )
            for r in data.get("rules", [])
        )
        return DriverDefinition(
            driver_id=str(data["id"]),
            layer=str(data.get("layer", "L3")),
            values=tuple(str(v) for v in data.get("values", [])),
            fallback=str(data["fallback"]),
            rules=rules,
            description=data.get("description", ""),
        )

    @staticmethod
    def _criteria(data: Mapping[str, Any] | None) -> dict[str, frozenset[str]]:
        return {str(k): frozenset(str(v) for v in values) for k, values in (data or {}).items()}

    def _parse_scenario(self, data: dict[str, Any]) -> Scenario:
        return Scenario(
            scenario_id=str(data["id"]),
            name=data.get("name", ""),
            priority=int(data.get("priority", 100)),
            is_fallback=bool(data.get("is_fallback", False)),
            is_safety=bool(data.get("is_safety", False)),
            required=self._criteria(data.get("required")),
            strong=self._criteria(data.get("strong")),
            supporting=self._criteria(data.get("supporting")),
            excluding=self._criteria(data.get("excluding")),
            preferred_tags=tuple(data.get("preferred_tags") or ()),
        )

    def _parse_tone(self, data: dict[str, Any]) -> ToneProfile:
        return ToneProfile(
            tone_id=str(data["id"]),
            name=data.get("name", ""),
            priority=int(data.get("priority", 100)),
            triggers=self._criteria(data.get("triggers")),
            banned_phrases=tuple(data.get("banned_phrases") or ()),
        )

    @staticmethod
    def _parse_section(data: dict[str, Any]) -> SectionSpec:
        try:
            order = tuple(SourceKind(kind) for kind in data.get("order", []))
        except ValueError as exc:
            raise CatalogError(f"Section {data.get('number')}: {exc}") from exc
        return SectionSpec(
            number=int(data["number"]),
            name=str(data["name"]),
            order=order,
            scenario_key=data.get("scenario_key"),
            required=bool(data.get("required", False)),
            tone_override=data.get("tone_override"),
            min_words=int(data.get("min_words", 0)),
            max_words=int(data.get("max_words", 10_000)),
            uncertainty_prefix=bool(data.get("uncertainty_prefix", False)),
        )

    def _parse_predicate(self, data: Mapping[str, Any] | None) -> Predicate:
        data = data or {}
        return Predicate(
            drivers=self._criteria(data.get("drivers")),
            tags=frozenset(data.get("tags") or ()),
        )

    def _parse_trigger(
        self,
        data: dict[str, Any],
        *,
        default_sections: tuple[int, ...] = (),
        default_priority: int = 10,
    ) -> TriggerRule:
        if "sections" in data:
            sections = tuple(int(s) for s in data["sections"])
        elif "section" in data:
            sections = (int(data["section"]),)
        else:
            sections = default_sections
        return TriggerRule(
            target=str(data["id"]),
            predicate=self._parse_predicate(data.get("when")),
            priority=int(data.get("priority", default_priority)),
            sections=sections,
        )

    def _parse_suppression(self, data: dict[str, Any]) -> SuppressionRule:
        patterns = []
        for raw in data.get("blocks", []):
            if "prefix" in raw:
                patterns.append(BlockPattern(value=str(raw["prefix"]), match=MatchKind.PREFIX))
            elif "exact" in raw:
                patterns.append(BlockPattern(value=str(raw["exact"]), match=MatchKind.EXACT))
            else:
                raise CatalogError(f"Suppression {data.get('id')}: block pattern needs 'exact' or 'prefix'")
        return SuppressionRule(
            rule_id=str(data["id"]),
            predicate=self._parse_predicate(data.get("when")),
            block_patterns=tuple(patterns),
            sections=frozenset(int(s) for s in data.get("sections", [])),
        )

    @staticmethod
    def _parse_leakage(data: dict[str, Any]) -> LeakagePattern:
        severity = str(data.get("severity", "WARNING")).upper()
        if severity not in ("CRITICAL", "WARNING"):
            raise CatalogError(f"Leakage pattern {data.get('pattern')!r}: unknown severity {severity!r}")
        return LeakagePattern(
            pattern=str(data["pattern"]),
            rule=str(data.get("rule", "")),
            severity=severity,
            regex=bool(data.get("regex", False)),
        )


# ── Validation ───────────────────────────────────────────────────────


def validate_catalog(catalog: Catalog) -> None:
    """Check cross-table invariants. Raises CatalogError on the first violation."""
    fallbacks = [s.scenario_id for s in catalog.scenarios if s.is_fallback]
    if len(fallbacks) != 1:
        raise CatalogError(f"Exactly one fallback scenario required, found {len(fallbacks)}: {fallbacks}")
    if catalog.fallback_scenario.required:
        raise CatalogError(f"Fallback scenario {fallbacks[0]} must not declare required drivers")

    driver_values = {d.driver_id: set(d.values) for d in catalog.drivers}
    for definition in catalog.drivers:
        if definition.fallback not in driver_values[definition.driver_id]:
            raise CatalogError(
                f"Driver {definition.driver_id}: fallback {definition.fallback!r} not in its value set"
            )
        for rule in definition.rules:
            if rule.value not in driver_values[definition.driver_id]:
                raise CatalogError(f"Driver {definition.driver_id}: rule value {rule.value!r} not in its value set")

    def _check_criteria(owner: str, criteria: Mapping[str, frozenset[str]]) -> None:
        for driver_id, values in criteria.items():
            if driver_id not in driver_values:
                raise CatalogError(f"{owner}: unknown driver {driver_id!r}")
            unknown = values - driver_values[driver_id]
            if unknown:
                raise CatalogError(f"{owner}: unknown values {sorted(unknown)} for {driver_id}")

    for scenario in catalog.scenarios:
        for tier in ("required", "strong", "supporting", "excluding"):
            _check_criteria(f"Scenario {scenario.scenario_id} ({tier})", getattr(scenario, tier))
    for tone in catalog.tones:
        _check_criteria(f"Tone {tone.tone_id}", tone.triggers)
    for rule in (*catalog.a_block_rules, *catalog.b_block_rules, *catalog.module_rules):
        _check_criteria(f"Trigger {rule.target}", rule.predicate.drivers)
        if not rule.sections or any(s not in catalog.sections for s in rule.sections):
            raise CatalogError(f"Trigger {rule.target}: invalid target sections {rule.sections}")
    for rule in catalog.module_rules:
        for number in rule.sections:
            if not _MODULE_SLOTS & set(catalog.sections[number].order):
                raise CatalogError(f"Module {rule.target}: section {number} has no module slot")
    for suppression in catalog.suppression_rules:
        _check_criteria(f"Suppression {suppression.rule_id}", suppression.predicate.drivers)

    if sorted(catalog.sections) != list(range(12)):
        raise CatalogError(f"Sections 0-11 must all be defined, got {sorted(catalog.sections)}")
    tone_ids = {t.tone_id for t in catalog.tones}
    for tone_id in (catalog.default_tone, catalog.closing_tone):
        if tone_id not in tone_ids:
            raise CatalogError(f"Tone {tone_id!r} referenced but not defined")
    for question_id in catalog.tag_rules:
        if question_id not in catalog.questions:
            raise CatalogError(f"Tag rule for unknown question {question_id!r}")
        rule = catalog.tag_rules[question_id]
        names = [tag for tags in rule.answers.values() for tag in tags]
        names += [tag for band in rule.ranges for tag in band.tags]
        bad = sorted({name for name in names if not _TAG_RE.match(name)})
        if bad:
            raise CatalogError(f"Tag rule for {question_id}: tag names outside [a-z0-9_]: {bad}")


@lru_cache(maxsize=None)
def load_catalog(directory: str | None = None) -> Catalog:
    """Load (once per directory) and return the validated catalog."""
    return CatalogLoader(Path(directory) if directory else None).load()
