"""Report composition: content selections + repository text -> a 12-section report.

Each section is assembled from its source slots in catalog order. Scenario
text for a section takes precedence over the generic b-blocks targeting it;
blocks the repository does not have contribute nothing. A section that is
suppressed, or that ends up with no text, is recorded in
``suppressed_sections`` and not rendered.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping

from smile_advisor.catalog.models import PREPEND_PRIORITY, Catalog, SectionSpec, SourceKind
from smile_advisor.composition.placeholders import PlaceholderResolver, calculated_values
from smile_advisor.content.protocols import IContentRepository
from smile_advisor.core.config import CompositionConfig
from smile_advisor.models import (
    ComposedReport,
    ConfidenceLevel,
    ContentSelection,
    ContentSelectionResult,
    ContentType,
    DriverState,
    ReportSection,
    ScenarioMatchResult,
)

log = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")

_BLOCK_TYPES = {
    SourceKind.A_BLOCK: ContentType.A_BLOCK,
    SourceKind.B_BLOCK: ContentType.B_BLOCK,
}


def count_words(text: str) -> int:
    return len(_PUNCTUATION_RE.sub("", text).split())


class _SectionBuffer:
    """Collects text parts, sources and placeholder stats for one section."""

    def __init__(self, resolver: PlaceholderResolver) -> None:
        self._resolver = resolver
        self.parts: list[str] = []
        self.sources: list[str] = []
        self.resolved = 0
        self.unresolved: list[str] = []

    def add(self, text: str | None, source: str) -> bool:
        if text is None or not text.strip() or source in self.sources:
            return False
        resolution = self._resolver.resolve(text.strip())
        self.parts.append(resolution.text)
        self.sources.append(source)
        self.resolved += resolution.resolved
        self.unresolved.extend(resolution.unresolved)
        return True


class ReportComposer:
    """Assembles a ``ComposedReport``. Pure with respect to its inputs and repository."""

    def __init__(
        self,
        catalog: Catalog,
        repository: IContentRepository,
        settings: CompositionConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._repository = repository
        self._settings = settings or CompositionConfig()
        composition = catalog.composition
        self._max_option_blocks = int(composition.get("max_option_blocks", 2))
        self._option_prefix = str(composition.get("option_block_prefix", "B_OPT_"))
        self._max_modules = int(composition.get("max_modules_per_section", 4))
        self._static_blocks = {int(k): str(v) for k, v in (composition.get("static_blocks") or {}).items()}
        self._fallback_text: Mapping[str, str] = composition.get("fallback_text") or {}
        self._uncertainty: Mapping[str, str] = composition.get("uncertainty") or {}

    async def compose(
        self,
        driver_state: DriverState,
        match: ScenarioMatchResult,
        selections: ContentSelectionResult,
        tone: str,
        language: str,
        scenario_sections: Mapping[str, str] | None = None,
        metadata: Mapping[str, str] | None = None,
        custom: Mapping[str, str] | None = None,
    ) -> ComposedReport:
        composition = self._catalog.composition
        resolver = PlaceholderResolver(
            metadata=metadata,
            metadata_keys=composition.get("metadata_keys"),
            calculated=calculated_values(
                {d: v.value for d, v in driver_state.drivers.items()},
                composition.get("calculated") or {},
            ),
            custom=custom,
            defaults=composition.get("placeholder_defaults"),
        )
        scenario_text = {k: v for k, v in (scenario_sections or {}).items() if v and v.strip()}
        suppressed = set(selections.suppressed_sections)

        sections: list[ReportSection] = []
        resolved_total = 0
        unresolved: list[str] = []

        for number in sorted(self._catalog.sections):
            spec = self._catalog.sections[number]
            section_selections = selections.for_section(number)
            if number in suppressed:
                continue
            if section_selections and all(s.suppressed for s in section_selections):
                log.debug("Section %d: every selection suppressed", number)
                suppressed.add(number)
                continue

            buffer = await self._assemble(
                spec,
                [s for s in section_selections if not s.suppressed],
                tone,
                language,
                scenario_text,
                match,
                resolver,
            )
            if not buffer.parts:
                log.debug("Section %d (%s): no content available", number, spec.name)
                suppressed.add(number)
                continue

            if spec.uncertainty_prefix and self._settings.include_uncertainty_sentences:
                sentence = self._uncertainty.get(match.confidence.value)
                if match.confidence != ConfidenceLevel.HIGH and sentence:
                    buffer.parts.insert(0, sentence)

            content = "\n\n".join(buffer.parts)
            sections.append(
                ReportSection(
                    section_number=number,
                    section_name=spec.name,
                    content=content,
                    sources=buffer.sources,
                    word_count=count_words(content),
                )
            )
            resolved_total += buffer.resolved
            unresolved.extend(buffer.unresolved)

        unique_unresolved = list(dict.fromkeys(unresolved))
        report = ComposedReport(
            session_id=driver_state.session_id,
            scenario_id=match.matched_scenario,
            tone=tone,
            language=language,
            confidence=match.confidence,
            sections=sections,
            total_word_count=sum(s.word_count for s in sections),
            warnings_included=any(s.section_number == 0 for s in sections),
            suppressed_sections=sorted(suppressed),
            placeholders_resolved=resolved_total,
            placeholders_unresolved=len(unique_unresolved),
            unresolved_placeholders=unique_unresolved,
        )
        log.info(
            "Composed report for %s: %d sections, %d words, suppressed %s",
            report.session_id,
            len(sections),
            report.total_word_count,
            report.suppressed_sections,
        )
        return report

    # ── Section assembly ────────────────────────────────────────────

    async def _assemble(
        self,
        spec: SectionSpec,
        selections: list[ContentSelection],
        tone: str,
        language: str,
        scenario_text: Mapping[str, str],
        match: ScenarioMatchResult,
        resolver: PlaceholderResolver,
    ) -> _SectionBuffer:
        buffer = _SectionBuffer(resolver)
        has_scenario_text = bool(spec.scenario_key and scenario_text.get(spec.scenario_key))
        prepend, append = self._split_modules(spec, selections)

        for kind in spec.order:
            if kind == SourceKind.STATIC:
                await self._add_static(buffer, spec.number, selections, tone, language)
            elif kind == SourceKind.SCENARIO:
                if has_scenario_text:
                    buffer.add(scenario_text[spec.scenario_key], f"{match.matched_scenario}:{spec.scenario_key}")
            elif kind == SourceKind.B_BLOCK:
                if has_scenario_text:
                    continue
                blocks = self._cap_options(self._of_type(selections, ContentType.B_BLOCK))
                await self._add_blocks(buffer, blocks, language)
            elif kind == SourceKind.A_BLOCK:
                await self._add_blocks(buffer, self._of_type(selections, ContentType.A_BLOCK), language)
            elif kind == SourceKind.MODULE_PREPEND:
                await self._add_blocks(buffer, prepend, language)
            elif kind == SourceKind.MODULE_APPEND:
                await self._add_blocks(buffer, append, language)
        return buffer

    async def _add_blocks(self, buffer: _SectionBuffer, selections: list[ContentSelection], language: str) -> None:
        for selection in selections:
            text = await self._repository.get_content(selection.content_id, selection.tone, language)
            buffer.add(text, selection.content_id)

    async def _add_static(
        self,
        buffer: _SectionBuffer,
        number: int,
        selections: list[ContentSelection],
        tone: str,
        language: str,
    ) -> None:
        block_id = self._static_blocks.get(number)
        if block_id is None:
            return
        selection = next((s for s in selections if s.content_id == block_id), None)
        block_tone = selection.tone if selection is not None else tone
        text = await self._repository.get_content(block_id, block_tone, language)
        if text is None or not text.strip():
            text = self._fallback_text.get(block_id)
        buffer.add(text, block_id)

    @staticmethod
    def _of_type(selections: list[ContentSelection], content_type: ContentType) -> list[ContentSelection]:
        return sorted((s for s in selections if s.content_type == content_type), key=lambda s: s.priority)

    def _cap_options(self, selections: list[ContentSelection]) -> list[ContentSelection]:
        kept, options = [], 0
        for selection in selections:
            if selection.content_id.startswith(self._option_prefix):
                if options >= self._max_option_blocks:
                    continue
                options += 1
            kept.append(selection)
        return kept

    def _split_modules(
        self,
        spec: SectionSpec,
        selections: list[ContentSelection],
    ) -> tuple[list[ContentSelection], list[ContentSelection]]:
        modules = self._of_type(selections, ContentType.MODULE)[: self._max_modules]
        if SourceKind.MODULE_PREPEND not in spec.order:
            return [], modules
        if SourceKind.MODULE_APPEND not in spec.order:
            return modules, []
        prepend = [m for m in modules if m.priority <= PREPEND_PRIORITY]
        append = [m for m in modules if m.priority > PREPEND_PRIORITY]
        return prepend, append
