"""In-memory content repository backed by dicts, for tests and embedding."""

from __future__ import annotations

import logging
from typing import Mapping

from smile_advisor.content.tones import tone_chain

log = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"


class MemoryContentRepository:
    """Holds blocks and scenario sections in plain dicts; nothing touches disk.

    Blocks are keyed ``(language, block_id, tone)``; a tone of ``None`` is the
    tone-neutral version. Lookups walk the tone fallback chain and fall back
    to the default language.
    """

    def __init__(
        self,
        blocks: Mapping[str, str] | None = None,
        scenarios: Mapping[str, Mapping[str, str]] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._blocks: dict[tuple[str, str, str | None], str] = {}
        self._scenarios: dict[tuple[str, str, str | None], dict[str, str]] = {}
        for block_id, text in (blocks or {}).items():
            self.add_block(block_id, text, language=language)
        for scenario_id, sections in (scenarios or {}).items():
            self.add_scenario(scenario_id, sections, language=language)

    def add_block(
        self,
        block_id: str,
        text: str,
        *,
        tone: str | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._blocks[(language, block_id, tone)] = text

    def add_scenario(
        self,
        scenario_id: str,
        sections: Mapping[str, str],
        *,
        tone: str | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._scenarios[(language, scenario_id, tone)] = dict(sections)

    async def get_content(self, block_id: str, tone: str, language: str) -> str | None:
        for lang in _languages(language):
            for variant in (*tone_chain(tone), None):
                text = self._blocks.get((lang, block_id, variant))
                if text is not None:
                    return text
        return None

    async def get_scenario_sections(
        self,
        scenario_id: str,
        tone: str,
        language: str,
    ) -> dict[str, str] | None:
        for lang in _languages(language):
            for variant in (*tone_chain(tone), None):
                sections = self._scenarios.get((lang, scenario_id, variant))
                if sections is not None:
                    return dict(sections)
        return None


def _languages(language: str) -> tuple[str, ...]:
    return (language,) if language == DEFAULT_LANGUAGE else (language, DEFAULT_LANGUAGE)
