"""File-based content repository: a markdown tree on the local filesystem.

Layout::

    <root>/<language>/blocks/<BLOCK_ID>.md
    <root>/<language>/blocks/<BLOCK_ID>.<TONE>.md
    <root>/<language>/scenarios/<SCENARIO_ID>.md
    <root>/<language>/scenarios/<SCENARIO_ID>.<TONE>.md

Tone variants are tried along the tone fallback chain before the
tone-neutral file; a missing language falls back to ``en``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from smile_advisor.content.markdown import parse_scenario_sections, strip_frontmatter
from smile_advisor.content.tones import tone_chain
from smile_advisor.exceptions import ContentRepositoryError

log = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"


class FileContentRepository:
    """Reads authored markdown from ``root``. Parsed files are cached per path."""

    def __init__(self, root: Path, encoding: str = "utf-8") -> None:
        self._root = Path(root)
        self._encoding = encoding
        self._cache: dict[Path, str | None] = {}

    async def get_content(self, block_id: str, tone: str, language: str) -> str | None:
        text = await self._first_existing("blocks", block_id, tone, language)
        return strip_frontmatter(text) if text is not None else None

    async def get_scenario_sections(
        self,
        scenario_id: str,
        tone: str,
        language: str,
    ) -> dict[str, str] | None:
        text = await self._first_existing("scenarios", scenario_id, tone, language)
        if text is None:
            return None
        return parse_scenario_sections(text)

    def clear_cache(self) -> None:
        self._cache.clear()

    # ── File access ─────────────────────────────────────────────────

    def _candidates(self, kind: str, item_id: str, tone: str, language: str) -> list[Path]:
        if "/" in item_id or "\\" in item_id or item_id.startswith("."):
            raise ContentRepositoryError(f"Invalid content id: {item_id!r}")
        languages = [language] if language == DEFAULT_LANGUAGE else [language, DEFAULT_LANGUAGE]
        paths = []
        for lang in languages:
            base = self._root / lang / kind
            paths.extend(base / f"{item_id}.{variant}.md" for variant in tone_chain(tone))
            paths.append(base / f"{item_id}.md")
        return paths

    async def _first_existing(self, kind: str, item_id: str, tone: str, language: str) -> str | None:
        for path in self._candidates(kind, item_id, tone, language):
            text = await self._read(path)
            if text is not None:
                log.debug("Resolved %s %s (%s/%s) -> %s", kind, item_id, tone, language, path)
                return text
        return None

    async def _read(self, path: Path) -> str | None:
        if path not in self._cache:
            self._cache[path] = await asyncio.to_thread(self._read_sync, path)
        return self._cache[path]

    def _read_sync(self, path: Path) -> str | None:
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding=self._encoding)
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentRepositoryError(f"Could not read {path}: {exc}") from exc
