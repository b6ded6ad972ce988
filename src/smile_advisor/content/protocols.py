"""Content repository protocol: the contract every content backend implements."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IContentRepository(Protocol):
    """Read-only source of authored report text, keyed by id, tone and language."""

    async def get_content(self, block_id: str, tone: str, language: str) -> str | None:
        """Text for a block (a/b block, module or static), or None if absent."""
        ...

    async def get_scenario_sections(
        self,
        scenario_id: str,
        tone: str,
        language: str,
    ) -> dict[str, str] | None:
        """Scenario text split by section key, or None if the scenario has no content."""
        ...
