"""Placeholder resolution for authored text.

Tokens are ``{TOKEN}`` or ``{{TOKEN}}`` (upper-case, digits, underscores).
Sources are tried in a fixed order: intake metadata, values calculated
from drivers, caller-supplied custom values, then catalog defaults. A token
no source can fill stays in the text verbatim and is reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

PLACEHOLDER_RE = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}|\{([A-Z][A-Z0-9_]*)\}")


@dataclass
class Resolution:
    text: str
    resolved: int = 0
    unresolved: list[str] = field(default_factory=list)


def find_placeholders(text: str) -> list[str]:
    """Distinct tokens in order of first appearance."""
    return list(dict.fromkeys(m.group(1) or m.group(2) for m in PLACEHOLDER_RE.finditer(text)))


def calculated_values(
    driver_values: Mapping[str, str],
    table: Mapping[str, Mapping[str, Mapping[str, str]]],
) -> dict[str, str]:
    """Derive token values from driver values via the catalog's ``calculated`` table."""
    values: dict[str, str] = {}
    for driver_id, by_value in table.items():
        tokens = by_value.get(driver_values.get(driver_id, ""), {})
        values.update({str(k): str(v) for k, v in tokens.items()})
    return values


class PlaceholderResolver:
    def __init__(
        self,
        *,
        metadata: Mapping[str, str] | None = None,
        metadata_keys: Mapping[str, str] | None = None,
        calculated: Mapping[str, str] | None = None,
        custom: Mapping[str, str] | None = None,
        defaults: Mapping[str, str] | None = None,
    ) -> None:
        self._metadata = dict(metadata or {})
        self._metadata_keys = dict(metadata_keys or {})
        self._calculated = dict(calculated or {})
        self._custom = dict(custom or {})
        self._defaults = dict(defaults or {})

    def lookup(self, token: str) -> str | None:
        metadata_key = self._metadata_keys.get(token, token.lower())
        value = self._metadata.get(metadata_key)
        if value:
            return value
        for source in (self._calculated, self._custom, self._defaults):
            if token in source:
                return source[token]
        return None

    def resolve(self, text: str) -> Resolution:
        result = Resolution(text=text)

        def _replace(match: re.Match[str]) -> str:
            token = match.group(1) or match.group(2)
            value = self.lookup(token)
            if value is None:
                if token not in result.unresolved:
                    result.unresolved.append(token)
                return match.group(0)
            result.resolved += 1
            return value

        result.text = PLACEHOLDER_RE.sub(_replace, text)
        return result
