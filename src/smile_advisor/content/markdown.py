"""Markdown helpers for the file content backend.

Scenario documents are split on their headers; each header is mapped to a
scenario section key (``personal_summary``, ``context``...). The first
matching pattern wins, so more specific patterns come first.
"""

from __future__ import annotations

import re

_FRONTMATTER_RE = re.compile(r"\A---\s*\n.*?\n---\s*(?:\n|\Z)", re.DOTALL)
_WORD_MARKER_RE = re.compile(r"\*\[\d+\s*words\]\*")
_HEADER_RE = re.compile(r"^(#{1,3})\s*(?:Section\s*\d+[:.])?\s*(.+?)\s*$", re.MULTILINE)

SECTION_KEY_PATTERNS: tuple[tuple[str, str], ...] = (
    ("option 1", "options"),
    ("option 2", "options"),
    ("treatment options", "options"),
    ("personal summary", "personal_summary"),
    ("section 2", "personal_summary"),
    ("your situation", "context"),
    ("situation", "context"),
    ("context", "context"),
    ("interpretation", "interpretation"),
    ("treatment directions", "interpretation"),
    ("comparison", "comparison"),
    (" vs ", "comparison"),
    ("trade-offs", "tradeoffs"),
    ("tradeoffs", "tradeoffs"),
    ("treatment process", "process"),
    ("duration", "process"),
    ("process", "process"),
    ("cost", "costs"),
    ("risk factors", "risk"),
    ("next steps", "next_steps"),
)


def strip_frontmatter(text: str) -> str:
    """Drop a leading YAML frontmatter block and authoring word-count markers."""
    text = _FRONTMATTER_RE.sub("", text, count=1)
    return _WORD_MARKER_RE.sub("", text).strip()


def section_key_for(header: str) -> str | None:
    lowered = f" {header.strip().lower()} "
    for pattern, key in SECTION_KEY_PATTERNS:
        if pattern in lowered:
            return key
    return None


def parse_scenario_sections(text: str) -> dict[str, str]:
    """Split a scenario document into ``{section_key: body}``.

    Bodies under unrecognised headers are dropped. Repeated keys (for example
    one header per treatment option) are concatenated with a blank line.
    """
    text = strip_frontmatter(text)
    matches = list(_HEADER_RE.finditer(text))
    sections: dict[str, str] = {}
    for i, match in enumerate(matches):
        key = section_key_for(match.group(2))
        if key is None:
            continue
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[match.end():end].strip()
        if not body:
            continue
        sections[key] = f"{sections[key]}\n\n{body}" if key in sections else body
    return sections
