"""Tone fallback chains for content lookup.

A block authored only in a neighbouring tone is preferable to no block:
an anxious reader (TP-04) gets the empathetic variant before the neutral one.
"""

from __future__ import annotations

TONE_FALLBACKS: dict[str, tuple[str, ...]] = {
    "TP-01": (),
    "TP-02": ("TP-01",),
    "TP-03": ("TP-01",),
    "TP-04": ("TP-02", "TP-01"),
    "TP-05": ("TP-03", "TP-01"),
    "TP-06": ("TP-01",),
}


def tone_chain(tone: str) -> tuple[str, ...]:
    """Requested tone followed by its fallbacks, without duplicates."""
    return tuple(dict.fromkeys((tone, *TONE_FALLBACKS.get(tone, ()))))
