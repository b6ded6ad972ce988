"""Tag extraction: answers -> canonical tags, one question at a time."""

from __future__ import annotations

import logging
import re

from smile_advisor.catalog.models import Catalog, TagRule
from smile_advisor.models import ExtractedTag, IntakeData, QuestionAnswer, TagExtractionResult

log = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9_]")


def normalize_answer(value: str) -> str:
    """Lowercase, trim, whitespace to ``_``, drop anything outside ``[a-z0-9_]``."""
    return _INVALID.sub("", _WHITESPACE.sub("_", value.strip().lower()))


def parse_number(value: str) -> float | None:
    """Numeric reading of a raw answer for range rules, or None."""
    try:
        return float(value.strip())
    except ValueError:
        return None


class TagExtractor:
    """Applies per-question tag rules. No cross-question logic happens here."""

    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def extract(self, intake: IntakeData) -> TagExtractionResult:
        tags: list[ExtractedTag] = []
        answered: set[str] = set()

        for answer in intake.answers:
            rule = self._catalog.tag_rules.get(answer.question_id)
            if rule is None:
                # Forward-compatible intake schemas may carry questions we do not know yet.
                log.debug("No tag rule for question %s, ignoring", answer.question_id)
                continue
            if answer.is_empty():
                continue
            answered.add(answer.question_id)
            tags.extend(self._apply(rule, answer))

        missing = [
            qid
            for qid, spec in self._catalog.questions.items()
            if spec.required and qid not in answered
        ]
        log.debug("Extracted %d tags for session %s", len(tags), intake.session_id)
        return TagExtractionResult(session_id=intake.session_id, tags=tags, missing_questions=missing)

    def _apply(self, rule: TagRule, answer: QuestionAnswer) -> list[ExtractedTag]:
        values = answer.values()
        if not rule.multi_select:
            values = values[:1]

        extracted: list[ExtractedTag] = []
        for raw in values:
            normalized = normalize_answer(raw)
            # range answers keep their decimal point in the provenance
            source = normalized if normalized in rule.answers else raw.strip()
            for tag in self._tags_for(rule, raw, normalized):
                extracted.append(
                    ExtractedTag(tag=tag, source_question=answer.question_id, source_answer=source)
                )
        return extracted

    @staticmethod
    def _tags_for(rule: TagRule, raw: str, normalized: str) -> tuple[str, ...]:
        if normalized in rule.answers:
            return rule.answers[normalized]
        if rule.ranges:
            number = parse_number(raw)
            if number is None:
                return ()
            for band in rule.ranges:
                if band.contains(number):
                    return band.tags
        return ()
