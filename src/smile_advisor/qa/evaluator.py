"""Advisory report evaluation through an LLM, routed via LiteLLM.

The score is informational: the QA gate attaches it to its result but never
lets it change the outcome. Any failure surfaces as ``EvaluationError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Protocol, runtime_checkable

from smile_advisor.core.config import EvaluationConfig
from smile_advisor.exceptions import EvaluationError
from smile_advisor.models import ComposedReport
from smile_advisor.qa.models import EvaluationResult

log = logging.getLogger(__name__)

DIMENSION_WEIGHTS: dict[str, float] = {
    "professional_quality": 0.15,
    "clinical_safety": 0.25,
    "tone_appropriateness": 0.20,
    "personalization": 0.15,
    "patient_autonomy": 0.15,
    "structure_completeness": 0.10,
}

SYSTEM_PROMPT = """You are an expert evaluator of dental patient reports.

Score the report from 1 to 10 on each dimension:

- professional_quality: clarity, flow, professional patient-facing language
- clinical_safety: disclaimers present, no guaranteed outcomes, risks mentioned
- tone_appropriateness: consistent tone that matches the stated tone profile
- personalization: content specific to the patient's situation
- patient_autonomy: non-directive, presents options without pushing one
- structure_completeness: logical flow, expected information present

Respond with a single JSON object and nothing else:
{"professional_quality": <int>, "clinical_safety": <int>, "tone_appropriateness": <int>,
 "personalization": <int>, "patient_autonomy": <int>, "structure_completeness": <int>,
 "summary": "<two or three sentences>"}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@runtime_checkable
class IReportEvaluator(Protocol):
    """Scores a composed report. Implementations raise EvaluationError on failure."""

    async def evaluate(self, report: ComposedReport) -> EvaluationResult:
        ...


def build_user_prompt(report: ComposedReport) -> str:
    body = "\n\n".join(f"## {s.section_name} (Section {s.section_number})\n{s.content}" for s in report.sections)
    language = "Dutch (Nederlands)" if report.language == "nl" else "English"
    return (
        "Evaluate this dental report:\n\n"
        f"LANGUAGE: {language}\n"
        f"TONE PROFILE: {report.tone}\n"
        f"SCENARIO: {report.scenario_id}\n"
        f"TOTAL WORDS: {report.total_word_count}\n\n"
        f"--- REPORT CONTENT ---\n\n{body}\n\n--- END OF REPORT ---"
    )


def weighted_score(dimensions: dict[str, float]) -> float:
    return round(sum(dimensions[name] * weight for name, weight in DIMENSION_WEIGHTS.items()), 2)


def parse_evaluation(content: str, model: str = "") -> EvaluationResult:
    """Parse the model's JSON answer. Scores may be bare numbers or ``{"score": n}`` objects."""
    text = _FENCE_RE.sub("", content.strip())
    found = _OBJECT_RE.search(text)
    if found is None:
        raise EvaluationError("Evaluator response contained no JSON object")
    try:
        data: dict[str, Any] = json.loads(found.group(0))
    except json.JSONDecodeError as exc:
        raise EvaluationError(f"Evaluator response is not valid JSON: {exc}") from exc

    dimensions: dict[str, float] = {}
    for name in DIMENSION_WEIGHTS:
        raw = data.get(name)
        if isinstance(raw, dict):
            raw = raw.get("score")
        try:
            score = float(raw)
        except (TypeError, ValueError) as exc:
            raise EvaluationError(f"Missing or non-numeric score for {name!r}") from exc
        dimensions[name] = min(10.0, max(1.0, score))

    return EvaluationResult(
        overall_score=weighted_score(dimensions),
        dimension_scores=dimensions,
        summary=str(data.get("summary", "")),
        model=model,
    )


class LLMReportEvaluator:
    """Evaluates reports with any LiteLLM-supported model (``anthropic/``, ``openai/``, ``ollama/``...)."""

    def __init__(self, config: EvaluationConfig | None = None) -> None:
        self._config = config or EvaluationConfig()

    async def evaluate(self, report: ComposedReport) -> EvaluationResult:
        from litellm import acompletion

        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(report)},
            ],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key

        try:
            response = await asyncio.wait_for(acompletion(**kwargs), timeout=self._config.timeout)
        except asyncio.TimeoutError as exc:
            raise EvaluationError(f"Evaluation timed out after {self._config.timeout:g}s") from exc
        except Exception as exc:
            raise EvaluationError(f"Evaluation call failed: {exc}") from exc

        content = response.choices[0].message.content or ""
        result = parse_evaluation(content, model=self._config.model)
        log.info("Evaluated report %s: overall %.2f", report.session_id, result.overall_score)
        return result
