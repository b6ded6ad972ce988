"""QA gate: merges structural validation and semantic leakage into PASS / FLAG / BLOCK.

Decision order:

1. critical semantic violations over threshold -> BLOCK
2. structural errors over threshold -> BLOCK
3. warning violations, validation warnings over threshold, a non-HIGH
   scenario confidence, or (when configured) unresolved placeholders -> FLAG
4. otherwise PASS

An optional advisory evaluator scores the report afterwards. Its result is
attached for review; its failures are logged and ignored.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping

from smile_advisor.catalog.models import Catalog
from smile_advisor.core.config import QAConfig
from smile_advisor.models import ComposedReport, ConfidenceLevel
from smile_advisor.qa.evaluator import IReportEvaluator
from smile_advisor.qa.leakage import SemanticLeakageDetector
from smile_advisor.qa.models import EvaluationResult, QAGateResult, QAOutcome, ViolationSeverity
from smile_advisor.qa.validator import CompositionValidator

log = logging.getLogger(__name__)

PASS_REASON = "All QA checks passed"


class QAGate:
    def __init__(
        self,
        catalog: Catalog,
        config: QAConfig | None = None,
        *,
        strict_placeholders: bool = False,
        evaluator: IReportEvaluator | None = None,
        evaluation_timeout: float = 30.0,
    ) -> None:
        self._config = config or QAConfig()
        self._validator = CompositionValidator(catalog, strict_placeholders=strict_placeholders)
        self._detector = SemanticLeakageDetector(catalog)
        self._evaluator = evaluator
        self._evaluation_timeout = evaluation_timeout

    async def check(
        self,
        report: ComposedReport,
        *,
        driver_values: Mapping[str, str] | None = None,
        tags: Iterable[str] = (),
    ) -> QAGateResult:
        validation = self._validator.validate(report, driver_values=driver_values, tags=tags)
        semantic = self._detector.detect(report)
        config = self._config

        block: list[str] = []
        if semantic.critical_count > config.max_critical_violations:
            critical = {v.phrase.lower() for v in semantic.violations if v.severity == ViolationSeverity.CRITICAL}
            phrases = ", ".join(f"'{p}'" for p in sorted(critical))
            block.append(f"{semantic.critical_count} critical semantic violation(s): {phrases}")
        if len(validation.errors) > config.max_validation_errors:
            codes = ", ".join(sorted({issue.code for issue in validation.errors}))
            block.append(f"{len(validation.errors)} structural error(s): {codes}")

        flag: list[str] = []
        if semantic.warning_count > config.max_warning_violations:
            flag.append(f"{semantic.warning_count} semantic warnings exceed limit {config.max_warning_violations}")
        if len(validation.warnings) > config.max_validation_warnings:
            flag.append(f"{len(validation.warnings)} validation warnings exceed limit {config.max_validation_warnings}")
        if report.confidence != ConfidenceLevel.HIGH:
            flag.append(f"Scenario confidence is {report.confidence.value}")
        if config.block_on_unresolved_placeholders and report.unresolved_placeholders:
            flag.append(f"Unresolved placeholders: {', '.join(report.unresolved_placeholders)}")

        if block:
            outcome, reasons = QAOutcome.BLOCK, block + flag
        elif flag:
            outcome, reasons = QAOutcome.FLAG, flag
        else:
            outcome, reasons = QAOutcome.PASS, [PASS_REASON]

        result = QAGateResult(outcome=outcome, validation=validation, semantic=semantic, reasons=reasons)
        log.info("QA gate for %s: %s (%s)", report.session_id, outcome.value, "; ".join(reasons))

        if self._evaluator is not None:
            evaluation = await self._evaluate(report)
            if evaluation is not None:
                result = result.model_copy(update={"evaluation": evaluation})
        return result

    async def _evaluate(self, report: ComposedReport) -> EvaluationResult | None:
        try:
            return await asyncio.wait_for(
                self._evaluator.evaluate(report),
                timeout=self._evaluation_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Advisory evaluation for %s timed out; outcome unchanged", report.session_id)
        except Exception:
            log.warning("Advisory evaluation for %s failed; outcome unchanged", report.session_id, exc_info=True)
        return None
