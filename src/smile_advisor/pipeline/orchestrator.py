"""Report pipeline: wires the deterministic stages into one audited run.

Stages run strictly in order; each emits a ``started`` progress event and
then ``completed`` or ``error``. Invalid input, a set cancel signal and
unexpected failures all come back as a BLOCK ``PipelineResult`` whose audit
holds every artifact produced before the stop. Cancelling the task running
``run`` logs the partial audit and re-raises ``CancelledError``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Awaitable, Callable, Protocol, Union

from smile_advisor.catalog.models import Catalog
from smile_advisor.composition.composer import ReportComposer
from smile_advisor.content.protocols import IContentRepository
from smile_advisor.core.config import AppSettings
from smile_advisor.engine.content_selector import ContentSelector
from smile_advisor.engine.driver_deriver import DriverDeriver
from smile_advisor.engine.scenario_scorer import ScenarioScorer
from smile_advisor.engine.tag_extractor import TagExtractor
from smile_advisor.engine.tone_selector import ToneSelector
from smile_advisor.exceptions import PipelineCancelledError
from smile_advisor.hooks.run_tracker import RunTrace, StageTimer, end_run, record, start_run, track_stage
from smile_advisor.intake.validator import IntakeValidator
from smile_advisor.models import IntakeData, PipelineResult, ProgressEvent, StageStatus
from smile_advisor.pipeline.audit import RunArtifacts, build_audit
from smile_advisor.qa.evaluator import IReportEvaluator
from smile_advisor.qa.gate import QAGate
from smile_advisor.qa.models import QAOutcome

log = logging.getLogger(__name__)

STAGES: tuple[str, ...] = (
    "input_validation",
    "tag_extraction",
    "driver_derivation",
    "scenario_scoring",
    "tone_selection",
    "content_selection",
    "scenario_content",
    "composition",
    "qa_gate",
)

CANCELLED = "cancelled"

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class CancelSignal(Protocol):
    """Anything with ``is_set()``: ``asyncio.Event`` or ``threading.Event``."""

    def is_set(self) -> bool:
        ...


class _InputRejected(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ReportPipeline:
    """Runs one intake through all stages and returns an audited result."""

    def __init__(
        self,
        catalog: Catalog,
        repository: IContentRepository,
        settings: AppSettings | None = None,
        evaluator: IReportEvaluator | None = None,
    ) -> None:
        self._catalog = catalog
        self._repository = repository
        self._settings = settings or AppSettings()

        self._validator = IntakeValidator(catalog)
        self._extractor = TagExtractor(catalog)
        self._deriver = DriverDeriver(catalog)
        self._scorer = ScenarioScorer(catalog, min_score=self._settings.qa.min_scenario_score)
        self._tones = ToneSelector(catalog)
        self._selector = ContentSelector(catalog)
        self._composer = ReportComposer(catalog, repository, self._settings.composition)
        self._gate = QAGate(
            catalog,
            self._settings.qa,
            strict_placeholders=self._settings.composition.strict_placeholders,
            evaluator=evaluator,
            evaluation_timeout=self._settings.evaluation.timeout,
        )

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def settings(self) -> AppSettings:
        return self._settings

    async def run(
        self,
        intake: IntakeData,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: CancelSignal | None = None,
    ) -> PipelineResult:
        trace = start_run(
            session_id=intake.session_id,
            max_string_length=self._settings.observability.trace_max_string_length,
        )
        artifacts = RunArtifacts(intake=intake)
        log.info("Pipeline run %s started for session %s", trace.run_id, intake.session_id)
        try:
            return await self._execute(artifacts, trace, on_progress, cancel_event)
        except _InputRejected as exc:
            return self._blocked(artifacts, trace, exc.message)
        except PipelineCancelledError:
            log.warning("Pipeline run %s cancelled", trace.run_id)
            return self._blocked(artifacts, trace, CANCELLED)
        except asyncio.CancelledError:
            audit = build_audit(artifacts, trace, outcome=QAOutcome.BLOCK, delivered=False, error=CANCELLED)
            log.warning("Pipeline run %s task cancelled; partial audit: %s", trace.run_id, audit.model_dump_json())
            raise
        except Exception as exc:
            log.exception("Pipeline run %s failed", trace.run_id)
            return self._blocked(artifacts, trace, f"{type(exc).__name__}: {exc}")
        finally:
            end_run()

    # ── Stages ──────────────────────────────────────────────────────

    async def _execute(
        self,
        artifacts: RunArtifacts,
        trace: RunTrace,
        on_progress: ProgressCallback | None,
        cancel_event: CancelSignal | None,
    ) -> PipelineResult:
        def stage(name: str) -> AsyncContextManager[StageTimer]:
            return self._stage(name, on_progress, cancel_event)

        async with stage("input_validation") as timer:
            validation = self._validator.validate(artifacts.intake)
            timer.metrics.update(errors=len(validation.errors), warnings=len(validation.warnings))
            record(
                "input_validation",
                "validated",
                valid=validation.valid,
                issues=[i.model_dump() for i in (*validation.errors, *validation.warnings)],
            )
            if not validation.valid:
                raise _InputRejected(validation.summary())
        intake = validation.sanitized or artifacts.intake

        async with stage("tag_extraction") as timer:
            artifacts.tags = self._extractor.extract(intake)
            timer.metrics["tag_count"] = len(artifacts.tags.tags)
        tags = sorted(artifacts.tags.tag_set)

        async with stage("driver_derivation") as timer:
            artifacts.driver_state = self._deriver.derive(intake.session_id, artifacts.tags.tags)
            timer.metrics.update(
                conflicts=len(artifacts.driver_state.conflicts),
                fallbacks=len(artifacts.driver_state.fallbacks_applied),
            )
            for conflict in artifacts.driver_state.conflicts:
                record("driver_derivation", "conflict_resolved", **conflict.model_dump())
        driver_values = {d: v.value for d, v in artifacts.driver_state.drivers.items()}

        async with stage("scenario_scoring") as timer:
            artifacts.match = self._scorer.score(artifacts.driver_state, tags)
            timer.metrics.update(
                scenario=artifacts.match.matched_scenario,
                confidence=artifacts.match.confidence.value,
            )
            record(
                "scenario_scoring",
                "scenario_selected",
                scenario=artifacts.match.matched_scenario,
                score=artifacts.match.score,
                confidence=artifacts.match.confidence.value,
                fallback_reason=artifacts.match.fallback_reason,
                safety_override=artifacts.match.safety_override,
            )

        async with stage("tone_selection") as timer:
            artifacts.tone = self._tones.select(artifacts.driver_state)
            timer.metrics["tone"] = artifacts.tone.selected_tone
            record("tone_selection", "tone_selected", tone=artifacts.tone.selected_tone, reason=artifacts.tone.reason)
        tone = artifacts.tone.selected_tone

        async with stage("content_selection") as timer:
            artifacts.selection = self._selector.select(artifacts.driver_state, artifacts.match, tone, tags)
            timer.metrics.update(
                selected=len(artifacts.selection.selections),
                suppressed_sections=artifacts.selection.suppressed_sections,
            )
            for selection in artifacts.selection.selections:
                if selection.suppressed:
                    record(
                        "content_selection",
                        "content_suppressed",
                        content_id=selection.content_id,
                        reason=selection.suppression_reason,
                    )

        async with stage("scenario_content") as timer:
            sections = await self._repository.get_scenario_sections(
                artifacts.match.matched_scenario, tone, intake.language
            )
            artifacts.scenario_sections = sections or {}
            timer.metrics["section_keys"] = sorted(artifacts.scenario_sections)

        async with stage("composition") as timer:
            artifacts.report = await self._composer.compose(
                artifacts.driver_state,
                artifacts.match,
                artifacts.selection,
                tone,
                intake.language,
                artifacts.scenario_sections,
                intake.metadata,
            )
            timer.metrics.update(
                sections=len(artifacts.report.sections),
                words=artifacts.report.total_word_count,
                unresolved_placeholders=artifacts.report.unresolved_placeholders,
            )

        async with stage("qa_gate") as timer:
            artifacts.qa = await self._gate.check(artifacts.report, driver_values=driver_values, tags=tags)
            self._apply_content_policy(artifacts)
            timer.metrics.update(outcome=artifacts.qa.outcome.value, reasons=artifacts.qa.reasons)

        qa = artifacts.qa
        delivered = qa.can_deliver
        audit = build_audit(artifacts, trace, outcome=qa.outcome, delivered=delivered)
        log.info("Pipeline run %s finished: %s", trace.run_id, qa.outcome.value)
        return PipelineResult(
            success=delivered,
            outcome=qa.outcome,
            report=artifacts.report if delivered else None,
            audit=audit,
        )

    def _apply_content_policy(self, artifacts: RunArtifacts) -> None:
        """Block when a required section rendered empty and the policy demands content."""
        if not self._settings.composition.fail_on_missing_required_content:
            return
        if artifacts.report is None or artifacts.qa is None:
            return
        rendered = {s.section_number for s in artifacts.report.sections}
        missing = [n for n in self._catalog.required_sections if n not in rendered]
        if missing:
            artifacts.qa = artifacts.qa.model_copy(
                update={
                    "outcome": QAOutcome.BLOCK,
                    "reasons": [f"Required content missing for sections {missing}", *artifacts.qa.reasons],
                }
            )

    def _blocked(self, artifacts: RunArtifacts, trace: RunTrace, error: str) -> PipelineResult:
        audit = build_audit(artifacts, trace, outcome=QAOutcome.BLOCK, delivered=False, error=error)
        return PipelineResult(success=False, outcome=QAOutcome.BLOCK, audit=audit, error=error)

    # ── Progress ────────────────────────────────────────────────────

    @asynccontextmanager
    async def _stage(
        self,
        name: str,
        on_progress: ProgressCallback | None,
        cancel_event: CancelSignal | None,
    ) -> AsyncIterator[StageTimer]:
        index = STAGES.index(name) + 1
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelledError(name)

        await _emit(on_progress, ProgressEvent(stage_index=index, stage_name=name, status=StageStatus.STARTED))
        try:
            with track_stage(name) as timer:
                yield timer
        except BaseException as exc:
            message = CANCELLED if isinstance(exc, asyncio.CancelledError) else str(exc)
            await _emit(
                on_progress,
                ProgressEvent(
                    stage_index=index,
                    stage_name=name,
                    status=StageStatus.ERROR,
                    message=message,
                    metrics=dict(timer.metrics),
                    duration_ms=timer.duration_ms,
                ),
            )
            raise
        await _emit(
            on_progress,
            ProgressEvent(
                stage_index=index,
                stage_name=name,
                status=StageStatus.COMPLETED,
                metrics=dict(timer.metrics),
                duration_ms=timer.duration_ms,
            ),
        )


async def _emit(callback: ProgressCallback | None, event: ProgressEvent) -> None:
    if callback is None:
        return
    try:
        result = callback(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        log.warning("Progress callback failed for %s/%s", event.stage_name, event.status.value, exc_info=True)
