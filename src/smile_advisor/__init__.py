"""smile-advisor: deterministic questionnaire-to-advisory-report pipeline with QA gating.

Typical use::

    from smile_advisor import AppSettings, ReportPipeline, load_catalog
    from smile_advisor.content import create_content_repository

    settings = AppSettings()
    pipeline = ReportPipeline(load_catalog(), create_content_repository(settings), settings)
    result = await pipeline.run(intake)
"""

from __future__ import annotations

__version__ = "0.3.0"

from smile_advisor.catalog.loader import load_catalog
from smile_advisor.core.config import AppSettings
from smile_advisor.exceptions import (
    CatalogError,
    ContentRepositoryError,
    EvaluationError,
    IntakeValidationError,
    PipelineCancelledError,
    SmileAdvisorError,
)
from smile_advisor.models import (
    AuditRecord,
    ComposedReport,
    IntakeData,
    PipelineResult,
    ProgressEvent,
    QuestionAnswer,
)
from smile_advisor.pipeline.orchestrator import ReportPipeline
from smile_advisor.qa.models import QAOutcome

__all__ = [
    "AppSettings",
    "AuditRecord",
    "CatalogError",
    "ComposedReport",
    "ContentRepositoryError",
    "EvaluationError",
    "IntakeData",
    "IntakeValidationError",
    "PipelineCancelledError",
    "PipelineResult",
    "ProgressEvent",
    "QAOutcome",
    "QuestionAnswer",
    "ReportPipeline",
    "SmileAdvisorError",
    "load_catalog",
]
