"""Exception hierarchy for smile-advisor."""

from __future__ import annotations

from typing import Any


class SmileAdvisorError(Exception):
    """Base exception for all smile-advisor errors."""


class CatalogError(SmileAdvisorError):
    """Raised when reference data (scenarios, rule tables) is missing or inconsistent."""


class IntakeValidationError(SmileAdvisorError):
    """Raised when an intake payload fails validation with blocking issues."""

    def __init__(self, message: str, issues: list[Any] | None = None) -> None:
        super().__init__(message)
        self.issues = issues or []


class ContentRepositoryError(SmileAdvisorError):
    """Raised when a content backend fails (not when content is merely absent)."""


class EvaluationError(SmileAdvisorError):
    """Raised by the advisory report evaluator. Never affects deliverability."""


class PipelineCancelledError(SmileAdvisorError):
    """Raised when a caller cancels a pipeline run between stages."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Pipeline cancelled before stage {stage!r}")
        self.stage = stage
