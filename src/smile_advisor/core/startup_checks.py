"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from smile_advisor.core.config import AppSettings

log = logging.getLogger(__name__)

# litellm providers that run locally and need no API key
_NO_KEY_PROVIDERS = frozenset({"ollama", "ollama_chat", "lm_studio"})


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ValueError on fatal misconfig."""
    _check_catalog(settings)
    _check_content(settings)
    _check_evaluation(settings)
    _check_qa(settings)


def _check_catalog(settings: AppSettings) -> None:
    directory = settings.catalog.directory
    if directory is not None and not directory.is_dir():
        raise ValueError(f"SMILE_CATALOG_DIRECTORY={directory} does not exist or is not a directory.")


def _check_content(settings: AppSettings) -> None:
    """The file backend needs its root; a missing language tree only degrades output."""
    if settings.content.backend != "file":
        return
    root = settings.content.root
    if not root.is_dir():
        raise ValueError(
            f"SMILE_CONTENT_ROOT={root} does not exist. "
            "Point it at the content tree or set SMILE_CONTENT_BACKEND=memory."
        )
    if not (root / settings.content.default_language).is_dir():
        log.warning(
            "Content root %s has no %r language directory; blocks will render as absent",
            root,
            settings.content.default_language,
        )


def _check_evaluation(settings: AppSettings) -> None:
    """Reject an enabled evaluator that cannot authenticate."""
    evaluation = settings.evaluation
    if not evaluation.enabled:
        return
    provider = evaluation.model.split("/", 1)[0]
    if provider not in _NO_KEY_PROVIDERS and not evaluation.api_key:
        raise ValueError(
            f"SMILE_EVALUATION_API_KEY is required for model '{evaluation.model}'. "
            "Set it via environment variable or disable evaluation."
        )


def _check_qa(settings: AppSettings) -> None:
    if settings.qa.max_critical_violations > 0:
        log.warning(
            "SMILE_QA_MAX_CRITICAL_VIOLATIONS=%d: reports with medical claims or prices may be delivered",
            settings.qa.max_critical_violations,
        )
